"""Request bodies for the ERP gateway.

The gateway expects Portuguese field names and a number of fixed values
(customer class, contact phone, placeholder e-mail, ...). Those fixed
values are kept exactly as the gateway has always received them.
"""

from dataclasses import dataclass
from typing import Any, Dict, List

from core.config import ERPConstants
from core.models.marketplace import BillingDetails, Order

# Fixed customer registration values
CUSTOMER_DEFAULTS: Dict[str, Any] = {
    "codigoTipoCliente": 1,
    "codigoRamo": "V",
    "codigoClasse": 53,
    "codigoClasseTipo": "24",
    "codigoEstadoCivil": "1",
    "prefixoCelular": "11",
    "telefoneCelular": "25948379",
    "prefixoComercial": "11",
    "telefoneComercial": "25948379",
    "prefixoResidencial": "11",
    "telefoneResidencial": "25948379",
    "codigoNacionalidade": "36",
    "codigoProfissao": "102",
    "paiCliente": "",
    "maeCliente": "",
    "emailCliente": "09059264630@MAIL.COM.BR",
    "sexo": "F",
    "nascimento": "1993-01-01T09:52:50.638Z",
    "rgIe": "0",
    "ssp": "SP",
    "atualizaExistente": True,
    "clienteRevendedor": False,
}

# Address used when the buyer's billing info doesn't carry the field
ADDRESS_DEFAULTS: Dict[str, Any] = {
    "clienteTipoEndereco": 4,
    "codCidades": "3550308",
    "CEP": "01234567",
    "rua": "Rua do Mercado Livre",
    "complemento": "N/A",
    "bairro": "Centro",
    "uf": "SP",
    "numeroEndereco": "123",
    "nomePropriedade": "Internet",
    "inscricaoEstadual": "ISENTO",
    "fachada": "Internet",
    "contato": "Consumidor",
    "telefoneContato": "25948379",
    "prefixoTelefoneContato": "11",
}

# billing additional_info key -> address field
_ADDRESS_FIELDS = {
    "ZIP_CODE": "CEP",
    "STREET_NAME": "rua",
    "STREET_NUMBER": "numeroEndereco",
    "NEIGHBORHOOD": "bairro",
    "COMMENT": "complemento",
    "STATE_REGISTRATION": "inscricaoEstadual",
}


@dataclass(frozen=True)
class OrderLine:
    """One resolved order line as the ERP expects it."""
    sku: str
    supplier_code: str
    unit_price: float
    quantity: int

    def to_payload(self) -> Dict[str, Any]:
        return {
            "COD_ITEM": self.sku,
            "COD_FORNECEDOR": self.supplier_code,
            "PRECO_UNITARIO": self.unit_price,
            "QTDE": self.quantity,
        }


def build_customer_payload(billing: BillingDetails) -> Dict[str, Any]:
    """Customer upsert body; the document number is the customer key."""
    return {
        **CUSTOMER_DEFAULTS,
        "codigoCliente": billing.doc_number,
        "cpfCnpj": billing.doc_number,
        "tipo": "F" if billing.is_individual else "J",
        "nome": billing.customer_name,
    }


def build_address_payload(billing: BillingDetails) -> Dict[str, Any]:
    """Address upsert body, preferring the buyer's billing address fields."""
    payload = {**ADDRESS_DEFAULTS, "codigoCliente": billing.doc_number}
    info = billing.info
    for source, target in _ADDRESS_FIELDS.items():
        value = (info.get(source) or "").strip()
        if value:
            payload[target] = value
    return payload


def format_address(payload: Dict[str, Any]) -> str:
    return f"{payload['rua']}, {payload['bairro']} - {payload['uf']}"


def build_order_payload(
    customer_document: str,
    company_code: str,
    lines: List[OrderLine],
    order: Order,
    constants: ERPConstants,
) -> Dict[str, Any]:
    """Order submission body: resolved lines, zero freight and one payment stub."""
    return {
        "COD_PEDIDO_WEB": constants.order_web_code,
        "COD_CLIENTE": customer_document,
        "TIPO_ENDERECO": constants.address_type,
        "COD_TRANSPORTADORA": constants.carrier_code,
        "VALOR_FRETE_TOTAL": 0.0,
        "CNPJ_INTERMED": constants.intermediary_tax_id,
        "IDENT_CAD_INTERMED": constants.intermediary_name,
        "NOME": f"ECOMML{company_code}",
        "Itens": [line.to_payload() for line in lines],
        "Pagamentos": [
            {
                "codigoBandeira": constants.payment_brand,
                "tipoCartao": constants.payment_card_type,
                "dataPagamento": order.date_created,
                "numeroCartao": constants.payment_card_number,
                "numeroAutorizacao": constants.payment_authorization,
                "quantidadeParcelas": 1,
            }
        ],
    }
