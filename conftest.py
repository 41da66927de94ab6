"""Shared fixtures: in-memory fakes of the upstream systems and temp stores."""

import sys
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parent))

from core.config import Settings
from core.errors import ERPOrderRejected, ERPRegistrationFailed, OrderNotFound, TokenUnavailable
from core.models.marketplace import BillingInfo, Item, Order, Shipment
from core.services import ServiceContainer
from core.steplog import RetainedLogStore
from connectors.http import HttpResponse
from connectors.marketplace import INVOICE_ACCEPTED_STATUS, MarketplaceToken
from storage import LedgerStore, MappingStore, ReportingStore


# =============================================================================
# Fakes
# =============================================================================

class FakeTokenProvider:
    def __init__(self, access_token: str = "APP_USR-1234-5678-99887766"):
        self.access_token = access_token
        self.fail = False
        self.calls: List[str] = []

    async def get_token(self, account) -> MarketplaceToken:
        self.calls.append(account.name)
        if self.fail:
            raise TokenUnavailable(f"Token source unreachable for {account.name}", step="token")
        return MarketplaceToken.from_access_token(self.access_token)


class FakeMarketplace:
    """Orders, packs, items, billing and shipments held in dicts."""

    def __init__(self):
        self.orders: Dict[str, Dict[str, Any]] = {}
        self.packs: Dict[str, List[str]] = {}
        self.items: Dict[str, str] = {}
        self.billing: Dict[str, Dict[str, Any]] = {}
        self.shipments: Dict[str, Dict[str, Any]] = {}
        self.upload_status = INVOICE_ACCEPTED_STATUS
        self.uploads: List[Dict[str, str]] = []
        self.calls: List[str] = []

    def add_order(
        self,
        order_id: str,
        items: List[Dict[str, Any]],
        shipping_id: str = "44001122",
        doc_type: str = "CPF",
        doc_number: str = "12345678909",
        info: Optional[Dict[str, str]] = None,
    ) -> None:
        self.orders[order_id] = {
            "id": int(order_id),
            "date_created": "2024-05-02T10:15:00.000-04:00",
            "order_items": [
                {"item": {"id": item["id"]}, "quantity": item.get("quantity", 1), "unit_price": item.get("price", 100.0)}
                for item in items
            ],
            "shipping": {"id": int(shipping_id)},
        }
        for item in items:
            self.items.setdefault(item["id"], item.get("mpn", "PN-0001"))
        self.billing[order_id] = {
            "billing_info": {
                "doc_type": doc_type,
                "doc_number": doc_number,
                "additional_info": info or {
                    "FIRST_NAME": "Maria",
                    "LAST_NAME": "Silva",
                    "STREET_NAME": "Rua Augusta",
                    "STREET_NUMBER": "100",
                    "NEIGHBORHOOD": "Consolacao",
                    "ZIP_CODE": "01305000",
                },
            }
        }

    async def get_order(self, order_id: str, token: str, allow_pack_fallback: bool = True) -> Order:
        self.calls.append(f"order:{order_id}")
        if order_id in self.orders:
            return Order.model_validate(self.orders[order_id])
        if allow_pack_fallback and self.packs.get(order_id):
            return await self.get_order(self.packs[order_id][0], token, allow_pack_fallback=False)
        raise OrderNotFound(f"Neither order nor pack {order_id} found", 404)

    async def get_item(self, item_id: str, token: str) -> Item:
        self.calls.append(f"item:{item_id}")
        return Item.model_validate({"id": item_id, "attributes": [{"id": "MPN", "value_name": self.items.get(item_id, "")}]})

    async def get_billing_info(self, order_id: str, token: str, pack_id: Optional[str] = None) -> BillingInfo:
        self.calls.append(f"billing:{order_id}")
        if order_id not in self.billing and pack_id in self.packs:
            order_id = self.packs[pack_id][0]
        return BillingInfo.model_validate(self.billing[order_id])

    async def get_shipment(self, shipment_id: str, token: str) -> Shipment:
        self.calls.append(f"shipment:{shipment_id}")
        return Shipment.from_api(self.shipments[shipment_id])

    async def upload_invoice(self, shipment_id: str, invoice_xml: str, token: str) -> HttpResponse:
        self.uploads.append({"shipment_id": shipment_id, "xml": invoice_xml})
        return HttpResponse(status=self.upload_status, text="", url=f"/shipments/{shipment_id}/invoice_data")

    @staticmethod
    def is_invoice_accepted(response: HttpResponse) -> bool:
        return response.status == INVOICE_ACCEPTED_STATUS


class FakeERP:
    """Records every gateway call; set fail_at to a method name to make it fail."""

    def __init__(self, document_number: str = "778899"):
        self.document_number = document_number
        self.fail_at: Optional[str] = None
        self.calls: List[str] = []
        self.payloads: Dict[str, Dict[str, Any]] = {}

    def _record(self, name: str, payload: Optional[Dict[str, Any]] = None) -> None:
        self.calls.append(name)
        if payload is not None:
            self.payloads[name] = payload

    async def get_token(self, session_company: str) -> str:
        self._record("get_token", {"company": session_company})
        if self.fail_at == "get_token":
            raise ERPRegistrationFailed("ERP session refused with status 401", 401, step="customer")
        return f"erp-token-{session_company}"

    async def upsert_customer(self, token: str, payload: Dict[str, Any]):
        self._record("upsert_customer", payload)
        if self.fail_at == "upsert_customer":
            raise ERPRegistrationFailed("ERP customer upsert rejected: invalid document", 200, step="customer")

    async def upsert_address(self, token: str, payload: Dict[str, Any]):
        self._record("upsert_address", payload)
        if self.fail_at == "upsert_address":
            raise ERPRegistrationFailed("ERP address upsert returned status 500", 500, step="address")

    async def submit_order(self, token: str, payload: Dict[str, Any]) -> str:
        self._record("submit_order", payload)
        if self.fail_at == "submit_order":
            raise ERPOrderRejected("ERP rejected the order: item without stock", 200, step="order-submit")
        return self.document_number


class FakeNotifier:
    def __init__(self):
        self.messages: List[str] = []

    @property
    def enabled(self) -> bool:
        return True

    async def send(self, text: str) -> bool:
        self.messages.append(text)
        return True


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def temp_db():
    """Create a temporary sqlite database file."""
    with tempfile.TemporaryDirectory() as tmp:
        yield Path(tmp) / "integration.db"


@pytest.fixture
def services(temp_db):
    """Service container on a temp database with fake upstream systems."""
    settings = Settings(
        ledger_db_path=temp_db,
        mapping_db_path=temp_db,
        reporting_db_path=temp_db,
    )
    container = ServiceContainer(
        settings=settings,
        ledger=LedgerStore(temp_db),
        mappings=MappingStore(temp_db),
        reporting=ReportingStore(temp_db),
        token_provider=FakeTokenProvider(),
        marketplace=FakeMarketplace(),
        erp=FakeERP(),
        notifier=FakeNotifier(),
        log_store=RetainedLogStore(),
    )
    container.init_storage()
    return container
