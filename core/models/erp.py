"""ERP gateway response models.

The gateway wraps every answer in {sucesso, mensagem, data}. The order
endpoint returns the document number (codigoPedido) either as a string or
as a JSON number; it is normalized to a string here so nothing downstream
ever sees the numeric form.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.models.marketplace import normalize_id


class ERPEnvelope(BaseModel):
    """Common response envelope of the ERP gateway."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    success: Optional[bool] = Field(default=None, alias="sucesso")
    message: str = Field(default="", alias="mensagem")
    data: Optional[Dict[str, Any]] = None

    @field_validator("message", mode="before")
    @classmethod
    def _message_to_str(cls, value):
        return "" if value is None else str(value)


class ERPToken(BaseModel):
    model_config = ConfigDict(extra="ignore")

    token: str = ""


class ERPOrderAck(ERPEnvelope):
    """Response of POST /pedidos."""

    @property
    def document_number(self) -> str:
        raw: Union[str, int, float, None] = (self.data or {}).get("codigoPedido")
        normalized = normalize_id(raw)
        return normalized or ""
