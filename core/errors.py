"""Error taxonomy for the integration sagas.

Every failure a saga step can hit is one of these. Each carries the step it
happened in and, where an HTTP call was involved, the status code and body.
All of them stop the saga at their step except MappingNotFound, which
only skips the line item it names.
"""

from typing import Optional


class IntegrationError(Exception):
    """Base exception for integration failures."""

    def __init__(
        self,
        message: str,
        status_code: int = 0,
        response_body: str = "",
        step: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body
        self.step = step


class AlreadyProcessed(IntegrationError):
    """Order already has a ledger record; early exit, nothing else runs."""
    pass


class TokenUnavailable(IntegrationError):
    """Marketplace token source unreachable or token marker missing."""
    pass


class OrderNotFound(IntegrationError):
    """Neither the order nor a pack with that id exists."""
    pass


class MappingNotFound(IntegrationError):
    """A single line item has no mapping entry (recoverable per item).

    The resolver collects these instead of raising them; the saga logs each
    one as a warning and goes on with the remaining items.
    """

    def __init__(self, message: str, item_id: str = "", schema: str = "", **kwargs):
        kwargs.setdefault("step", "mapping")
        super().__init__(message, **kwargs)
        self.item_id = item_id
        self.schema = schema

    @classmethod
    def for_item(cls, item_id: str, schema: str) -> "MappingNotFound":
        return cls(f"Item {item_id} has no mapping in schema {schema}; skipped", item_id=item_id, schema=schema)


class NoValidItems(IntegrationError):
    """No line item could be resolved to a SKU and supplier code."""
    pass


class ERPRegistrationFailed(IntegrationError):
    """ERP session, customer or address upsert failed."""
    pass


class ERPOrderRejected(IntegrationError):
    """ERP refused the order or returned no document number."""
    pass


class LedgerWriteFailed(IntegrationError):
    """Ledger write failed. The ERP order is kept as is."""
    pass


class UpstreamUnavailable(IntegrationError):
    """Transport failure or unexpected status from an upstream system."""
    pass
