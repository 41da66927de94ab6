"""Process-wide service container.

The API, the Temporal activities and the scripts all run the sagas against
the same set of stores and connectors. Build it once per process with
get_services(); tests build their own container from fakes.
"""

from dataclasses import dataclass, field
from typing import Optional

from core.config import Settings
from core.steplog import RetainedLogStore, StepLogHub
from connectors.erp import ERPGatewayClient
from connectors.marketplace import MarketplaceClient, TokenProvider
from connectors.notifier import Notifier
from storage import LedgerStore, MappingStore, ReportingStore


@dataclass
class ServiceContainer:
    """Everything a saga run talks to."""
    settings: Settings
    ledger: LedgerStore
    mappings: MappingStore
    reporting: ReportingStore
    token_provider: TokenProvider
    marketplace: MarketplaceClient
    erp: ERPGatewayClient
    notifier: Notifier
    log_store: RetainedLogStore
    hub: Optional[StepLogHub] = field(default=None)

    def init_storage(self) -> None:
        """Create the ledger, mapping and reporting tables if missing."""
        self.ledger.init_db()
        for schema in {self.settings.accounts.get(name).mapping_schema for name in self.settings.accounts.names()}:
            self.mappings.init_schema(schema)
        self.reporting.init_db()


def build_services(settings: Optional[Settings] = None) -> ServiceContainer:
    settings = settings or Settings.from_env()
    timeout = settings.http_timeout_seconds

    return ServiceContainer(
        settings=settings,
        ledger=LedgerStore(settings.ledger_db_path),
        mappings=MappingStore(settings.mapping_db_path),
        reporting=ReportingStore(settings.reporting_db_path),
        token_provider=TokenProvider(settings.marketplace_token_base_url, timeout),
        marketplace=MarketplaceClient(settings.marketplace_api_url, timeout, settings.marketplace_site_id),
        erp=ERPGatewayClient(
            settings.erp_gateway_url,
            user_prefix=settings.erp_user_prefix,
            shared_secret=settings.erp_shared_secret,
            package=settings.erp_package,
            timeout_seconds=timeout,
        ),
        notifier=Notifier(settings.notifier_webhook_url, settings.notifier_channel_id, timeout),
        log_store=RetainedLogStore(
            max_runs=settings.log_retention_max_runs,
            ttl_seconds=settings.log_retention_seconds,
        ),
        hub=StepLogHub(buffer_size=settings.log_buffer_size),
    )


_services: Optional[ServiceContainer] = None


def get_services() -> ServiceContainer:
    """Shared container for this process."""
    global _services
    if _services is None:
        _services = build_services()
    return _services


def set_services(services: Optional[ServiceContainer]) -> None:
    """Replace (or with None, reset) the shared container."""
    global _services
    _services = services
