"""Runtime configuration for the order integration service.

Everything that used to be a hardcoded URL, credential or per-account
naming convention lives here and is read from the environment (a `.env`
file at the repo root is loaded if present).

Accounts are an explicit registry: each entry says where its marketplace
token comes from and which mapping schema holds its item mappings, so
onboarding a new account is a data change (see ACCOUNTS_FILE).
"""

import json
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv

REPO_ROOT = Path(__file__).resolve().parents[1]

env_path = REPO_ROOT / ".env"
if env_path.exists():
    load_dotenv(env_path)


# =============================================================================
# Account Registry
# =============================================================================

class TokenSourceKind(str, Enum):
    """Shape of the document a marketplace token is published in."""
    HTML_MARKER = "html_marker"
    JSON = "json"


@dataclass(frozen=True)
class AccountConfig:
    """Per-account integration settings.

    Attributes:
        name: Account name as sent by callers (e.g. "psa")
        token_source_kind: How to extract the token from its source
        token_slug: Suffix of the token document name (tk<slug>.html / .txt)
        mapping_schema: Schema holding this account's item mapping table
    """
    name: str
    token_source_kind: TokenSourceKind
    token_slug: str
    mapping_schema: str

    @property
    def token_document(self) -> str:
        extension = "txt" if self.token_source_kind == TokenSourceKind.JSON else "html"
        return f"tk{self.token_slug}.{extension}"


DEFAULT_ACCOUNT = "principal"

DEFAULT_ACCOUNTS: Dict[str, AccountConfig] = {
    "principal": AccountConfig("principal", TokenSourceKind.HTML_MARKER, "amz", "principal"),
    "oficial": AccountConfig("oficial", TokenSourceKind.HTML_MARKER, "oficial", "oficial"),
    "renault": AccountConfig("renault", TokenSourceKind.HTML_MARKER, "renault", "renault"),
    "psa": AccountConfig("psa", TokenSourceKind.HTML_MARKER, "psa", "psa"),
    "ford": AccountConfig("ford", TokenSourceKind.JSON, "ford", "ford"),
    "jeep": AccountConfig("jeep", TokenSourceKind.HTML_MARKER, "jeep", "jeep"),
}


class AccountRegistry:
    """Lookup of account name -> AccountConfig."""

    def __init__(self, accounts: Optional[Dict[str, AccountConfig]] = None):
        self._accounts = dict(accounts if accounts is not None else DEFAULT_ACCOUNTS)

    @classmethod
    def from_file(cls, path: Path) -> "AccountRegistry":
        """Load accounts from a JSON file, layered over the built-in ones.

        File format: {"<name>": {"token_source_kind": "html_marker",
        "token_slug": "...", "mapping_schema": "..."}}
        """
        with open(path, "r") as f:
            data = json.load(f)

        accounts = dict(DEFAULT_ACCOUNTS)
        for name, entry in data.items():
            accounts[name.lower()] = AccountConfig(
                name=name.lower(),
                token_source_kind=TokenSourceKind(entry.get("token_source_kind", "html_marker")),
                token_slug=entry.get("token_slug", name.lower()),
                mapping_schema=entry.get("mapping_schema", name.lower()),
            )
        return cls(accounts)

    def get(self, name: str) -> AccountConfig:
        """Resolve an account; unknown names fall back to the default account's schema."""
        key = (name or "").strip().lower()
        if key in self._accounts:
            return self._accounts[key]
        default = self._accounts[DEFAULT_ACCOUNT]
        # Unknown accounts still fetch their own token document
        return AccountConfig(key, TokenSourceKind.HTML_MARKER, key, default.mapping_schema)

    def names(self):
        return sorted(self._accounts.keys())


# =============================================================================
# Settings
# =============================================================================

@dataclass
class ERPConstants:
    """Fixed values the ERP gateway expects on every submitted order.

    TODO: confirm with the ERP team whether order_web_code and the payment
    card/authorization numbers are placeholders or required fixed values.
    """
    order_web_code: int = 1005502702
    intermediary_tax_id: str = "03361252000134"
    intermediary_name: str = "Mercado Livre"
    payment_brand: str = "MP"
    payment_card_type: str = "CREDITO"
    payment_card_number: str = "9999999999999999"
    payment_authorization: str = "01071531"
    address_type: int = 4
    carrier_code: int = 0


@dataclass
class Settings:
    """Service settings, normally built with Settings.from_env()."""
    marketplace_api_url: str = "https://api.mercadolibre.com"
    marketplace_token_base_url: str = "https://imgs-amz.s3.us-east-1.amazonaws.com/tk"
    marketplace_name: str = "Mercado Livre"
    shipping_mode: str = "Mercado Envios"
    marketplace_site_id: str = "MLB"

    erp_gateway_url: str = "http://localhost:8080/nbsapi-gateway"
    erp_user_prefix: str = "HYSTALO"
    erp_shared_secret: str = ""
    erp_package: str = "HYSTALO"
    erp_constants: ERPConstants = field(default_factory=ERPConstants)

    ledger_db_path: Path = REPO_ROOT / "integration.db"
    mapping_db_path: Path = REPO_ROOT / "integration.db"
    reporting_db_path: Path = REPO_ROOT / "integration.db"

    notifier_webhook_url: Optional[str] = None
    notifier_channel_id: Optional[str] = None

    http_timeout_seconds: float = 30.0

    log_buffer_size: int = 256
    log_retention_seconds: int = 3600
    log_retention_max_runs: int = 500

    accounts: AccountRegistry = field(default_factory=AccountRegistry)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables."""
        accounts_file = os.getenv("ACCOUNTS_FILE")
        accounts = AccountRegistry.from_file(Path(accounts_file)) if accounts_file else AccountRegistry()

        constants = ERPConstants()
        if os.getenv("ORDER_WEB_CODE"):
            constants.order_web_code = int(os.getenv("ORDER_WEB_CODE"))

        default_db = str(REPO_ROOT / "integration.db")

        return cls(
            marketplace_api_url=os.getenv("MARKETPLACE_API_URL", cls.marketplace_api_url),
            marketplace_token_base_url=os.getenv("MARKETPLACE_TOKEN_BASE_URL", cls.marketplace_token_base_url),
            erp_gateway_url=os.getenv("ERP_GATEWAY_URL", cls.erp_gateway_url),
            erp_user_prefix=os.getenv("ERP_USER_PREFIX", cls.erp_user_prefix),
            erp_shared_secret=os.getenv("ERP_SHARED_SECRET", ""),
            erp_package=os.getenv("ERP_PACKAGE", cls.erp_package),
            erp_constants=constants,
            ledger_db_path=Path(os.getenv("LEDGER_DB_PATH", default_db)),
            mapping_db_path=Path(os.getenv("MAPPING_DB_PATH", default_db)),
            reporting_db_path=Path(os.getenv("REPORTING_DB_PATH", default_db)),
            notifier_webhook_url=os.getenv("NOTIFIER_WEBHOOK_URL"),
            notifier_channel_id=os.getenv("NOTIFIER_CHANNEL_ID"),
            http_timeout_seconds=float(os.getenv("HTTP_TIMEOUT_SECONDS", "30")),
            log_buffer_size=int(os.getenv("LOG_BUFFER_SIZE", "256")),
            log_retention_seconds=int(os.getenv("LOG_RETENTION_SECONDS", "3600")),
            log_retention_max_runs=int(os.getenv("LOG_RETENTION_MAX_RUNS", "500")),
            accounts=accounts,
        )
