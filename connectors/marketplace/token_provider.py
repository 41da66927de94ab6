"""Marketplace access tokens.

Tokens are published per account as a small document next to each other
under one base URL. Most accounts publish an HTML page where the token
follows the "y>" marker and ends at the next closing tag; the token is
stored without its "APP_USR-" prefix. Some accounts publish JSON
({"data": "<token>"}) instead. Which shape an account uses comes from the
account registry.

The account token id (the marketplace user id) is the last "-" segment of
the token; the ledger keys rows by it.
"""

from dataclasses import dataclass

from core.config import AccountConfig, TokenSourceKind
from core.errors import TokenUnavailable, UpstreamUnavailable
from connectors import http

TOKEN_PREFIX = "APP_USR-"
START_MARKER = "y>"
END_MARKER = "</"


@dataclass(frozen=True)
class MarketplaceToken:
    access_token: str
    account_token_id: str

    @classmethod
    def from_access_token(cls, access_token: str) -> "MarketplaceToken":
        return cls(access_token=access_token, account_token_id=access_token.split("-")[-1])


def extract_marker_token(document: str) -> str:
    """Pull the token out of an HTML token page.

    Raises:
        TokenUnavailable: Marker missing or token empty
    """
    start = document.find(START_MARKER)
    if start == -1:
        raise TokenUnavailable("Token marker not found in token document", step="token")
    remainder = document[start + len(START_MARKER):]
    end = remainder.find(END_MARKER)
    if end == -1:
        raise TokenUnavailable("Token end marker not found in token document", step="token")
    raw = remainder[:end].strip()
    if not raw:
        raise TokenUnavailable("Token document contains an empty token", step="token")
    return TOKEN_PREFIX + raw


class TokenProvider:
    """Resolves the marketplace token for an account."""

    def __init__(self, base_url: str, timeout_seconds: float = http.DEFAULT_TIMEOUT_SECONDS):
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds

    def token_url(self, account: AccountConfig) -> str:
        return f"{self.base_url}/{account.token_document}"

    async def get_token(self, account: AccountConfig) -> MarketplaceToken:
        """Fetch and parse the token document of an account.

        Raises:
            TokenUnavailable: Source unreachable, bad status or no token in it
        """
        url = self.token_url(account)
        try:
            response = await http.request("GET", url, timeout_seconds=self.timeout_seconds)
        except UpstreamUnavailable as e:
            raise TokenUnavailable(f"Token source unreachable for {account.name}: {e}", step="token") from e

        if not response.ok:
            raise TokenUnavailable(
                f"Token source for {account.name} returned {response.status}",
                response.status,
                response.text,
                step="token",
            )

        if account.token_source_kind == TokenSourceKind.JSON:
            try:
                payload = response.json()
            except UpstreamUnavailable as e:
                raise TokenUnavailable(f"Token document for {account.name} is not JSON", step="token") from e
            access_token = payload.get("data") if isinstance(payload, dict) else None
            if not access_token:
                raise TokenUnavailable(f"Token document for {account.name} has no data field", step="token")
        else:
            access_token = extract_marker_token(response.text)

        return MarketplaceToken.from_access_token(access_token)
