# src/watsonx_kit/auth/issuer.py

import logging
from time import monotonic

import httpx
from pydantic import BaseModel, ValidationError

from watsonx_kit.errors import TokenIssueError
from watsonx_kit.observability import names
from watsonx_kit.observability.base import MetricsHook, NoOpMetricsHook

from .credential import BearerCredential

logger = logging.getLogger(__name__)

IAM_CLOUD_HOST = "iam.cloud.ibm.com"
TOKEN_PATH = "/identity/token"
APIKEY_GRANT_TYPE = "urn:ibm:params:oauth:grant-type:apikey"


class TokenResponse(BaseModel):
    access_token: str
    expiration: int  # unix seconds


def token_url(iam_host: str) -> str:
    """Identity endpoint for a bare host (``https`` assumed) or a full base URL."""
    base = iam_host if "://" in iam_host else f"https://{iam_host}"
    return base.rstrip("/") + TOKEN_PATH


class TokenIssuer:
    """Exchanges a long-lived API key for a bearer token.

    One POST per call, never retried here. Any non-2xx status or a body that
    does not match ``TokenResponse`` is a hard failure.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        iam_host: str = IAM_CLOUD_HOST,
        metrics_hook: MetricsHook = NoOpMetricsHook(),
    ) -> None:
        self._client = client
        self._api_key = api_key
        self.url = token_url(iam_host)
        self.metrics_hook = metrics_hook

    async def issue(self) -> BearerCredential:
        start = monotonic()
        logger.debug("Requesting bearer token from %s", self.url)

        try:
            credential = await self._request_token()
        except Exception:
            self.metrics_hook.increment(names.TOKEN_REFRESH_ERRORS_TOTAL)
            raise

        elapsed_ms = 1000 * (monotonic() - start)
        self.metrics_hook.record_latency(names.TOKEN_REFRESH_DURATION, elapsed_ms)
        self.metrics_hook.increment(names.TOKEN_REFRESH_TOTAL)
        logger.info(
            "Issued bearer token valid until %s (%.0fms)",
            credential.expires_at_datetime.isoformat(),
            elapsed_ms,
        )
        return credential

    async def _request_token(self) -> BearerCredential:
        response = await self._client.post(
            self.url,
            data={"grant_type": APIKEY_GRANT_TYPE, "apikey": self._api_key},
            headers={"Accept": "application/json"},
        )

        if not response.is_success:
            logger.error("Token request failed with status %d", response.status_code)
            raise TokenIssueError(
                f"token request failed with status code {response.status_code}: "
                f"{response.text}",
                status_code=response.status_code,
            )

        try:
            parsed = TokenResponse.model_validate_json(response.content)
        except ValidationError as e:
            raise TokenIssueError(
                f"malformed token response: {e}", status_code=response.status_code
            ) from e

        return BearerCredential(
            token=parsed.access_token, expires_at=float(parsed.expiration)
        )
