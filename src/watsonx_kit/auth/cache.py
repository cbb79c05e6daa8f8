# src/watsonx_kit/auth/cache.py

import logging
import time
from collections.abc import Callable

from .credential import BearerCredential
from .issuer import TokenIssuer

logger = logging.getLogger(__name__)


class CredentialCache:
    """Holds the bearer credential for one client instance.

    Refreshes lazily through ``ensure_valid``. Concurrent callers that find
    the credential expired may each trigger an issuance; the last one to
    finish wins. Issuance has no side effects beyond minting a new token.
    """

    def __init__(
        self,
        issuer: TokenIssuer,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._issuer = issuer
        self._clock = clock
        self._credential: BearerCredential | None = None

    @property
    def credential(self) -> BearerCredential | None:
        return self._credential

    def is_valid(self) -> bool:
        return self._credential is not None and self._credential.is_valid(self._clock())

    async def ensure_valid(self) -> BearerCredential:
        """Return a usable credential, issuing a new one if absent or expired.

        Raises:
            TokenIssueError, httpx.TransportError: issuance failed. The
            previously cached credential, if any, is left in place.
        """
        credential = self._credential
        if credential is not None and credential.is_valid(self._clock()):
            return credential

        if credential is None:
            logger.debug("No bearer token cached, requesting one")
        else:
            logger.debug("Bearer token expired at %s, refreshing", credential.expires_at_datetime)
        return await self.refresh()

    async def refresh(self) -> BearerCredential:
        """Unconditionally replace the cached credential with a fresh one."""
        credential = await self._issuer.issue()
        self._credential = credential
        return credential
