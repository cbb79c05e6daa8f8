# src/watsonx_kit/auth/credential.py

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass(frozen=True)
class BearerCredential:
    """Short-lived access token and its expiry (unix seconds).

    Usable iff ``now < expires_at``. There is no early-refresh margin, so a
    token can still expire between the check and the request that uses it.
    """

    token: str = field(repr=False)
    expires_at: float

    def is_valid(self, now: float | None = None) -> bool:
        current = time.time() if now is None else now
        return current < self.expires_at

    @property
    def expires_at_datetime(self) -> datetime:
        return datetime.fromtimestamp(self.expires_at, tz=timezone.utc)

    @property
    def authorization(self) -> str:
        return f"Bearer {self.token}"
