"""Bearer credential lifecycle: IAM token issuance and the per-client cache."""

from .cache import CredentialCache
from .credential import BearerCredential
from .issuer import IAM_CLOUD_HOST, TokenIssuer, TokenResponse

__all__ = [
    "BearerCredential",
    "CredentialCache",
    "IAM_CLOUD_HOST",
    "TokenIssuer",
    "TokenResponse",
]
