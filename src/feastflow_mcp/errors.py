"""Error taxonomy shared by the stores, the gateway and the tools.

ValidationError and GatewayError are recovered where the call was made and
shown to the user. AuthError additionally runs the session-clear path.
PersistenceError never leaves the storage/cart boundary.
"""

from typing import Optional


class StorefrontError(Exception):
    """Base class for every error raised by this package."""


class ValidationError(StorefrontError):
    """Client-side input failed a precondition; nothing was sent."""


class GatewayError(StorefrontError):
    """Non-2xx response or transport failure from the remote API."""

    def __init__(self, status: Optional[int], message: str):
        super().__init__(message)
        self.status = status
        self.message = message

    def __str__(self) -> str:
        if self.status is None:
            return self.message
        return f"{self.message} (HTTP {self.status})"


class AuthError(GatewayError):
    """Credential invalid or expired."""

    def __init__(
        self,
        message: str = "Invalid credentials",
        status: int = 401,
        credential_sent: bool = False,
    ):
        super().__init__(status, message)
        # False for a failed login; True when a held credential was rejected.
        self.credential_sent = credential_sent


class PersistenceError(StorefrontError):
    """Persisted local data could not be read back."""
