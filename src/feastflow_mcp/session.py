import asyncio
import logging
import re
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Optional, TypeVar

from feastflow_mcp.errors import AuthError, GatewayError, ValidationError
from feastflow_mcp.gateway import ApiGateway
from feastflow_mcp.models import AuthResult, Identity
from feastflow_mcp.notify import Notifier
from feastflow_mcp.storage import TOKEN_KEY, StoragePort

if TYPE_CHECKING:
    from feastflow_mcp.state import CartStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

EMAIL_RE = re.compile(r"\S+@\S+\.\S+")
MIN_PASSWORD_LENGTH = 6
MAX_NAME_LENGTH = 100
MAX_EMAIL_LENGTH = 255


class LoadingState(str, Enum):
    LOADING = "loading"
    READY = "ready"


def _validate_email(email: str) -> None:
    if not email.strip():
        raise ValidationError("Email is required")
    if not EMAIL_RE.search(email):
        raise ValidationError("Invalid email")


def _validate_password(password: str) -> None:
    if not password:
        raise ValidationError("Password is required")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        )


def validate_login(email: str, password: str) -> None:
    _validate_email(email)
    _validate_password(password)


def validate_registration(name: str, email: str, password: str) -> None:
    if not name.strip():
        raise ValidationError("Name is required")
    if len(name.strip()) > MAX_NAME_LENGTH:
        raise ValidationError("Name too long")
    _validate_email(email)
    if len(email) > MAX_EMAIL_LENGTH:
        raise ValidationError("Email too long")
    _validate_password(password)


class SessionStore:
    """Authentication lifecycle and role derivation.

    The credential is persisted under TOKEN_KEY; the identity only lives in
    memory and is re-fetched by restore() at startup. Any change of session
    bumps an epoch so responses that arrive for an older session are dropped.
    """

    def __init__(
        self,
        storage: StoragePort,
        gateway: ApiGateway,
        cart: "CartStore",
        notifier: Optional[Notifier] = None,
    ):
        self._storage = storage
        self._gateway = gateway
        self._cart = cart
        self._notifier = notifier or Notifier()
        self._epoch = 0
        self._clear_listeners: list[Callable[[], None]] = []

        self.credential: Optional[str] = storage.get(TOKEN_KEY) or None
        self.identity: Optional[Identity] = None
        self.loading_state = (
            LoadingState.LOADING if self.credential else LoadingState.READY
        )
        gateway.bind_credential(lambda: self.credential)

    # --- derived state ---

    @property
    def role(self) -> Optional[str]:
        return self.identity.role if self.identity else None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def is_ready(self) -> bool:
        return self.loading_state == LoadingState.READY

    @property
    def is_authenticated(self) -> Optional[bool]:
        """None while a stored credential is still being checked."""
        if not self.is_ready:
            return None
        return self.identity is not None

    def add_clear_listener(self, listener: Callable[[], None]) -> None:
        """Called whenever a held session ends: logout, expiry, or another login."""
        self._clear_listeners.append(listener)

    # --- transitions ---

    def _notify_cleared(self) -> None:
        for listener in list(self._clear_listeners):
            listener()

    def _accept(self, result: AuthResult) -> Identity:
        replaced = self.credential is not None and self.credential != result.token
        if replaced:
            self._notify_cleared()
        self._epoch += 1
        self.credential = result.token
        self.identity = result.user
        self.loading_state = LoadingState.READY
        self._storage.set(TOKEN_KEY, result.token)
        return result.user

    def _clear(self) -> bool:
        had_session = self.credential is not None
        self._epoch += 1
        self.credential = None
        self.identity = None
        self.loading_state = LoadingState.READY
        self._storage.remove(TOKEN_KEY)
        if had_session:
            self._notify_cleared()
        return had_session

    async def restore(self) -> Optional[Identity]:
        """Resolve a persisted credential into an identity."""
        if not self.credential:
            self.loading_state = LoadingState.READY
            return None

        epoch = self._epoch
        self.loading_state = LoadingState.LOADING
        try:
            identity = await asyncio.to_thread(self._gateway.get_profile)
        except GatewayError as e:
            if epoch == self._epoch:
                logger.info(f"Stored credential rejected ({e}); starting signed out")
                self._clear()
            return None

        if epoch != self._epoch:
            logger.debug("Discarding profile for a session that has since changed")
            return self.identity
        self.identity = identity
        self.loading_state = LoadingState.READY
        return identity

    async def login(self, email: str, password: str) -> Optional[Identity]:
        email = email.strip()
        validate_login(email, password)
        epoch = self._epoch
        result = await asyncio.to_thread(self._gateway.login, email, password)
        if epoch != self._epoch:
            logger.debug("Discarding login response for a superseded session")
            return None
        identity = self._accept(result)
        self._notifier.success("Welcome back!")
        logger.info(f"Signed in as {identity.email} ({identity.role})")
        return identity

    async def register(self, name: str, email: str, password: str) -> Optional[Identity]:
        name, email = name.strip(), email.strip()
        validate_registration(name, email, password)
        epoch = self._epoch
        result = await asyncio.to_thread(self._gateway.register, name, email, password)
        if epoch != self._epoch:
            logger.debug("Discarding register response for a superseded session")
            return None
        identity = self._accept(result)
        self._notifier.success("Account created!")
        logger.info(f"Registered {identity.email}")
        return identity

    def logout(self) -> None:
        had_session = self._clear()
        self._cart.erase()
        if had_session:
            self._notifier.success("Logged out")

    def expire(self) -> None:
        """Global policy for a rejected credential: sign out and ask to log in."""
        logger.warning("Credential rejected by the API; clearing session")
        self._clear()
        self._cart.erase()
        self._notifier.error("Session expired, please log in again")

    async def request(self, call: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run a gateway call off the event loop, applying the expiry policy."""
        epoch = self._epoch
        try:
            return await asyncio.to_thread(call, *args, **kwargs)
        except AuthError as e:
            if e.credential_sent and epoch == self._epoch:
                self.expire()
            raise

    def to_dict(self) -> dict[str, Any]:
        return {
            "authenticated": self.is_authenticated,
            "loading": self.loading_state.value,
            "role": self.role,
            "user": self.identity.model_dump(mode="json") if self.identity else None,
        }
