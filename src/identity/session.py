"""Signed-in customer session.

Tracks who is signed in and with which bearer token, persisted under
``auth-storage`` as ``{user, token, isAuthenticated}``. Signing in hands the
token to the API client and merges the guest cart into the customer's server
cart; signing out drops both.

Token issuance happens elsewhere: ``login`` adopts a token the auth
service already handed out.
"""

import pydantic
import structlog
from pydantic import AliasChoices, ConfigDict, Field
from shared.http import ApiClient
from shared.schemas import WireModel
from shared.storage import AUTH_STORAGE_KEY, LocalStore

from ordering.cart.cart import Cart
from ordering.cart.engine import CartEngine

logger = structlog.get_logger(__name__)


class UserSchema(WireModel):
    model_config = ConfigDict(extra="allow")

    id: str = Field(validation_alias=AliasChoices("_id", "id"), serialization_alias="_id")
    name: str = ""
    email: str = ""
    role: str = "customer"


class AuthState(WireModel):
    user: UserSchema | None = None
    token: str | None = None
    is_authenticated: bool = False


def load_auth_state(store: LocalStore) -> AuthState:
    document = store.get(AUTH_STORAGE_KEY)
    if document is None:
        return AuthState()
    try:
        state = AuthState.model_validate(document)
    except pydantic.ValidationError as e:
        logger.warning("Discarding unreadable auth state", errors=e.error_count())
        store.remove(AUTH_STORAGE_KEY)
        return AuthState()
    if state.is_authenticated and not state.token:
        return AuthState()
    return state


class AuthSession:
    def __init__(self, api: ApiClient, cart: CartEngine, store: LocalStore) -> None:
        self.api = api
        self.cart = cart
        self.store = store
        self._state = load_auth_state(store)
        self.api.set_token(self._state.token if self._state.is_authenticated else None)

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def is_authenticated(self) -> bool:
        return self._state.is_authenticated

    @property
    def user(self) -> UserSchema | None:
        return self._state.user

    async def login(self, token: str, user: UserSchema | dict) -> Cart:
        """Adopt a signed-in session and merge the guest cart into the server cart.

        The sign-in is persisted before the merge starts. If the merge fails
        part-way, the error propagates and ``cart.reconcile()`` may be called
        again: merged lines have already left the guest cart.
        """
        user = user if isinstance(user, UserSchema) else UserSchema.model_validate(user)
        self._state = AuthState(user=user, token=token, is_authenticated=True)
        self.store.set(AUTH_STORAGE_KEY, self._state.to_wire())
        self.api.set_token(token)
        logger.info("Customer signed in", user_id=user.id)
        return await self.cart.reconcile()

    def logout(self) -> Cart:
        user_id = self._state.user.id if self._state.user else None
        self._state = AuthState()
        self.store.remove(AUTH_STORAGE_KEY)
        self.api.set_token(None)
        logger.info("Customer signed out", user_id=user_id)
        return self.cart.logout()
