import logging
import time
from typing import List, Optional

from pydantic import TypeAdapter, ValidationError
from pymongo.errors import PyMongoError

from . import database
from .checkout import CheckoutConflict, CheckoutFlow
from .schemas import CartItem, Course

logger = logging.getLogger(__name__)

CART_KEY = "omnilearn_cart"
ADMIN_AUTH_KEY = "omnilearn_admin_auth"
CHECKOUT_KEY = "checkout"

_cart_adapter = TypeAdapter(List[CartItem])


def new_cart_id() -> str:
    return str(time.time_ns())


class Session:
    """Per-visitor state: the cart, the admin flag and any checkout in progress."""

    def __init__(self, session_id: str, cart: Optional[List[CartItem]] = None,
                 admin_auth: bool = False, checkout: Optional[CheckoutFlow] = None):
        self.id = session_id
        self.cart: List[CartItem] = cart or []
        self.admin_auth = admin_auth
        self.checkout = checkout

    @classmethod
    async def load(cls, session_id: str) -> "Session":
        try:
            data = await database.get_value(database.SESSIONS, session_id) or {}
        except PyMongoError as e:
            logger.error("Error loading session: %s", e)
            data = {}

        try:
            cart = _cart_adapter.validate_python(data.get(CART_KEY) or [])
        except ValidationError as e:
            logger.warning("Discarding unreadable cart for session %s: %s", session_id, e)
            cart = []

        checkout = None
        if data.get(CHECKOUT_KEY):
            try:
                checkout = CheckoutFlow.restore(data[CHECKOUT_KEY])
            except ValidationError as e:
                logger.warning("Discarding unreadable checkout for session %s: %s", session_id, e)

        return cls(session_id, cart, data.get(ADMIN_AUTH_KEY) == "true", checkout)

    async def save(self) -> None:
        data = {CART_KEY: [item.model_dump(mode="json", by_alias=True) for item in self.cart]}
        if self.admin_auth:
            data[ADMIN_AUTH_KEY] = "true"
        if self.checkout is not None:
            data[CHECKOUT_KEY] = self.checkout.dump()
        try:
            await database.set_value(database.SESSIONS, self.id, data)
        except PyMongoError as e:
            logger.error("Error saving session %s: %s", self.id, e)
            raise database.StoreError("Failed to save session") from e

    async def store_checkout(self, flow: CheckoutFlow, step: str, method: Optional[str]) -> bool:
        """Store flow only if the stored checkout is still at step with method chosen."""
        return await self._update_checkout(flow.dump(), step, method)

    async def drop_checkout(self) -> bool:
        """Clear the stored checkout unless a payment has started on it meanwhile."""
        if self.checkout is None:
            return True
        if not await self._update_checkout(None, self.checkout.step, None):
            return False
        self.checkout = None
        return True

    async def _update_checkout(self, value: Optional[dict], step: str, method: Optional[str]) -> bool:
        where = {f"{CHECKOUT_KEY}.step": step, f"{CHECKOUT_KEY}.method": method}
        try:
            return await database.update_value(database.SESSIONS, self.id, {CHECKOUT_KEY: value}, where=where)
        except PyMongoError as e:
            logger.error("Error updating checkout for session %s: %s", self.id, e)
            raise database.StoreError("Failed to save checkout") from e

    # --- cart ---
    # An open checkout follows the cart; once payment has started the cart is locked.

    def _check_cart_editable(self) -> None:
        if self.checkout is not None and self.checkout.payment_started:
            raise CheckoutConflict("Cart is locked while a payment is underway")

    def _sync_checkout(self) -> None:
        if self.checkout is None:
            return
        if self.cart:
            self.checkout.replace_items(self.cart)
        else:
            self.checkout = None

    def add_to_cart(self, course: Course) -> CartItem:
        self._check_cart_editable()
        item = CartItem(**course.model_dump(), cart_id=new_cart_id())
        self.cart.append(item)
        self._sync_checkout()
        return item

    def buy_now(self, course: Course) -> CartItem:
        self._check_cart_editable()
        self.cart = []
        return self.add_to_cart(course)

    def remove_from_cart(self, cart_id: str) -> bool:
        self._check_cart_editable()
        before = len(self.cart)
        self.cart = [i for i in self.cart if i.cart_id != cart_id]
        if len(self.cart) == before:
            return False
        self._sync_checkout()
        return True

    def clear_cart(self) -> None:
        self.cart = []

    # --- admin ---

    def login(self) -> None:
        self.admin_auth = True

    def logout(self) -> None:
        self.admin_auth = False
