"""
Checkout flow: details -> payment -> verification -> pending.

Every payment method is simulated. The gateway methods wait a fixed delay
before verification; all of them settle as a pending order that an admin
approves or rejects later.
"""

import asyncio
import logging
import random
import time
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Literal, Optional

from pydantic import BaseModel, ValidationError

from . import config, database
from .coupons import CouponResult, apply_coupon, find_coupon, compute_discount, final_total, original_total
from .schemas import CartItem, Coupon, CustomerDetails, Transaction

logger = logging.getLogger(__name__)

Step = Literal["details", "payment", "verification", "success", "pending"]
PaymentMethod = Literal["upi", "card", "emi", "netbanking"]

MANUAL_UPI_REFERENCE = "MANUAL-UPI-VERIFY"

# Called as persist(flow, stored_step, stored_method); False means the stored
# checkout no longer has that step and method.
Persist = Callable[["CheckoutFlow", str, Optional[str]], Awaitable[bool]]


class CheckoutError(Exception):
    pass


class CheckoutConflict(CheckoutError):
    """The checkout already has a payment underway, or was changed by another request."""


class CheckoutState(BaseModel):
    step: Step = "details"
    items: List[CartItem]
    customer: Optional[CustomerDetails] = None
    coupon: Optional[Coupon] = None
    method: Optional[PaymentMethod] = None


def order_number() -> str:
    return f"ORD-{random.randint(100000, 999999)}"


def gateway_reference(method: str) -> str:
    return f"{method.upper()}-GATEWAY-{int(time.time() * 1000)}"


class CheckoutFlow:
    def __init__(self, items: List[CartItem], state: Optional[CheckoutState] = None):
        if state is None:
            if not items:
                raise CheckoutError("Cart is empty")
            state = CheckoutState(items=list(items))
        self.state = state

    @classmethod
    def restore(cls, data: dict) -> "CheckoutFlow":
        return cls([], CheckoutState.model_validate(data))

    def dump(self) -> dict:
        return self.state.model_dump(mode="json")

    @property
    def step(self) -> str:
        return self.state.step

    @property
    def items(self) -> List[CartItem]:
        return self.state.items

    @property
    def original_total(self) -> int:
        return original_total(self.items)

    @property
    def discount(self) -> float:
        return compute_discount(self.items, self.state.coupon)

    @property
    def final_total(self) -> float:
        return final_total(self.items, self.state.coupon)

    @property
    def payment_started(self) -> bool:
        return self.state.method is not None or self.state.step not in ("details", "payment")

    def _require(self, *steps: str) -> None:
        if self.payment_started:
            raise CheckoutConflict("Payment is already underway")
        if self.state.step not in steps:
            raise CheckoutError(f"Not allowed during the {self.state.step} step")

    # --- coupons ---

    def apply_coupon(self, code: str) -> CouponResult:
        self._require("details", "payment")
        result = apply_coupon(self.items, code)
        # an invalid code leaves the applied coupon in place
        if result.ok:
            self.state.coupon = result.coupon
        return result

    def remove_coupon(self) -> None:
        self._require("details", "payment")
        self.state.coupon = None

    def replace_items(self, items: List[CartItem]) -> None:
        """Follow the live cart; a coupon no item lists any more is dropped."""
        self._require("details", "payment")
        if not items:
            raise CheckoutError("Cart is empty")
        self.state.items = list(items)
        coupon = self.state.coupon
        if coupon is not None:
            self.state.coupon = find_coupon(self.items, coupon.code)

    # --- steps ---

    def submit_details(self, name: str, email: str, phone: str) -> None:
        self._require("details")
        try:
            self.state.customer = CustomerDetails(name=name.strip(), email=email.strip(), phone=phone.strip())
        except ValidationError as e:
            fields = ", ".join(str(err["loc"][0]) for err in e.errors())
            raise CheckoutError(f"Invalid contact details: {fields}") from e
        self.state.step = "payment"

    def back_to_details(self) -> None:
        self._require("payment")
        self.state.step = "details"

    def cancel(self) -> Optional[str]:
        """Abandon checkout; returns the course to go back to, if any."""
        self._require("details", "payment")
        return self.items[0].id if self.items else None

    async def pay(self, method: str, persist: Optional[Persist] = None) -> List[Transaction]:
        """
        Run the simulated payment and return the pending orders.

        When persist is given, the chosen method and then the verification
        step are stored before each delay, each time only if the stored
        checkout is still where this one left it. Losing that race raises
        CheckoutConflict and nothing is billed.
        """
        self._require("payment")
        if method not in ("upi", "card", "emi", "netbanking"):
            raise CheckoutError(f"Unknown payment method: {method}")
        if method == "emi" and self.final_total < config.EMI_MINIMUM_TOTAL:
            raise CheckoutError(f"Minimum order value for EMI is {config.EMI_MINIMUM_TOTAL}")

        self.state.method = method
        await self._persist(persist, "payment", None)
        if method == "upi":
            reference = MANUAL_UPI_REFERENCE
        else:
            reference = gateway_reference(method)
            await asyncio.sleep(config.CHECKOUT_GATEWAY_DELAY)

        self.state.step = "verification"
        await self._persist(persist, "payment", method)
        await asyncio.sleep(config.CHECKOUT_VERIFY_DELAY)

        txns = self.create_transactions("pending", reference)
        self.state.step = "pending"
        logger.info("Checkout settled as pending: %s via %s for %s", reference, method, self.final_total)
        return txns

    async def _persist(self, persist: Optional[Persist], step: str, method: Optional[str]) -> None:
        if persist is not None and not await persist(self, step, method):
            logger.warning("Checkout changed by another request during %s", self.state.step)
            raise CheckoutConflict("Checkout was changed by another request")

    def create_transactions(self, status: str, reference: str) -> List[Transaction]:
        # One record per cart item; each carries the whole cart total.
        customer = self.state.customer
        if customer is None:
            raise CheckoutError("Contact details are missing")
        approval = {"pending": "pending", "success": "approved"}.get(status, "rejected")
        now = datetime.now(timezone.utc).isoformat()
        coupon = self.state.coupon
        return [
            Transaction(
                id=order_number(),
                transaction_id=reference,
                course_id=item.id,
                course_title=item.title,
                amount=self.final_total,
                original_amount=self.original_total,
                coupon_code=coupon.code if coupon else None,
                date=now,
                customer_name=customer.name,
                customer_email=customer.email,
                customer_phone=customer.phone,
                status=status,
                approval_status=approval,
            )
            for item in self.items
        ]

    def summary(self) -> dict:
        coupon = self.state.coupon
        return {
            "step": self.step,
            "items": [{"cartId": i.cart_id, "courseId": i.id, "title": i.title, "price": i.price} for i in self.items],
            "originalTotal": self.original_total,
            "discount": self.discount,
            "finalTotal": self.final_total,
            "couponCode": coupon.code if coupon else None,
            "emiAvailable": self.final_total >= config.EMI_MINIMUM_TOTAL,
        }


async def record_transactions(txns: List[Transaction]) -> List[Transaction]:
    """Persist each order; a failed write is logged and the rest still go through."""
    for txn in txns:
        key = await database.save_transaction(txn)
        if key:
            txn.store_key = key
        else:
            logger.warning("Order %s was not saved", txn.id)
    return txns
