import pytest

from omnilearn import database
from omnilearn.checkout import (
    MANUAL_UPI_REFERENCE,
    CheckoutConflict,
    CheckoutError,
    CheckoutFlow,
    record_transactions,
)

from .conftest import coupon, make_item


def details(flow):
    flow.submit_details("Asha Rao", "asha@example.com", "9876543210")


def test_empty_cart_cannot_check_out():
    with pytest.raises(CheckoutError):
        CheckoutFlow([])


def test_details_move_to_payment():
    flow = CheckoutFlow([make_item()])
    assert flow.step == "details"
    details(flow)
    assert flow.step == "payment"
    flow.back_to_details()
    assert flow.step == "details"


@pytest.mark.parametrize("phone", ["12345", "98765abcde", ""])
def test_bad_phone_is_rejected(phone):
    flow = CheckoutFlow([make_item()])
    with pytest.raises(CheckoutError):
        flow.submit_details("Asha", "asha@example.com", phone)
    assert flow.step == "details"


def test_transactions_need_contact_details():
    flow = CheckoutFlow([make_item()])
    with pytest.raises(CheckoutError):
        flow.create_transactions("pending", "x")


@pytest.mark.parametrize("method", ["upi", "card", "netbanking"])
async def test_every_method_settles_pending(method):
    flow = CheckoutFlow([make_item(price=1000)])
    details(flow)
    txns = await flow.pay(method)
    assert flow.step == "pending"
    assert len(txns) == 1
    assert txns[0].status == "pending"
    assert txns[0].approval_status == "pending"


async def test_emi_needs_minimum_total():
    flow = CheckoutFlow([make_item(price=4999)])
    details(flow)
    with pytest.raises(CheckoutError):
        await flow.pay("emi")
    assert flow.step == "payment"

    flow = CheckoutFlow([make_item(price=5000)])
    details(flow)
    txns = await flow.pay("emi")
    assert txns[0].transaction_id.startswith("EMI-GATEWAY-")


async def test_unknown_method_is_rejected():
    flow = CheckoutFlow([make_item()])
    details(flow)
    with pytest.raises(CheckoutError):
        await flow.pay("crypto")


async def test_one_transaction_per_item_with_cart_total():
    items = [
        make_item("a", 1000, [coupon("X10", "percent", 10)]),
        make_item("b", 2000),
    ]
    flow = CheckoutFlow(items)
    assert flow.apply_coupon("x10").ok
    details(flow)
    txns = await flow.pay("upi")

    assert [t.course_id for t in txns] == ["a", "b"]
    assert all(t.amount == 2900 for t in txns)
    assert all(t.original_amount == 3000 for t in txns)
    assert all(t.coupon_code == "X10" for t in txns)
    assert all(t.transaction_id == MANUAL_UPI_REFERENCE for t in txns)
    assert len({t.date for t in txns}) == 1
    assert all(t.id.startswith("ORD-") and len(t.id) == 10 for t in txns)


def test_invalid_code_keeps_applied_coupon():
    flow = CheckoutFlow([make_item(price=1000, coupons=[coupon("X10", "percent", 10)])])
    flow.apply_coupon("X10")
    result = flow.apply_coupon("WRONG")
    assert not result.ok
    assert flow.final_total == 900
    flow.remove_coupon()
    assert flow.final_total == 1000


async def test_cancel_only_before_verification():
    flow = CheckoutFlow([make_item("first"), make_item("second")])
    assert flow.cancel() == "first"
    details(flow)
    assert flow.cancel() == "first"
    await flow.pay("upi")
    with pytest.raises(CheckoutError):
        flow.cancel()


def test_state_survives_dump_and_restore():
    flow = CheckoutFlow([make_item(price=1000, coupons=[coupon("X10", "percent", 10)])])
    flow.apply_coupon("X10")
    details(flow)
    restored = CheckoutFlow.restore(flow.dump())
    assert restored.step == "payment"
    assert restored.final_total == 900
    assert restored.state.customer.email == "asha@example.com"


async def test_record_transactions_keeps_going_after_a_failed_write(monkeypatch):
    flow = CheckoutFlow([make_item("a"), make_item("b")])
    details(flow)
    txns = await flow.pay("upi")

    keys = iter([None, "key-b"])

    async def fake_save(txn):
        return next(keys)

    monkeypatch.setattr(database, "save_transaction", fake_save)
    saved = await record_transactions(txns)
    assert saved[0].store_key is None
    assert saved[1].store_key == "key-b"


async def test_pay_stores_method_then_verification():
    flow = CheckoutFlow([make_item()])
    details(flow)
    seen = []

    async def persist(f, step, method):
        seen.append((step, method, f.step, f.state.method))
        return True

    await flow.pay("card", persist=persist)
    assert seen == [
        ("payment", None, "payment", "card"),
        ("payment", "card", "verification", "card"),
    ]


async def test_losing_the_stored_checkout_bills_nothing():
    flow = CheckoutFlow([make_item()])
    details(flow)

    async def taken(f, step, method):
        return False

    with pytest.raises(CheckoutConflict):
        await flow.pay("upi", persist=taken)


async def test_payment_underway_blocks_every_edit():
    flow = CheckoutFlow([make_item(price=1000, coupons=[coupon("X10", "percent", 10)])])
    details(flow)
    flow.state.method = "card"
    assert flow.payment_started
    for action in (flow.cancel, flow.back_to_details, flow.remove_coupon, lambda: flow.apply_coupon("X10")):
        with pytest.raises(CheckoutConflict):
            action()
    with pytest.raises(CheckoutConflict):
        await flow.pay("upi")


def test_replace_items_drops_a_coupon_no_item_lists():
    flow = CheckoutFlow([make_item("a", 1000, [coupon("X10", "percent", 10)])])
    flow.apply_coupon("X10")
    details(flow)
    flow.replace_items([make_item("a", 1000, [coupon("X10", "percent", 10)]), make_item("b", 2000)])
    assert flow.step == "payment"
    assert flow.final_total == 2900
    flow.replace_items([make_item("b", 2000)])
    assert flow.state.coupon is None
    assert flow.final_total == 2000
    with pytest.raises(CheckoutError):
        flow.replace_items([])
