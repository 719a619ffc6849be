import pytest
from pymongo.errors import PyMongoError

from omnilearn import database
from omnilearn.checkout import CheckoutConflict, CheckoutFlow
from omnilearn.schemas import Course
from omnilearn.session import ADMIN_AUTH_KEY, CART_KEY, CHECKOUT_KEY, Session

COURSE = Course(id="c1", title="React", price=5999)


async def test_new_session_is_empty():
    session = await Session.load("fresh")
    assert session.cart == []
    assert not session.admin_auth
    assert session.checkout is None


async def test_cart_and_auth_round_trip():
    session = await Session.load("s1")
    first = session.add_to_cart(COURSE)
    session.add_to_cart(COURSE)
    session.login()
    session.checkout = CheckoutFlow(session.cart)
    await session.save()

    stored = await database.get_value(database.SESSIONS, "s1")
    assert stored[ADMIN_AUTH_KEY] == "true"
    assert stored[CART_KEY][0]["cartId"] == first.cart_id

    loaded = await Session.load("s1")
    assert [i.cart_id for i in loaded.cart] == [i.cart_id for i in session.cart]
    assert loaded.admin_auth
    assert loaded.checkout.original_total == 2 * 5999


async def test_cart_price_is_frozen_at_add_time():
    session = await Session.load("s2")
    session.add_to_cart(COURSE)
    await session.save()
    await database.save_course(Course(id="c1", title="React", price=99))

    loaded = await Session.load("s2")
    assert loaded.cart[0].price == 5999


async def test_buy_now_replaces_cart_and_remove():
    session = await Session.load("s3")
    session.add_to_cart(Course(id="c2", title="Go", price=100))
    item = session.buy_now(COURSE)
    assert [i.id for i in session.cart] == ["c1"]
    assert session.remove_from_cart(item.cart_id)
    assert not session.remove_from_cart(item.cart_id)


async def test_logout_drops_the_flag():
    session = await Session.load("s4")
    session.login()
    await session.save()
    session.logout()
    await session.save()
    assert ADMIN_AUTH_KEY not in await database.get_value(database.SESSIONS, "s4")


async def test_unreadable_cart_is_discarded():
    await database.set_value(database.SESSIONS, "s5", {CART_KEY: [{"title": 3}], ADMIN_AUTH_KEY: "true"})
    session = await Session.load("s5")
    assert session.cart == []
    assert session.admin_auth


async def test_open_checkout_follows_cart_changes():
    session = await Session.load("s6")
    first = session.add_to_cart(COURSE)
    session.checkout = CheckoutFlow(session.cart)
    session.add_to_cart(Course(id="c2", title="Go", price=100))
    session.remove_from_cart(first.cart_id)
    assert [i.id for i in session.checkout.items] == ["c2"]
    assert session.checkout.original_total == 100

    session.remove_from_cart(session.cart[0].cart_id)
    assert session.checkout is None


async def test_cart_is_locked_once_payment_started():
    session = await Session.load("s7")
    item = session.add_to_cart(COURSE)
    session.checkout = CheckoutFlow(session.cart)
    session.checkout.state.method = "upi"
    with pytest.raises(CheckoutConflict):
        session.add_to_cart(COURSE)
    with pytest.raises(CheckoutConflict):
        session.remove_from_cart(item.cart_id)
    with pytest.raises(CheckoutConflict):
        session.buy_now(COURSE)
    assert len(session.cart) == 1


async def test_checkout_is_stored_only_from_the_expected_state():
    session = await Session.load("s8")
    session.add_to_cart(COURSE)
    flow = session.checkout = CheckoutFlow(session.cart)
    await session.save()

    flow.state.method = "card"
    assert await session.store_checkout(flow, "details", None)
    # the stored checkout now has a method, so a second claim misses
    assert not await session.store_checkout(flow, "details", None)
    stored = await database.get_value(database.SESSIONS, "s8")
    assert stored[CHECKOUT_KEY]["method"] == "card"

    stale = await Session.load("s8")
    stale.checkout.state.method = None
    assert not await stale.drop_checkout()
    assert (await Session.load("s8")).checkout is not None


async def test_drop_checkout():
    session = await Session.load("s9")
    session.add_to_cart(COURSE)
    session.checkout = CheckoutFlow(session.cart)
    await session.save()
    assert await session.drop_checkout()
    assert session.checkout is None
    assert (await Session.load("s9")).checkout is None


async def test_failed_save_raises_store_error(monkeypatch):
    async def broken(*args, **kwargs):
        raise PyMongoError("down")

    monkeypatch.setattr(database, "set_value", broken)
    session = await Session.load("s10")
    session.login()
    with pytest.raises(database.StoreError):
        await session.save()
