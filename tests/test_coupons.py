from omnilearn.coupons import INVALID_CODE, apply_coupon, compute_discount, final_total, original_total

from .conftest import coupon, make_item


def test_percent_coupon():
    cart = [make_item(price=1000, coupons=[coupon("X10", "percent", 10)])]
    result = apply_coupon(cart, "X10")
    assert result.ok
    assert result.discount == 100
    assert final_total(cart, result.coupon) == 900


def test_flat_coupon_clamps_total_to_one():
    cart = [make_item(price=300, coupons=[coupon("FLAT500", "flat", 500)])]
    result = apply_coupon(cart, "FLAT500")
    assert result.discount == 500
    assert final_total(cart, result.coupon) == 1


def test_code_match_is_case_insensitive():
    cart = [make_item(coupons=[coupon("Welcome50", "percent", 50)])]
    result = apply_coupon(cart, "  welcome50 ")
    assert result.ok
    assert result.coupon.code == "Welcome50"


def test_code_reapplied_to_every_item_listing_it():
    cart = [
        make_item("a", 1000, [coupon("SAVE", "percent", 10)]),
        make_item("b", 2000, [coupon("save", "flat", 300)]),
        make_item("c", 500),
    ]
    result = apply_coupon(cart, "SAVE")
    # 10% of 1000 on the first item, flat 300 on the second, nothing on the third
    assert result.discount == 400
    assert final_total(cart, result.coupon) == 3100


def test_first_match_wins_in_cart_order():
    cart = [
        make_item("a", 1000, [coupon("DUP", "flat", 50, id_="first")]),
        make_item("b", 1000, [coupon("DUP", "flat", 70, id_="second")]),
    ]
    assert apply_coupon(cart, "dup").coupon.id == "first"


def test_unmatched_coupons_on_other_items_are_ignored():
    cart = [
        make_item("a", 1000, [coupon("A10", "percent", 10)]),
        make_item("b", 1000, [coupon("B20", "percent", 20)]),
    ]
    assert apply_coupon(cart, "A10").discount == 100


def test_unknown_code_is_rejected():
    cart = [make_item(coupons=[coupon("X10", "percent", 10)])]
    result = apply_coupon(cart, "NOPE")
    assert not result.ok
    assert result.error == INVALID_CODE


def test_blank_code_is_rejected():
    assert apply_coupon([make_item()], "   ").error


def test_totals_without_coupon():
    cart = [make_item("a", 400), make_item("b", 600)]
    assert original_total(cart) == 1000
    assert compute_discount(cart, None) == 0
    assert final_total(cart, None) == 1000
