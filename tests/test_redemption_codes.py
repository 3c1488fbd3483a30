import pytest

from storefront.billing.redemption import (
    CODE_ALPHABET,
    RedemptionCodeIssuer,
    generate_code,
    normalize_code,
)
from storefront.errors import CodeGenerationExhausted
from storefront.extensions import db
from storefront.models import RedemptionCode


def test_generated_codes_use_unambiguous_alphabet():
    for _ in range(50):
        code = generate_code(8)
        assert len(code) == 8
        assert set(code) <= set(CODE_ALPHABET)
        assert not set(code) & set("01IOL")


def test_normalize_code():
    assert normalize_code("  7k2pxq ") == "7K2PXQ"
    assert normalize_code(None) == ""


def test_issue_is_idempotent_per_order(store, make_shop, make_order, fixed_codes):
    order = make_order(make_shop())
    issuer = RedemptionCodeIssuer(store, generator=fixed_codes("AAAA2222", "BBBB3333"))

    first = issuer.issue(order.id, order.shop_id)
    second = issuer.issue(order.id, order.shop_id)
    db.session.commit()

    assert first.code == "AAAA2222"
    assert second.id == first.id
    assert db.session.query(RedemptionCode).count() == 1


def test_collision_retries_with_new_code(store, make_shop, make_order, fixed_codes):
    """A code already bound to another order is never reused"""
    shop = make_shop()
    first_order = make_order(shop)
    second_order = make_order(shop)
    issuer = RedemptionCodeIssuer(store, generator=fixed_codes("AAAA2222", "AAAA2222", "CCCC4444"))

    issuer.issue(first_order.id, shop.id)
    code = issuer.issue(second_order.id, shop.id)
    db.session.commit()

    assert code.code == "CCCC4444"
    assert code.order_id == second_order.id


def test_exhaustion_raises(store, make_shop, make_order):
    shop = make_shop()
    taken = make_order(shop)
    issuer = RedemptionCodeIssuer(store, generator=lambda length: "SAME2222", max_attempts=3)
    issuer.issue(taken.id, shop.id)
    db.session.commit()

    other = make_order(shop)
    with pytest.raises(CodeGenerationExhausted) as exc:
        issuer.issue(other.id, shop.id)

    assert exc.value.payload == {"order_id": other.id}
    assert exc.value.may_have_been_charged is True
