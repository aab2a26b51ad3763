"""Property-based tests for settlement, discounts and ticket codes."""

from decimal import Decimal

from hypothesis import given
from hypothesis import strategies as st

from bookeros.services.codes import (
    ALPHANUMERIC_ALPHABET,
    generate_alphanumeric_code,
    generate_referral_code,
    is_valid_alphanumeric_code,
)
from bookeros.services.discount_service import apply_coupon_discount, apply_referral_discount
from bookeros.services.settlement import RetentionRates, compute_settlement

amounts = st.decimals(min_value=Decimal("0"), max_value=Decimal("1000000"), places=2)
rates = st.decimals(min_value=Decimal("0"), max_value=Decimal("20"), places=2)


@st.composite
def retention_rates(draw):
    return RetentionRates(
        platform_fee_rate=draw(rates),
        seller_commission_rate=draw(rates),
        tax_rate=draw(rates),
        bank_commission_rate=draw(rates),
        other_retentions_rate=draw(rates),
    )


def _parts(settlement):
    return (
        settlement.platform_fee
        + settlement.seller_commission
        + settlement.tax_amount
        + settlement.bank_commission
        + settlement.other_retentions
        + settlement.provider_payout
    )


@given(amount=amounts, retention=retention_rates(), cash=st.booleans())
def test_parts_add_up_to_gross(amount, retention, cash):
    settlement = compute_settlement(amount, retention, cash=cash)

    assert _parts(settlement) == settlement.gross_amount
    assert settlement.total_retentions == settlement.gross_amount - settlement.provider_payout


@given(amount=amounts, retention=retention_rates())
def test_payout_tracks_the_unretained_share(amount, retention):
    settlement = compute_settlement(amount, retention)

    expected = amount * (100 - retention.total_rate) / 100
    # Five portions, each off by at most half a cent
    assert abs(settlement.provider_payout - expected) <= Decimal("0.025")


@given(amount=st.decimals(min_value=Decimal("1"), max_value=Decimal("1000000"), places=2), retention=retention_rates())
def test_payout_positive_while_retentions_leave_room(amount, retention):
    if retention.total_rate <= 90:
        assert compute_settlement(amount, retention).provider_payout > 0


@given(amount=amounts, retention=retention_rates())
def test_cash_never_pays_bank_commission(amount, retention):
    card = compute_settlement(amount, retention)
    cash = compute_settlement(amount, retention, cash=True)

    assert cash.bank_commission == 0
    assert cash.provider_payout == card.provider_payout + card.bank_commission


@given(
    amount=amounts,
    discount_type=st.sampled_from(["percent", "fixed"]),
    value=st.decimals(min_value=Decimal("0"), max_value=Decimal("100000"), places=2),
)
def test_coupon_never_goes_negative_or_up(amount, discount_type, value):
    if discount_type == "percent":
        value = min(value, Decimal("100"))

    final = apply_coupon_discount(amount, discount_type, value)

    assert Decimal("0") <= final <= amount


@given(amount=amounts)
def test_referral_discount_within_bounds(amount):
    final = apply_referral_discount(amount, Decimal("10"))

    assert Decimal("0") <= final <= amount


@given(st.integers(min_value=0, max_value=50))
def test_generated_codes_are_valid(_):
    code = generate_alphanumeric_code()

    assert is_valid_alphanumeric_code(code)
    assert set(code.replace("-", "")) <= set(ALPHANUMERIC_ALPHABET)


@given(username=st.text(max_size=40))
def test_referral_codes_have_a_prefix_and_suffix(username):
    prefix, suffix = generate_referral_code(username).split("-")

    assert 1 <= len(prefix) <= 6
    assert prefix.isalnum() and prefix == prefix.upper()
    assert len(suffix) == 6
