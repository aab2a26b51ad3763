"""Settlement calculator: splits a gross amount into fees, retentions and payout."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def to_money(value: Any) -> Decimal:
    """Coerce to a Decimal rounded to cents."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class RetentionRates:
    """Percentage rates (0-100) applied at settlement time."""

    platform_fee_rate: Decimal = Decimal("5")
    seller_commission_rate: Decimal = Decimal("10")
    tax_rate: Decimal = Decimal("16")
    bank_commission_rate: Decimal = Decimal("3")
    other_retentions_rate: Decimal = Decimal("2")

    @classmethod
    def from_config(cls, config: Any | None) -> "RetentionRates":
        """Build rates from a RetentionConfig row, falling back to defaults when absent."""
        if config is None:
            return DEFAULT_RETENTION_RATES
        return cls(
            platform_fee_rate=Decimal(str(config.platform_fee_rate)),
            seller_commission_rate=Decimal(str(config.seller_commission_rate)),
            tax_rate=Decimal(str(config.tax_rate)),
            bank_commission_rate=Decimal(str(config.bank_commission_rate)),
            other_retentions_rate=Decimal(str(config.other_retentions_rate)),
        )

    @property
    def total_rate(self) -> Decimal:
        return (
            self.platform_fee_rate
            + self.seller_commission_rate
            + self.tax_rate
            + self.bank_commission_rate
            + self.other_retentions_rate
        )


DEFAULT_RETENTION_RATES = RetentionRates()


@dataclass(frozen=True)
class Settlement:
    gross_amount: Decimal
    platform_fee: Decimal
    seller_commission: Decimal
    tax_amount: Decimal
    bank_commission: Decimal
    other_retentions: Decimal
    provider_payout: Decimal

    @property
    def total_retentions(self) -> Decimal:
        return self.gross_amount - self.provider_payout


def _portion(amount: Decimal, rate: Decimal) -> Decimal:
    return (amount * rate / HUNDRED).quantize(CENT, rounding=ROUND_HALF_UP)


def compute_settlement(
    gross_amount: Any,
    rates: RetentionRates = DEFAULT_RETENTION_RATES,
    cash: bool = False,
) -> Settlement:
    """
    Compute the settlement breakdown for a gross booking amount.

    Each portion is ``gross * rate / 100`` rounded half-up to cents. Cash
    settlements carry no bank commission. The payout is whatever remains
    after every portion, so the parts always add back up to the gross.

    Args:
        gross_amount: Amount charged to the customer
        rates: Retention percentages to apply
        cash: True when the booking was paid in cash

    Returns:
        Settlement breakdown
    """
    gross = to_money(gross_amount)
    if gross < 0:
        raise ValueError("gross_amount must be non-negative")

    platform_fee = _portion(gross, rates.platform_fee_rate)
    seller_commission = _portion(gross, rates.seller_commission_rate)
    tax_amount = _portion(gross, rates.tax_rate)
    bank_commission = Decimal("0.00") if cash else _portion(gross, rates.bank_commission_rate)
    other_retentions = _portion(gross, rates.other_retentions_rate)

    provider_payout = (
        gross - platform_fee - seller_commission - tax_amount - bank_commission - other_retentions
    )

    return Settlement(
        gross_amount=gross,
        platform_fee=platform_fee,
        seller_commission=seller_commission,
        tax_amount=tax_amount,
        bank_commission=bank_commission,
        other_retentions=other_retentions,
        provider_payout=provider_payout,
    )
