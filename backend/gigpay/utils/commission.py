from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from gigpay.utils.money import CENT


@dataclass(frozen=True)
class FeeSplit:
    gross_amount: Decimal
    platform_fee: Decimal
    net_amount: Decimal

    def to_dict(self):
        return {
            "gross_amount": str(self.gross_amount),
            "platform_fee": str(self.platform_fee),
            "net_amount": str(self.net_amount),
        }


def split(gross_amount: Decimal, fee_rate: Decimal) -> FeeSplit:
    """Platform fee rounded half-up to the cent; the net is the exact remainder,
    so fee + net always equals the gross."""
    gross = Decimal(gross_amount)
    rate = Decimal(fee_rate)
    if gross <= 0:
        raise ValueError("gross amount must be positive")
    if rate < 0 or rate >= 1:
        raise ValueError("fee rate must be at least 0 and below 1")
    fee = (gross * rate).quantize(CENT, rounding=ROUND_HALF_UP)
    return FeeSplit(gross_amount=gross, platform_fee=fee, net_amount=gross - fee)
