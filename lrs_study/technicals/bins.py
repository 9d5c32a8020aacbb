from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_CEILING, ROUND_FLOOR, Decimal, InvalidOperation
from enum import Enum
import math


class BinPolicy(str, Enum):
    CEIL = "ceil"  # bullish slope rows: toward more positive
    FLOOR = "floor"  # bearish slope rows: toward more negative
    SIGNED = "signed"  # excursion columns: ceil when > 0, floor otherwise


@dataclass(frozen=True, order=True)
class BinKey:
    """Discretized reading. Equality, hashing and ordering are on the canonical Decimal."""

    value: Decimal

    def __post_init__(self) -> None:
        value = self.value
        if not isinstance(value, Decimal):
            value = _to_decimal(value)
        if value == 0:
            value = abs(value)
        object.__setattr__(self, "value", value)

    @classmethod
    def parse(cls, text: str) -> BinKey:
        try:
            return cls(Decimal(str(text).strip()))
        except InvalidOperation as exc:
            raise ValueError(f"Invalid bin key: {text!r}") from exc

    def __float__(self) -> float:
        return float(self.value)

    def __str__(self) -> str:
        return format(self.value, "f")


def _to_decimal(value: float | int | str | Decimal) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError(f"Cannot discretize non-finite value: {value}")
    # repr-based conversion keeps the printed digits (0.1 stays 0.1).
    return Decimal(repr(value)) if isinstance(value, float) else Decimal(str(value))


def discretize(value: float, step: float, policy: BinPolicy) -> BinKey:
    """Round `value` to a multiple of `step` in the direction `policy` requires."""
    step_d = _to_decimal(step)
    if step_d <= 0:
        raise ValueError("bin step must be > 0")
    value_d = _to_decimal(value)

    if policy is BinPolicy.CEIL:
        rounding = ROUND_CEILING
    elif policy is BinPolicy.FLOOR:
        rounding = ROUND_FLOOR
    elif policy is BinPolicy.SIGNED:
        rounding = ROUND_CEILING if value_d > 0 else ROUND_FLOOR
    else:  # pragma: no cover - exhaustive enum
        raise ValueError(f"Unknown bin policy: {policy}")

    multiples = (value_d / step_d).to_integral_value(rounding=rounding)
    binned = (multiples * step_d).quantize(step_d)
    return BinKey(binned)
