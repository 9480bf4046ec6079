"""
Precision context for decimal evaluation.

A PrecisionConfig pairs the number of significant digits with a rounding
mode and produces the ``decimal.Context`` one evaluation runs under.
"""

import decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .core.config import get_settings
from .core.errors import ExpressionArithmeticError

# Short names accepted for rounding modes, mapped to decimal's constants
ROUNDING_MODES = {
    "UP": decimal.ROUND_UP,
    "DOWN": decimal.ROUND_DOWN,
    "CEILING": decimal.ROUND_CEILING,
    "FLOOR": decimal.ROUND_FLOOR,
    "HALF_UP": decimal.ROUND_HALF_UP,
    "HALF_DOWN": decimal.ROUND_HALF_DOWN,
    "HALF_EVEN": decimal.ROUND_HALF_EVEN,
    "05UP": decimal.ROUND_05UP,
}


def normalize_rounding(mode: Any) -> str:
    """
    Resolve a rounding mode given by name or decimal constant.

    Args:
        mode: ``"half_up"``, ``"HALF_UP"`` or ``decimal.ROUND_HALF_UP``

    Returns:
        The decimal module constant (e.g. ``"ROUND_HALF_UP"``)

    Raises:
        ExpressionArithmeticError: If the mode is not a known rounding mode
    """
    if isinstance(mode, str):
        key = mode.strip().upper()
        if key.startswith("ROUND_"):
            key = key[len("ROUND_"):]
        if key in ROUNDING_MODES:
            return ROUNDING_MODES[key]
    raise ExpressionArithmeticError(
        f"Invalid rounding mode: {mode!r}", details={"rounding": str(mode)}
    )


class PrecisionConfig(BaseModel):
    """
    Significant digits and rounding policy for one evaluation.

    Attributes:
        precision: Number of significant digits (>= 1)
        rounding: decimal rounding constant, e.g. ``ROUND_HALF_UP``
    """

    model_config = ConfigDict(validate_assignment=True)

    precision: int = Field(default=7, ge=1)
    rounding: str = decimal.ROUND_HALF_UP

    @field_validator("rounding", mode="before")
    @classmethod
    def _check_rounding(cls, value: Any) -> str:
        try:
            return normalize_rounding(value)
        except ExpressionArithmeticError as exc:
            raise ValueError(exc.message) from exc

    @classmethod
    def from_settings(cls) -> "PrecisionConfig":
        """Create the default configuration from library settings."""
        settings = get_settings()
        return cls.build(settings.DEFAULT_PRECISION, settings.DEFAULT_ROUNDING)

    @classmethod
    def build(cls, precision: int, rounding: Any) -> "PrecisionConfig":
        """
        Validate and create a configuration.

        Raises:
            ExpressionArithmeticError: If precision or rounding is invalid
        """
        try:
            return cls(precision=precision, rounding=rounding)
        except ValidationError as exc:
            raise ExpressionArithmeticError(
                f"Invalid precision context: {_first_error(exc)}",
                details={"precision": precision, "rounding": str(rounding)},
            ) from exc

    def with_precision(self, precision: int) -> "PrecisionConfig":
        return PrecisionConfig.build(precision, self.rounding)

    def with_rounding(self, rounding: Any) -> "PrecisionConfig":
        return PrecisionConfig.build(self.precision, rounding)

    def to_decimal_context(self) -> decimal.Context:
        """Create a fresh decimal.Context; default traps stay enabled."""
        return decimal.Context(prec=self.precision, rounding=self.rounding)


def _first_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    return errors[0].get("msg", str(exc))


def strip_zeros(value: decimal.Decimal) -> decimal.Decimal:
    """Drop trailing zeros without rounding away any significant digit."""
    if not value.is_finite():
        return value
    if value.is_zero():
        return decimal.Decimal(0)
    digits = len(value.as_tuple().digits)
    stripped = value.normalize(decimal.Context(prec=digits))
    if stripped.as_tuple().exponent > 0:
        # 1E+2 becomes 100
        return stripped.quantize(decimal.Decimal(1), context=decimal.Context(prec=stripped.adjusted() + 1))
    return stripped
