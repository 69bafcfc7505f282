"""
Value model shared by the evaluator, resolver, extractor and calculator.

Evaluated attributes are plain Python values: ``str``, ``int``/``float``,
``bool``, ``list`` and ``dict``. Anything the evaluator deliberately leaves
unresolved is a ``Placeholder``, a ``str`` carrying a ``${...}`` token, so it
still flows through string handling and JSON serialization unchanged.
"""
import math
from decimal import Decimal
from typing import Any, Dict, List, Union

# Markers that identify a string value as an unresolved reference.
UNRESOLVED_MARKERS = ("${", "data.", "local.", "module.")


class Placeholder(str):
    """A string standing in for a value that could not be resolved."""

    __slots__ = ()

    def __repr__(self) -> str:
        return f"Placeholder({str.__repr__(self)})"


Value = Union[str, int, float, bool, List[Any], Dict[str, Any]]


def placeholder(token: str) -> Placeholder:
    """Wrap a token as ``${token}``."""
    return Placeholder("${" + token + "}")


UNSUPPORTED = placeholder("unsupported")
ELIDED_FRAGMENT = "${...}"


def is_unresolved(value: Any) -> bool:
    """
    Check whether a value is a string that still holds an unresolved reference.

    Args:
        value: Any evaluated value

    Returns:
        True for strings containing an interpolation token or a data, local
        or module reference
    """
    if not isinstance(value, str):
        return False
    return any(marker in value for marker in UNRESOLVED_MARKERS)


def format_value(value: Any) -> str:
    """
    Render a value as display text.

    Booleans render as ``true``/``false``, lists as ``[a b]`` and maps as
    ``map[k:v]`` with sorted keys. Equality conditions and template
    interpolation both compare and concatenate this form.

    Args:
        value: Any evaluated value

    Returns:
        Display string
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _format_float(value)
    if isinstance(value, str):
        return str(value)
    if isinstance(value, (list, tuple)):
        return "[" + " ".join(format_value(item) for item in value) + "]"
    if isinstance(value, dict):
        items = (f"{key}:{format_value(value[key])}" for key in sorted(value))
        return "map[" + " ".join(items) + "]"
    if value is None:
        return "<nil>"
    return str(value)


def _format_float(number: float) -> str:
    if math.isnan(number):
        return "NaN"
    if math.isinf(number):
        return "+Inf" if number > 0 else "-Inf"
    if number.is_integer():
        return str(int(number))

    decimal = Decimal(repr(number))
    exponent = decimal.adjusted()
    if -4 <= exponent < 21:
        text = format(decimal, "f")
        return text.rstrip("0").rstrip(".") if "." in text else text

    sign, digits, _ = decimal.as_tuple()
    digits_text = "".join(str(digit) for digit in digits).rstrip("0") or "0"
    mantissa = digits_text[0]
    if len(digits_text) > 1:
        mantissa += "." + digits_text[1:]
    exponent_sign = "-" if exponent < 0 else "+"
    return f"{'-' if sign else ''}{mantissa}e{exponent_sign}{abs(exponent):02d}"


def normalize_number(number: float) -> Union[int, float]:
    """Return an ``int`` when the number is finite and integral."""
    if isinstance(number, float) and math.isfinite(number) and number.is_integer():
        return int(number)
    return number
