"""services/unit_converter.py: Fixed-table unit conversion for the tools panel."""

import math

CATEGORIES = {
    "length": {
        "m": 1, "cm": 0.01, "mm": 0.001, "km": 1000,
        "in": 0.0254, "ft": 0.3048, "yd": 0.9144, "mi": 1609.344,
    },
    "mass": {
        "kg": 1, "g": 0.001, "mg": 0.000001, "lb": 0.453592, "oz": 0.0283495,
    },
    "temperature": {"C": None, "F": None, "K": None},
    "angle": {
        "rad": 1, "deg": math.pi / 180, "grad": math.pi / 200,
    },
}


class ConversionError(ValueError):
    pass


def list_units() -> dict:
    return {name: list(units) for name, units in CATEGORIES.items()}


def convert_temperature(value: float, from_unit: str, to_unit: str) -> float:
    celsius = value
    if from_unit == "F":
        celsius = (value - 32) * 5 / 9
    elif from_unit == "K":
        celsius = value - 273.15

    if to_unit == "F":
        return celsius * 9 / 5 + 32
    if to_unit == "K":
        return celsius + 273.15
    return celsius


def _strip_zeros(text: str) -> str:
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return "0" if text == "-0" else text


def convert(category: str, value: float, from_unit: str, to_unit: str) -> str:
    """
    Convert *value* and return the display string: 4 fixed decimals for
    temperature, otherwise 6 decimals with trailing zeros removed.
    """
    units = CATEGORIES.get(category)
    if units is None:
        raise ConversionError(f"Unknown category: {category}")
    for unit in (from_unit, to_unit):
        if unit not in units:
            raise ConversionError(f"Unknown {category} unit: {unit}")
    if not math.isfinite(value):
        raise ConversionError("Value must be a finite number")

    if category == "temperature":
        return f"{convert_temperature(value, from_unit, to_unit):.4f}"

    result = value * units[from_unit] / units[to_unit]
    return _strip_zeros(f"{result:.6f}")
