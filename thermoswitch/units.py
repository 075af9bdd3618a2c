"""
Temperature unit conversions.
The control loop works in Celsius; settings and display use 'c', 'f' or 'k'.
"""

UNITS = ("c", "f", "k")


def _check(units: str):
    if units not in UNITS:
        raise ValueError(f"Unrecognized units '{units}', use 'c', 'k' or 'f'")


def to_celsius(units: str, value: float) -> float:
    _check(units)
    if units == "k":
        return value - 273.15
    if units == "f":
        return (value - 32) / (9 / 5)
    return value


def from_celsius(units: str, value: float) -> float:
    _check(units)
    if units == "k":
        return value + 273.15
    if units == "f":
        return (value * (9 / 5)) + 32
    return value


def to_celsius_delta(units: str, value: float) -> float:
    """Convert a temperature difference (e.g. a tolerance) to Celsius degrees."""
    _check(units)
    if units == "f":
        return value * (5 / 9)
    return value
