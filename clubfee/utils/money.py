"""Integer currency helpers.

All amounts are whole won (the smallest currency unit). Nothing in here
touches floating point, so shares are reproducible across runs.
"""
from clubfee.core.exceptions import InvalidArgumentError


def _check_unit(unit: int) -> None:
    if unit <= 0:
        raise InvalidArgumentError(f"Rounding unit must be positive: {unit}")


def round_to_unit(amount: int, unit: int) -> int:
    """Round to the nearest multiple of unit, ties round up."""
    _check_unit(unit)
    return ((2 * amount + unit) // (2 * unit)) * unit


def split_evenly(total: int, count: int, unit: int) -> int:
    """
    Uniform per-person share of total among count people, rounded to unit.

    Equivalent to round_to_unit(total / count, unit) evaluated exactly.
    The rounding surplus or deficit is not redistributed.
    """
    _check_unit(unit)
    if count <= 0:
        raise InvalidArgumentError(f"Cannot split among {count} participants")
    # nearest multiple of unit to total/count: floor((total/count)/unit + 1/2)
    return ((2 * total + count * unit) // (2 * count * unit)) * unit


def format_won(amount: int) -> str:
    return f"{amount:,}원"
