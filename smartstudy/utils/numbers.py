from decimal import ROUND_HALF_UP, Decimal


def round_rating(value) -> float:
    """Round to one decimal place, halves away from zero.

    Every rating average in the API goes through this function so a note's
    stored average and its review statistics always agree.
    """
    if not value:
        return 0.0
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def mean(values) -> float:
    values = list(values)
    return sum(values) / len(values) if values else 0.0
