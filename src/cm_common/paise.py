"""Integer arithmetic utilities for paise-denominated amounts.

All prices, fees, earnings and payout amounts are int (paise). No float, no Decimal.
Display strings are derived from the stored int and never parsed back.
"""


def paise_to_display(paise: int) -> str:
    """Convert paise to display string: 55825 -> '₹558.25', -1200 -> '-₹12.00'."""
    if paise < 0:
        abs_paise = -paise
        return f"-₹{abs_paise // 100:,}.{abs_paise % 100:02d}"
    return f"₹{paise // 100:,}.{paise % 100:02d}"


def apply_bps_floor(amount: int, rate_bps: int) -> int:
    """Rate in basis points with floor division: amount * rate_bps // 10000."""
    return amount * rate_bps // 10000


def require_positive_paise(value: object) -> int:
    """Return value if it is a positive int (bool excluded), else raise ValueError."""
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError(f"Amount must be a positive integer in paise, got {value!r}")
    return value
