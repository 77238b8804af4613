"""
Derived-Field Calculator — progress arithmetic and currency display.

Pure functions. Nothing here writes financial values: currency conversion is
for display only, the stored figures stay in the native currency (LKR).

Cumulative progress:
    Last December's cumulative percentage plus this year's progress applied
    to the *remaining* gap, so the result can never pass 100:

        cumulative = prev + current × (100 − prev) / 100     (clamped to 0..100)
"""

from __future__ import annotations

from pmis.core.exceptions import ValidationError
from pmis.models.progress import FINANCIAL_AMOUNT_FIELDS

# Approximate rates, LKR base. Reference only.
EXCHANGE_RATES = {
    "LKR": 1,
    "USD": 0.0033,
    "GBP": 0.0026,
    "EUR": 0.0031,
    "CNY": 0.024,
    "JPY": 0.49,
    "AUD": 0.0051,
}

SUPPORTED_CURRENCIES = tuple(EXCHANGE_RATES)


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def cumulative_progress(prev_dec_pct, current_pct) -> float:
    """Cumulative percentage of the overall target.

    ``None`` inputs count as 0; inputs are clamped to [0, 100] first so the
    result is monotonically non-decreasing in both arguments.
    """
    prev = _clamp(float(prev_dec_pct or 0))
    current = _clamp(float(current_pct or 0))
    return _clamp(prev + current * (100.0 - prev) / 100.0)


def recompute_derived(record) -> None:
    """Refresh the derived fields of a ProgressRecord in place."""
    record.cumulative_progress_percentage_of_overall_target = round(
        cumulative_progress(
            record.progress_as_of_prev_dec_percentage,
            record.year_end_progress_percentage,
        ),
        2,
    )


def validate_quarterly_targets(q1, q2, q3, q4) -> list[str]:
    """Check cumulative quarterly targets; returns warnings, never raises.

    Targets are cumulative, so each quarter should be at least the previous
    one, and Q4 should close the year at 100 (or be left at 0 / unset).
    """
    q1, q2, q3, q4 = (float(q or 0) for q in (q1, q2, q3, q4))
    warnings = []
    if q2 < q1:
        warnings.append("Q2 should be ≥ Q1")
    if q3 < q2:
        warnings.append("Q3 should be ≥ Q2")
    if q4 < q3:
        warnings.append("Q4 should be ≥ Q3")
    if q4 != 0 and q4 != 100:
        warnings.append("Q4 should equal 100%")
    return warnings


def quarterly_warnings(record) -> list[str]:
    return validate_quarterly_targets(
        record.quarter1_target_percentage,
        record.quarter2_target_percentage,
        record.quarter3_target_percentage,
        record.quarter4_target_percentage,
    )


def normalize_currency(currency: str | None) -> str:
    code = (currency or "LKR").strip().upper()
    if code not in EXCHANGE_RATES:
        raise ValidationError(
            f"Unsupported currency '{currency}'",
            details={"currency": f"one of {', '.join(SUPPORTED_CURRENCIES)}"},
        )
    return code


def convert_for_display(value, currency: str | None):
    """Convert a native (LKR) amount to ``currency`` for display.

    LKR values come back unchanged; others are rounded to 2 decimals.
    ``None`` stays ``None``.
    """
    code = normalize_currency(currency)
    if value is None:
        return None
    if code == "LKR":
        return value
    return round(float(value) * EXCHANGE_RATES[code], 2)


def financial_display(record, currency: str | None) -> dict:
    """Converted view of a record's financial amounts; the record is untouched."""
    code = normalize_currency(currency)
    return {
        "currency": code,
        "rate": EXCHANGE_RATES[code],
        "values": {name: convert_for_display(getattr(record, name), code) for name in FINANCIAL_AMOUNT_FIELDS},
    }
