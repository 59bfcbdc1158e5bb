"""
ROI arithmetic for the public calculator.

Pure functions, no database access.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass

WEEKS_PER_MONTH = 4.33


@dataclass(frozen=True)
class RoiResult:
    weekly_savings: float
    monthly_savings: float
    annual_savings: float
    annual_cost: float
    net_annual_savings: float
    annual_roi_pct: float | None
    payback_months: float | None

    def to_dict(self) -> dict:
        return asdict(self)


def calculate_roi(
    *,
    team_size: float,
    avg_hourly_rate: float,
    hours_saved_per_week: float,
    implementation_cost: float,
    monthly_subscription: float,
) -> RoiResult:
    weekly = team_size * hours_saved_per_week * avg_hourly_rate
    monthly = weekly * WEEKS_PER_MONTH
    annual = monthly * 12
    annual_cost = implementation_cost + monthly_subscription * 12
    net = annual - annual_cost

    # undefined ratios are reported as None rather than inf/nan
    roi_pct = net / annual_cost * 100 if annual_cost else None
    payback = implementation_cost / monthly if monthly else None

    return RoiResult(
        weekly_savings=round(weekly, 2),
        monthly_savings=round(monthly, 2),
        annual_savings=round(annual, 2),
        annual_cost=round(annual_cost, 2),
        net_annual_savings=round(net, 2),
        annual_roi_pct=round(roi_pct, 2) if roi_pct is not None else None,
        payback_months=round(payback, 2) if payback is not None else None,
    )
