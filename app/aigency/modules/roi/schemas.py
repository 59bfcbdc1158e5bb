from __future__ import annotations

from pydantic import Field

from app.aigency.validation import Payload


class RoiIn(Payload):
    team_size: float = Field(5, ge=0)
    avg_hourly_rate: float = Field(50, ge=0)
    hours_saved_per_week: float = Field(20, ge=0)
    implementation_cost: float = Field(5000, ge=0)
    monthly_subscription: float = Field(499, ge=0)
