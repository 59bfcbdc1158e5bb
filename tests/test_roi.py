import pytest

from app.aigency import create_app
from app.aigency.modules.roi.calculator import calculate_roi


@pytest.fixture()
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    return create_app().test_client()


def test_default_scenario():
    r = calculate_roi(team_size=5, avg_hourly_rate=50, hours_saved_per_week=20, implementation_cost=5000, monthly_subscription=499)
    assert r.weekly_savings == 5000
    assert r.monthly_savings == 21650
    assert r.annual_savings == 259800
    assert r.annual_cost == 10988
    assert r.net_annual_savings == 248812
    assert r.annual_roi_pct == pytest.approx(2264.4, abs=0.01)
    assert r.payback_months == pytest.approx(0.23, abs=0.001)


def test_zero_divisors_are_none():
    free = calculate_roi(team_size=2, avg_hourly_rate=40, hours_saved_per_week=1, implementation_cost=0, monthly_subscription=0)
    assert free.annual_roi_pct is None
    assert free.payback_months == 0

    idle = calculate_roi(team_size=0, avg_hourly_rate=40, hours_saved_per_week=10, implementation_cost=1000, monthly_subscription=10)
    assert idle.payback_months is None
    assert idle.net_annual_savings == -1120


def test_endpoint_uses_defaults(client):
    r = client.get("/roi/calculate")
    assert r.status_code == 200
    assert r.json["inputs"]["team_size"] == 5
    assert r.json["results"]["annual_savings"] == 259800


def test_endpoint_accepts_overrides(client):
    r = client.post("/roi/calculate", json={"team_size": 10, "monthly_subscription": ""})
    assert r.status_code == 200
    assert r.json["results"]["weekly_savings"] == 10000
    assert r.json["inputs"]["monthly_subscription"] == 499

    r = client.get("/roi/calculate?team_size=-1")
    assert r.status_code == 400
    assert r.json["errors"][0].startswith("team_size:")
