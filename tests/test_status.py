from datetime import date, timedelta

import pytest

from expiry_service.status import (
    DayTierPolicy,
    MonthTierPolicy,
    get_policy,
    months_remaining,
    remaining_days,
)

TODAY = date(2026, 3, 15)


def test_remaining_days_counts_calendar_days() -> None:
    assert remaining_days(TODAY, TODAY) == 0
    assert remaining_days(TODAY + timedelta(days=1), TODAY) == 1
    assert remaining_days(TODAY - timedelta(days=3), TODAY) == -3
    assert remaining_days(date(2027, 3, 15), TODAY) == 365


def test_day_policy_boundaries() -> None:
    policy = DayTierPolicy()

    assert policy.classify(TODAY - timedelta(days=1), TODAY) == "expired"
    assert policy.classify(TODAY, TODAY) == "near-expiration"
    assert policy.classify(TODAY + timedelta(days=7), TODAY) == "near-expiration"
    assert policy.classify(TODAY + timedelta(days=8), TODAY) == "safe"


def test_day_policy_expired_only_before_today() -> None:
    policy = DayTierPolicy()

    for offset in range(-40, 41):
        expiration = TODAY + timedelta(days=offset)
        is_expired = policy.classify(expiration, TODAY) == "expired"
        assert is_expired == (expiration < TODAY)


def test_day_policy_custom_window() -> None:
    policy = DayTierPolicy(near_expiration_days=3)

    assert policy.classify(TODAY + timedelta(days=3), TODAY) == "near-expiration"
    assert policy.classify(TODAY + timedelta(days=4), TODAY) == "safe"

    with pytest.raises(ValueError):
        DayTierPolicy(near_expiration_days=-1)


def test_months_remaining_ignores_day_of_month() -> None:
    assert months_remaining(date(2026, 7, 1), TODAY) == 4
    assert months_remaining(date(2026, 7, 31), TODAY) == 4
    assert months_remaining(date(2026, 3, 1), TODAY) == 0
    assert months_remaining(date(2027, 1, 10), TODAY) == 10
    assert months_remaining(date(2025, 12, 31), TODAY) == -3


def test_month_policy_tiers() -> None:
    policy = MonthTierPolicy()

    assert policy.classify(date(2025, 11, 1), TODAY) == "expired"
    assert policy.classify(date(2026, 3, 31), TODAY) == "expired"
    assert policy.classify(date(2026, 4, 30), TODAY) == "expired"
    assert policy.classify(date(2026, 5, 1), TODAY) == "push"
    assert policy.classify(date(2026, 6, 30), TODAY) == "push"
    assert policy.classify(date(2026, 8, 1), TODAY) == "good"


def test_month_policy_four_months_is_always_return() -> None:
    policy = MonthTierPolicy()

    for day in range(1, 32):
        assert policy.classify(date(2026, 7, day), TODAY) == "return"
    for today_day in (1, 15, 31):
        assert policy.classify(date(2026, 7, 15), date(2026, 3, today_day)) == "return"


def test_policy_descriptions() -> None:
    month = MonthTierPolicy()
    day = DayTierPolicy()

    assert month.describe("push") == "For Push Item/Items"
    assert month.describe("return") == "For Return this Month"
    assert day.describe("near-expiration") == "Near expiration"
    assert month.labels == ("expired", "push", "return", "good")
    assert day.labels == ("expired", "near-expiration", "safe")


def test_get_policy() -> None:
    assert isinstance(get_policy("day"), DayTierPolicy)
    assert isinstance(get_policy("month"), MonthTierPolicy)
    assert get_policy("day", near_expiration_days=2).near_expiration_days == 2

    with pytest.raises(ValueError):
        get_policy("week")
