"""Expiration status derivation.

Two policies exist and they are not compatible with each other: the day
policy counts calendar days until expiry, the month policy compares
calendar months. Exactly one is active per deployment
(``Settings.status_policy``). Statuses are derived on every read and never
stored.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from typing import Dict, Tuple

EXPIRED = "expired"
NEAR_EXPIRATION = "near-expiration"
SAFE = "safe"
PUSH = "push"
RETURN = "return"
GOOD = "good"


def remaining_days(expiration_date: date, today: date) -> int:
    return (expiration_date - today).days


def months_remaining(expiration_date: date, today: date) -> int:
    return (expiration_date.year * 12 + expiration_date.month) - (
        today.year * 12 + today.month
    )


class StatusPolicy(ABC):
    """Maps an expiration date to a status label."""

    name: str = ""
    labels: Tuple[str, ...] = ()
    descriptions: Dict[str, str] = {}

    @abstractmethod
    def classify(self, expiration_date: date, today: date) -> str:
        """Return the status label of ``expiration_date`` as seen on ``today``."""

    def describe(self, label: str) -> str:
        return self.descriptions.get(label, label.replace("-", " ").capitalize())


class DayTierPolicy(StatusPolicy):
    name = "day"
    labels = (EXPIRED, NEAR_EXPIRATION, SAFE)
    descriptions = {
        EXPIRED: "Expired",
        NEAR_EXPIRATION: "Near expiration",
        SAFE: "Safe",
    }

    def __init__(self, near_expiration_days: int = 7) -> None:
        if near_expiration_days < 0:
            raise ValueError("near_expiration_days cannot be negative")
        self.near_expiration_days = near_expiration_days

    def classify(self, expiration_date: date, today: date) -> str:
        days = remaining_days(expiration_date, today)
        if days < 0:
            return EXPIRED
        if days <= self.near_expiration_days:
            return NEAR_EXPIRATION
        return SAFE


class MonthTierPolicy(StatusPolicy):
    name = "month"
    labels = (EXPIRED, PUSH, RETURN, GOOD)
    descriptions = {
        EXPIRED: "Expired",
        PUSH: "For Push Item/Items",
        RETURN: "For Return this Month",
        GOOD: "Good",
    }

    def classify(self, expiration_date: date, today: date) -> str:
        months = months_remaining(expiration_date, today)
        if months <= 1:
            return EXPIRED
        if months <= 3:
            return PUSH
        if months == 4:
            return RETURN
        return GOOD


def get_policy(name: str, *, near_expiration_days: int = 7) -> StatusPolicy:
    if name == DayTierPolicy.name:
        return DayTierPolicy(near_expiration_days=near_expiration_days)
    if name == MonthTierPolicy.name:
        return MonthTierPolicy()
    raise ValueError(f"Unknown status policy: {name!r}")


__all__ = [
    "StatusPolicy",
    "DayTierPolicy",
    "MonthTierPolicy",
    "get_policy",
    "remaining_days",
    "months_remaining",
    "EXPIRED",
    "NEAR_EXPIRATION",
    "SAFE",
    "PUSH",
    "RETURN",
    "GOOD",
]
