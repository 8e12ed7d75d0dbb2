"""Expiration and low-stock notifications plus the scheduled daily check.

Only the decision of whether and when to notify lives here; delivery is
delegated to a :class:`NotificationSink`.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from . import crud
from .schemas import NotificationSettings
from .status import remaining_days

logger = logging.getLogger(__name__)

WEEK_DAYS = 7


@dataclass(frozen=True)
class Notification:
    title: str
    body: str
    tag: str


@dataclass(frozen=True)
class NotificationSummary:
    expired_count: int
    expiring_today_count: int
    expiring_this_week_count: int
    low_quantity_count: int


class NotificationSink(ABC):
    """Destination for notifications (browser push, e-mail, log...)."""

    @abstractmethod
    async def send(self, notification: Notification) -> None:
        ...


class LoggingNotificationSink(NotificationSink):
    async def send(self, notification: Notification) -> None:
        logger.info("%s: %s", notification.title, notification.body)


def _is_low_quantity(quantity: int, settings: NotificationSettings) -> bool:
    return settings.quantity_threshold > 0 and quantity <= settings.quantity_threshold


def evaluate_notifications(
    records: Iterable[Any], settings: NotificationSettings, today: date
) -> list[Notification]:
    notifications: list[Notification] = []
    for record in records:
        days = remaining_days(record.expiration_date, today)

        if settings.notify_on_expiration_day and days == 0:
            notifications.append(
                Notification(
                    title=f"{record.item_name} expires today!",
                    body=(
                        f"{record.item_name} (Qty: {record.quantity}) expires today. "
                        "Check your inventory."
                    ),
                    tag=f"expiry-today-{record.id}",
                )
            )

        if days > 0 and days == settings.days_before_expiration:
            notifications.append(
                Notification(
                    title=f"{record.item_name} expires in {days} days",
                    body=(
                        f"{record.item_name} (Qty: {record.quantity}) will expire on "
                        f"{record.expiration_date.isoformat()}"
                    ),
                    tag=f"expiry-warning-{record.id}",
                )
            )

        if _is_low_quantity(record.quantity, settings):
            notifications.append(
                Notification(
                    title=f"Low quantity: {record.item_name}",
                    body=(
                        f"Only {record.quantity} {record.item_name} remaining. "
                        "Consider restocking."
                    ),
                    tag=f"low-quantity-{record.id}",
                )
            )
    return notifications


def notification_summary(
    records: Iterable[Any], settings: NotificationSettings, today: date
) -> NotificationSummary:
    expired = expiring_today = expiring_this_week = low_quantity = 0
    for record in records:
        days = remaining_days(record.expiration_date, today)
        if days < 0:
            expired += 1
        elif days == 0:
            expiring_today += 1
        elif days <= WEEK_DAYS:
            expiring_this_week += 1
        if _is_low_quantity(record.quantity, settings):
            low_quantity += 1
    return NotificationSummary(
        expired_count=expired,
        expiring_today_count=expiring_today,
        expiring_this_week_count=expiring_this_week,
        low_quantity_count=low_quantity,
    )


async def collect_due_notifications(
    session_factory: async_sessionmaker[AsyncSession], *, today: Optional[date] = None
) -> list[Notification]:
    async with session_factory() as session:
        settings = await crud.load_notification_settings(session)
        records = await crud.list_records(session)
        await session.commit()
    return evaluate_notifications(records, settings, today or date.today())


class DailyNotificationCheck:
    """Runs the notification check once at startup and then daily at ``hour``:00.

    Scheduling is delegated to APScheduler; a failing check is logged and
    the next scheduled run still happens.
    """

    JOB_ID = "daily_notification_check"

    def __init__(
        self,
        check: Callable[[], Awaitable[list[Notification]]],
        sink: NotificationSink,
        *,
        hour: int = 9,
        scheduler: Optional[AsyncIOScheduler] = None,
    ) -> None:
        self._check = check
        self._sink = sink
        self._hour = hour
        self._scheduler = scheduler or AsyncIOScheduler()

    @property
    def running(self) -> bool:
        return self._scheduler.running

    async def run_once(self) -> list[Notification]:
        notifications = await self._check()
        for notification in notifications:
            await self._sink.send(notification)
        logger.info("Notification check sent %d notifications", len(notifications))
        return notifications

    async def run_scheduled(self) -> None:
        """Job body: run the check and log, rather than raise, any failure."""

        try:
            await self.run_once()
        except Exception:
            logger.exception("Notification check failed")

    def setup_jobs(self, *, run_now: bool = True) -> None:
        job_options: dict[str, Any] = {}
        if run_now:
            job_options["next_run_time"] = datetime.now()
        self._scheduler.add_job(
            self.run_scheduled,
            trigger=CronTrigger(hour=self._hour, minute=0),
            id=self.JOB_ID,
            name="Daily notification check",
            replace_existing=True,
            **job_options,
        )
        logger.info("Notification check scheduled daily at %02d:00", self._hour)

    def start(self) -> None:
        self.setup_jobs()
        self._scheduler.start()

    def stop(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Notification check stopped")


__all__ = [
    "Notification",
    "NotificationSummary",
    "NotificationSink",
    "LoggingNotificationSink",
    "evaluate_notifications",
    "notification_summary",
    "collect_due_notifications",
    "DailyNotificationCheck",
]
