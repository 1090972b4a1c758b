"""Cron expression helpers for sync schedules."""

from __future__ import annotations

import datetime as dt

from apscheduler.triggers.cron import CronTrigger


def parse_cron(expression: str) -> CronTrigger:
    value = (expression or "").strip()
    if not value:
        raise ValueError("empty_cron_expression")
    return CronTrigger.from_crontab(value, timezone="UTC")


def is_valid_cron(expression: str) -> bool:
    try:
        parse_cron(expression)
    except ValueError:
        return False
    return True


def next_fire_time(expression: str, *, after: dt.datetime | None = None) -> dt.datetime | None:
    now = after or dt.datetime.now(dt.timezone.utc)
    fire_time = parse_cron(expression).get_next_fire_time(None, now)
    if fire_time is None:
        return None
    return fire_time.astimezone(dt.timezone.utc)
