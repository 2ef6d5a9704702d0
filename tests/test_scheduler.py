"""Tests for monitor job scheduling."""

import logging
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest

from tradejournal.engine import scheduler as sched
from tradejournal.engine.monitor_job import CycleResult


@pytest.fixture(autouse=True)
def clean_jobs():
    yield
    sched.scheduler.remove_all_jobs()


@pytest.mark.parametrize(
    "interval,expected",
    [
        ("5m", timedelta(minutes=5)),
        ("15m", timedelta(minutes=15)),
        ("1h", timedelta(hours=1)),
        ("4h", timedelta(hours=4)),
    ],
)
def test_trigger_interval(interval, expected):
    assert sched._get_trigger(interval).interval == expected


def test_add_monitor_job_replaces_existing():
    sched.add_monitor_job("alerts", "5m")
    sched.add_monitor_job("alerts", "10m")

    jobs = sched.scheduler.get_jobs()
    assert [j.id for j in jobs] == ["monitor_alerts"]
    assert jobs[0].max_instances == 1
    assert jobs[0].coalesce is True
    assert jobs[0].args == ("alerts",)


@pytest.mark.asyncio
async def test_scheduled_cycle_logs_failures(caplog):
    with patch(
        "tradejournal.engine.monitor_job.run_monitor_cycle",
        AsyncMock(return_value=CycleResult(500, "Error: boom")),
    ), caplog.at_level(logging.ERROR):
        await sched.run_scheduled_cycle("report")
    assert "Monitor cycle failed: Error: boom" in caplog.text


@pytest.mark.asyncio
async def test_scheduled_cycle_swallows_crash(caplog):
    with patch(
        "tradejournal.engine.monitor_job.run_monitor_cycle",
        AsyncMock(side_effect=RuntimeError("kaput")),
    ), caplog.at_level(logging.ERROR):
        await sched.run_scheduled_cycle("alerts")
    assert "crashed: kaput" in caplog.text
