"""Rolling consume and pull statistics per topic and consumer group."""

from __future__ import annotations

import calendar
import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Iterable, NamedTuple

logger = logging.getLogger(__name__)

_MINUTE_SAMPLES = 7
_HOUR_SAMPLES = 7
_DAY_SAMPLES = 25


class CallSnapshot(NamedTuple):
    """Counters sampled at one moment; timestamp in milliseconds."""

    timestamp: int
    time: int
    value: int


@dataclass(frozen=True)
class StatsSnapshot:
    sum: int = 0
    tps: float = 0.0
    avgpt: float = 0.0


@dataclass
class ConsumeStatus:
    pull_rt: float = 0.0
    pull_tps: float = 0.0
    consume_rt: float = 0.0
    consume_ok_tps: float = 0.0
    consume_failed_tps: float = 0.0
    consume_failed_msgs: int = 0


def compute_stats_data(snapshots: Iterable[CallSnapshot]) -> StatsSnapshot:
    """Summarise the span between the first and last sample.

    When both samples share a timestamp the rate is reported as 0.
    """
    items = list(snapshots)
    if not items:
        return StatsSnapshot()
    first, last = items[0], items[-1]
    total = last.value - first.value
    elapsed = last.timestamp - first.timestamp
    tps = total * 1000.0 / elapsed if elapsed else 0.0
    times = last.time - first.time
    avgpt = total / times if times > 0 else 0.0
    return StatsSnapshot(sum=total, tps=tps, avgpt=avgpt)


class StatsItem:
    """Cumulative counters for one key, with sampled history windows."""

    def __init__(self, stats_name: str, stats_key: str) -> None:
        self.stats_name = stats_name
        self.stats_key = stats_key
        self.value = 0
        self.times = 0
        self._lock = threading.Lock()
        self._minute: deque[CallSnapshot] = deque(maxlen=_MINUTE_SAMPLES)
        self._hour: deque[CallSnapshot] = deque(maxlen=_HOUR_SAMPLES)
        self._day: deque[CallSnapshot] = deque(maxlen=_DAY_SAMPLES)

    def add(self, inc_value: int, inc_times: int) -> None:
        with self._lock:
            self.value += inc_value
            self.times += inc_times

    def _sample(self, window: deque) -> None:
        with self._lock:
            window.append(
                CallSnapshot(int(time.time()) * 1000, self.times, self.value)
            )

    def _compute(self, window: deque) -> StatsSnapshot:
        with self._lock:
            items = list(window)
        return compute_stats_data(items)

    def sampling_in_seconds(self) -> None:
        self._sample(self._minute)

    def sampling_in_minutes(self) -> None:
        self._sample(self._hour)

    def sampling_in_hour(self) -> None:
        self._sample(self._day)

    def stats_in_minute(self) -> StatsSnapshot:
        return self._compute(self._minute)

    def stats_in_hour(self) -> StatsSnapshot:
        return self._compute(self._hour)

    def stats_in_day(self) -> StatsSnapshot:
        return self._compute(self._day)

    def _log(self, title: str, snap: StatsSnapshot) -> None:
        logger.info(
            "%s statsName=%s statsKey=%s SUM=%d TPS=%.2f AVGPT=%s",
            title, self.stats_name, self.stats_key, snap.sum, snap.tps, snap.avgpt,
        )

    def print_at_minutes(self) -> None:
        self._log("Stats In One Minute.", self.stats_in_minute())

    def print_at_hour(self) -> None:
        self._log("Stats In One Hour.", self.stats_in_hour())

    def print_at_day(self) -> None:
        self._log("Stats In One Day.", self.stats_in_day())


class StatsItemSet:
    """Stats items of one kind, keyed by ``topic@group``, sampled on timers."""

    def __init__(self, stats_name: str, start_timers: bool = True) -> None:
        self.stats_name = stats_name
        self._items: dict[str, StatsItem] = {}
        self._lock = threading.Lock()
        self._closed = threading.Event()
        if start_timers:
            self._start_timers()

    def _start_timers(self) -> None:
        def until(moment: datetime) -> float:
            return max(0.0, (moment - datetime.now()).total_seconds())

        schedule: list[tuple[float, float, Callable[[], None]]] = [
            (10.0, 10.0, self.sampling_in_seconds),
            (600.0, 600.0, self.sampling_in_minutes),
            (3600.0, 3600.0, self.sampling_in_hour),
            (until(next_minutes_time()) + 60.0, 60.0, self._print_at_minutes),
            (until(next_hour_time()) + 3600.0, 3600.0, self._print_at_hour),
            (until(next_month_time()) + 86400.0, 86400.0, self._print_at_day),
        ]
        for first_delay, interval, action in schedule:
            thread = threading.Thread(
                target=self._run_every, args=(first_delay, interval, action), daemon=True
            )
            thread.start()

    def _run_every(self, first_delay: float, interval: float, action) -> None:
        delay = first_delay
        while not self._closed.wait(delay):
            try:
                action()
            except Exception:
                logger.exception("stats timer of %s failed", self.stats_name)
            delay = interval

    def _each(self) -> list[StatsItem]:
        with self._lock:
            return list(self._items.values())

    def add_value(self, key: str, inc_value: int, inc_times: int) -> None:
        self.get_or_create(key).add(inc_value, inc_times)

    def get_or_create(self, key: str) -> StatsItem:
        with self._lock:
            item = self._items.get(key)
            if item is None:
                item = self._items[key] = StatsItem(self.stats_name, key)
            return item

    def sampling_in_seconds(self) -> None:
        for item in self._each():
            item.sampling_in_seconds()

    def sampling_in_minutes(self) -> None:
        for item in self._each():
            item.sampling_in_minutes()

    def sampling_in_hour(self) -> None:
        for item in self._each():
            item.sampling_in_hour()

    def _print_at_minutes(self) -> None:
        for item in self._each():
            item.print_at_minutes()

    def _print_at_hour(self) -> None:
        for item in self._each():
            item.print_at_hour()

    def _print_at_day(self) -> None:
        for item in self._each():
            item.print_at_day()

    def _lookup(self, key: str) -> StatsItem | None:
        with self._lock:
            return self._items.get(key)

    def stats_in_minute(self, key: str) -> StatsSnapshot:
        item = self._lookup(key)
        return item.stats_in_minute() if item else StatsSnapshot()

    def stats_in_hour(self, key: str) -> StatsSnapshot:
        item = self._lookup(key)
        return item.stats_in_hour() if item else StatsSnapshot()

    def stats_in_day(self, key: str) -> StatsSnapshot:
        item = self._lookup(key)
        return item.stats_in_day() if item else StatsSnapshot()

    def close(self) -> None:
        """Stop the timers."""
        self._closed.set()


def _key(group: str, topic: str) -> str:
    return f"{topic}@{group}"


class StatsManager:
    """Pull and consume statistics for a consumer."""

    def __init__(self, start_timers: bool = True) -> None:
        self.consume_ok_tps = StatsItemSet("CONSUME_OK_TPS", start_timers)
        self.consume_rt = StatsItemSet("CONSUME_RT", start_timers)
        self.consume_failed_tps = StatsItemSet("CONSUME_FAILED_TPS", start_timers)
        self.pull_tps = StatsItemSet("PULL_TPS", start_timers)
        self.pull_rt = StatsItemSet("PULL_RT", start_timers)
        self._closed = False
        self._close_lock = threading.Lock()

    def increase_pull_rt(self, group: str, topic: str, rt: int) -> None:
        self.pull_rt.add_value(_key(group, topic), rt, 1)

    def increase_pull_tps(self, group: str, topic: str, msgs: int) -> None:
        self.pull_tps.add_value(_key(group, topic), msgs, 1)

    def increase_consume_rt(self, group: str, topic: str, rt: int) -> None:
        self.consume_rt.add_value(_key(group, topic), rt, 1)

    def increase_consume_ok_tps(self, group: str, topic: str, msgs: int) -> None:
        self.consume_ok_tps.add_value(_key(group, topic), msgs, 1)

    def increase_consume_failed_tps(self, group: str, topic: str, msgs: int) -> None:
        self.consume_failed_tps.add_value(_key(group, topic), msgs, 1)

    def get_pull_rt(self, group: str, topic: str) -> StatsSnapshot:
        return self.pull_rt.stats_in_minute(_key(group, topic))

    def get_pull_tps(self, group: str, topic: str) -> StatsSnapshot:
        return self.pull_tps.stats_in_minute(_key(group, topic))

    def get_consume_rt(self, group: str, topic: str) -> StatsSnapshot:
        snap = self.pull_rt.stats_in_minute(_key(group, topic))
        if snap.sum == 0:
            return self.consume_rt.stats_in_hour(_key(group, topic))
        return snap

    def get_consume_ok_tps(self, group: str, topic: str) -> StatsSnapshot:
        return self.consume_ok_tps.stats_in_minute(_key(group, topic))

    def get_consume_failed_tps(self, group: str, topic: str) -> StatsSnapshot:
        return self.consume_failed_tps.stats_in_minute(_key(group, topic))

    def get_consume_status(self, group: str, topic: str) -> ConsumeStatus:
        return ConsumeStatus(
            pull_rt=self.get_pull_rt(group, topic).avgpt,
            pull_tps=self.get_pull_tps(group, topic).tps,
            consume_rt=self.get_consume_rt(group, topic).avgpt,
            consume_ok_tps=self.get_consume_ok_tps(group, topic).tps,
            consume_failed_tps=self.get_consume_failed_tps(group, topic).tps,
            consume_failed_msgs=self.consume_failed_tps.stats_in_hour(
                _key(group, topic)
            ).sum,
        )

    def shutdown(self) -> None:
        """Stop all timers; later calls do nothing."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        for item_set in (
            self.consume_ok_tps,
            self.consume_rt,
            self.consume_failed_tps,
            self.pull_tps,
            self.pull_rt,
        ):
            item_set.close()


def next_minutes_time() -> datetime:
    return datetime.now() + timedelta(minutes=1)


def next_hour_time() -> datetime:
    return datetime.now() + timedelta(hours=1)


def next_month_time() -> datetime:
    """One calendar month from now, overflowing days into the next month."""
    now = datetime.now()
    year, month = (now.year + 1, 1) if now.month == 12 else (now.year, now.month + 1)
    days_in_month = calendar.monthrange(year, month)[1]
    overflow = max(0, now.day - days_in_month)
    day = now.day - overflow
    return now.replace(year=year, month=month, day=day) + timedelta(days=overflow)