from datetime import datetime

import pytest

from rmqclient.statistics import (
    CallSnapshot,
    StatsItem,
    StatsItemSet,
    StatsManager,
    StatsSnapshot,
    compute_stats_data,
    next_hour_time,
    next_minutes_time,
    next_month_time,
)

EXPECTED_SUMS = [0, 1, 2, 3, 4, 5, 6, 6]


@pytest.fixture
def mgr():
    manager = StatsManager(start_timers=False)
    yield manager
    manager.shutdown()


def test_next_minute_time():
    elapsed = (next_minutes_time() - datetime.now()).total_seconds() / 60
    assert elapsed == pytest.approx(1.0, rel=0.01)


def test_next_hour_time():
    elapsed = (next_hour_time() - datetime.now()).total_seconds() / 3600
    assert elapsed == pytest.approx(1.0, rel=0.01)


def test_next_month_time_is_later_by_about_a_month():
    days = (next_month_time() - datetime.now()).days
    assert 27 <= days <= 31


def test_pull_rt(mgr):
    for expected in EXPECTED_SUMS:
        mgr.increase_pull_rt("rocketmq", "default", 1)
        mgr.pull_rt.sampling_in_seconds()
        assert mgr.get_pull_rt("rocketmq", "default").sum == expected


def test_pull_tps(mgr):
    for expected in EXPECTED_SUMS:
        mgr.increase_pull_tps("rocketmq", "default", 1)
        mgr.pull_tps.sampling_in_seconds()
        assert mgr.get_pull_tps("rocketmq", "default").sum == expected


def test_consume_ok_tps(mgr):
    for expected in EXPECTED_SUMS:
        mgr.increase_consume_ok_tps("rocketmq", "default", 1)
        mgr.consume_ok_tps.sampling_in_seconds()
        assert mgr.get_consume_ok_tps("rocketmq", "default").sum == expected


def test_consume_failed_tps(mgr):
    for expected in EXPECTED_SUMS:
        mgr.increase_consume_failed_tps("rocketmq", "default", 1)
        mgr.consume_failed_tps.sampling_in_seconds()
        assert mgr.get_consume_failed_tps("rocketmq", "default").sum == expected


def test_consume_status(mgr):
    group, topic = "rocketmq", "default"
    for expected in [0, 1, 2, 3, 4]:
        mgr.increase_pull_rt(group, topic, 1)
        mgr.increase_pull_tps(group, topic, 1)
        mgr.increase_consume_rt(group, topic, 1)
        mgr.increase_consume_ok_tps(group, topic, 1)
        mgr.increase_consume_failed_tps(group, topic, 1)
        mgr.pull_rt.sampling_in_seconds()
        mgr.pull_tps.sampling_in_seconds()
        mgr.consume_rt.sampling_in_minutes()
        mgr.consume_ok_tps.sampling_in_seconds()
        mgr.consume_failed_tps.sampling_in_minutes()
        status = mgr.get_consume_status(group, topic)
        assert status.consume_failed_msgs == expected


def test_unknown_key_gives_zero_snapshot(mgr):
    assert mgr.get_pull_rt("nobody", "nothing") == StatsSnapshot()


def test_consume_rt_falls_back_to_hour(mgr):
    mgr.increase_consume_rt("g", "t", 5)
    mgr.consume_rt.sampling_in_minutes()
    mgr.increase_consume_rt("g", "t", 5)
    mgr.consume_rt.sampling_in_minutes()
    assert mgr.get_consume_rt("g", "t").sum == 5


def test_compute_stats_empty():
    assert compute_stats_data([]) == StatsSnapshot()


def test_compute_stats_two_samples():
    snap = compute_stats_data(
        [CallSnapshot(timestamp=0, time=0, value=0), CallSnapshot(1000, 2, 10)]
    )
    assert snap.sum == 10
    assert snap.tps == pytest.approx(10.0)
    assert snap.avgpt == pytest.approx(5.0)


def test_compute_stats_same_timestamp_has_zero_rate():
    snap = compute_stats_data([CallSnapshot(1000, 0, 0), CallSnapshot(1000, 0, 0)])
    assert snap.tps == 0.0
    assert snap.avgpt == 0.0


def test_stats_item_day_window_keeps_25_samples():
    item = StatsItem("PULL_TPS", "t@g")
    for _ in range(30):
        item.add(1, 1)
        item.sampling_in_hour()
    assert item.stats_in_day().sum == 24


def test_item_set_get_or_create_returns_same_item():
    item_set = StatsItemSet("PULL_RT", start_timers=False)
    first = item_set.get_or_create("a@b")
    item_set.add_value("a@b", 3, 1)
    assert item_set.get_or_create("a@b") is first
    assert first.value == 3
    assert first.times == 1
    item_set.close()


def test_shutdown_is_idempotent():
    manager = StatsManager(start_timers=True)
    manager.shutdown()
    manager.shutdown()
    manager.increase_pull_tps("g", "t", 2)
    manager.pull_tps.sampling_in_seconds()
    manager.increase_pull_tps("g", "t", 2)
    manager.pull_tps.sampling_in_seconds()
    assert manager.get_pull_tps("g", "t").sum == 2