"""Strategies that allocate message queues among the consumers of a group."""

from __future__ import annotations

import bisect
import logging
import zlib
from typing import Callable, Sequence

from rmqclient.message import MessageQueue

logger = logging.getLogger(__name__)

AllocateStrategy = Callable[
    [str, str, Sequence[MessageQueue], Sequence[str]], list[MessageQueue]
]


def _consumer_index(
    consumer_group: str,
    current_cid: str,
    mq_all: Sequence[MessageQueue] | None,
    cid_all: Sequence[str] | None,
) -> int | None:
    """Position of the current consumer, or None when nothing can be allocated."""
    if not current_cid or not mq_all or not cid_all:
        return None
    try:
        return list(cid_all).index(current_cid)
    except ValueError:
        logger.warning(
            "[BUG] ConsumerId not in cidAll: group=%s consumerId=%s cidAll=%s",
            consumer_group,
            current_cid,
            list(cid_all),
        )
        return None


def allocate_by_averagely(consumer_group, current_cid, mq_all, cid_all):
    """Give each consumer a contiguous, nearly equal share of the queues."""
    index = _consumer_index(consumer_group, current_cid, mq_all, cid_all)
    if index is None:
        return []
    mq_size = len(mq_all)
    cid_size = len(cid_all)
    mod = mq_size % cid_size
    takes_extra = mod > 0 and index < mod

    if mq_size <= cid_size:
        average = 1
    elif takes_extra:
        average = mq_size // cid_size + 1
    else:
        average = mq_size // cid_size

    start = index * average if takes_extra else index * average + mod
    count = min(average, mq_size - start)
    return [mq_all[(start + i) % mq_size] for i in range(count)]


def allocate_by_averagely_circle(consumer_group, current_cid, mq_all, cid_all):
    """Deal the queues out to consumers in turn."""
    index = _consumer_index(consumer_group, current_cid, mq_all, cid_all)
    if index is None:
        return []
    n = len(cid_all)
    return [mq for i, mq in enumerate(mq_all) if i % n == index]


def allocate_by_machine_nearby(consumer_group, current_cid, mq_all, cid_all):
    """Nearby-machine allocation; currently the same as the average strategy."""
    return allocate_by_averagely(consumer_group, current_cid, mq_all, cid_all)


def allocate_by_config(queues):
    """A strategy that always returns the configured queues."""
    fixed = tuple(queues)

    def strategy(consumer_group, current_cid, mq_all, cid_all):
        logger.debug(
            "allocating configured queues: group=%s consumerId=%s count=%d",
            consumer_group,
            current_cid,
            len(fixed),
        )
        return list(fixed)

    return strategy


def allocate_by_machine_room(consumer_idcs):
    """A strategy that shares out the queues of brokers in the given rooms.

    Broker names are expected in the form ``<room>@<name>``.
    """
    rooms = list(consumer_idcs)

    def strategy(consumer_group, current_cid, mq_all, cid_all):
        index = _consumer_index(consumer_group, current_cid, mq_all, cid_all)
        if index is None:
            return []
        in_rooms = []
        for mq in mq_all:
            parts = mq.broker_name.split("@")
            if len(parts) == 2:
                in_rooms.extend(mq for room in rooms if room == parts[0])

        share, rem = divmod(len(in_rooms), len(cid_all))
        start = share * index
        result = list(mq_all[start : start + share])
        if rem > index:
            result.append(in_rooms[index + share * len(cid_all)])
        return result

    return strategy


def _crc32(key: str) -> int:
    return zlib.crc32(key.encode("utf-8")) & 0xFFFFFFFF


class ConsistentHashRing:
    """A consistent hash ring with a number of virtual nodes per element."""

    def __init__(self, replicas: int = 20) -> None:
        self.replicas = replicas
        self._circle: dict[int, str] = {}
        self._sorted: list[int] = []

    def add(self, element: str) -> None:
        """Place an element on the ring."""
        for i in range(self.replicas):
            self._circle[_crc32(f"{i}{element}")] = element
        self._sorted = sorted(self._circle)

    def get(self, key: str) -> str:
        """Return the element closest after the key's hash on the ring."""
        if not self._circle:
            raise LookupError("empty circle")
        pos = bisect.bisect_right(self._sorted, _crc32(key))
        if pos >= len(self._sorted):
            pos = 0
        return self._circle[self._sorted[pos]]


def allocate_by_consistent_hash(virtual_node_cnt):
    """A strategy that maps each queue to a consumer on a consistent hash ring."""

    def strategy(consumer_group, current_cid, mq_all, cid_all):
        if _consumer_index(consumer_group, current_cid, mq_all, cid_all) is None:
            return []
        ring = ConsistentHashRing(virtual_node_cnt)
        for cid in cid_all:
            ring.add(cid)
        return [mq for mq in mq_all if ring.get(str(mq)) == current_cid]

    return strategy