"""Settings and enumerations for the push consumer."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Callable

_MAX_INT32 = 2**31 - 1
_DEFAULT_MAX_RECONSUME_TIMES = 16
_MIN_SUSPEND_MILLIS = 10
_MAX_SUSPEND_MILLIS = 30000


class ConsumerModel(enum.Enum):
    """How messages of a group are shared between its consumers."""

    BROADCASTING = "BroadCasting"
    CLUSTERING = "Clustering"

    def __str__(self) -> str:
        return self.value


class ConsumeFromWhere(enum.Enum):
    """Where a consumer without a stored offset starts reading."""

    LAST_OFFSET = "CONSUME_FROM_LAST_OFFSET"
    FIRST_OFFSET = "CONSUME_FROM_FIRST_OFFSET"
    TIMESTAMP = "CONSUME_FROM_TIMESTAMP"

    def __str__(self) -> str:
        return self.value


class ConsumeResult(enum.IntEnum):
    """What a consume callback reports for a batch of messages."""

    CONSUME_SUCCESS = 0
    CONSUME_RETRY_LATER = 1
    COMMIT = 2
    ROLLBACK = 3
    SUSPEND_CURRENT_QUEUE_A_MOMENT = 4


TAG = "TAG"


@dataclass(frozen=True)
class MessageSelector:
    """Which messages of a topic a subscription receives."""

    type: str = TAG
    expression: str = ""


Limiter = Callable[[str], None]


def _ranged(
    name: str, value: int, low: int, high: int, default: int
) -> int:
    """Return the value, the default for 0, or raise when out of range."""
    if low <= value <= high:
        return value
    if value == 0:
        return default
    raise ValueError(f"option.{name} out of range [{low}, {high}]")


@dataclass
class PushConsumerOptions:
    """Settings of a push consumer.

    Numeric limits left at 0 are replaced by their defaults on validation.
    Times are in seconds unless the name says milliseconds.
    """

    namespace: str = ""
    instance_name: str = "DEFAULT"
    consumer_model: ConsumerModel = ConsumerModel.CLUSTERING
    consume_from_where: ConsumeFromWhere = ConsumeFromWhere.LAST_OFFSET
    consume_orderly: bool = False
    unit_mode: bool = False
    consume_concurrently_max_span: int = 0
    pull_threshold_for_queue: int = 0
    pull_threshold_for_topic: int = 0
    pull_threshold_size_for_queue: int = 0
    pull_threshold_size_for_topic: int = 0
    pull_interval_millis: int = 0
    consume_message_batch_max_size: int = 0
    pull_batch_size: int = 0
    consume_goroutine_nums: int = 0
    max_reconsume_times: int = -1
    suspend_current_queue_time_millis: int = 1000
    consume_timeout: float = 15 * 60.0
    max_time_consume_continuously: float = 60.0
    rebalance_lock_interval: float = 20.0
    auto_commit: bool = True
    post_subscription_when_pull: bool = False
    interceptors: list[Callable[..., Any]] = field(default_factory=list)
    limiter: Limiter | None = None

    def validate(self) -> None:
        """Fill in defaults and raise ValueError for out-of-range settings."""
        self.consume_concurrently_max_span = _ranged(
            "ConsumeConcurrentlyMaxSpan",
            self.consume_concurrently_max_span, 1, 65535, 1000,
        )
        self.pull_threshold_for_queue = _ranged(
            "PullThresholdForQueue", self.pull_threshold_for_queue, 1, 65535, 1024
        )
        self.pull_threshold_for_topic = _ranged(
            "PullThresholdForTopic", self.pull_threshold_for_topic, 1, 6553500, 102400
        )
        self.pull_threshold_size_for_queue = _ranged(
            "PullThresholdSizeForQueue",
            self.pull_threshold_size_for_queue, 1, 1024, 512,
        )
        self.pull_threshold_size_for_topic = _ranged(
            "PullThresholdSizeForTopic",
            self.pull_threshold_size_for_topic, 1, 102400, 51200,
        )
        if not 0 <= self.pull_interval_millis <= 65535:
            raise ValueError("option.PullInterval out of range [0, 65535]")
        self.consume_message_batch_max_size = _ranged(
            "ConsumeMessageBatchMaxSize",
            self.consume_message_batch_max_size, 1, 1024, 1,
        )
        self.pull_batch_size = _ranged(
            "PullBatchSize", self.pull_batch_size, 1, 1024, 32
        )
        self.consume_goroutine_nums = _ranged(
            "ConsumeGoroutineNums", self.consume_goroutine_nums, 1, 100000, 20
        )

    def max_reconsume_times(self) -> int:
        """Retry limit sent to the broker with a message sent back."""
        if self.max_reconsume_times == -1:
            return _DEFAULT_MAX_RECONSUME_TIMES
        return self.max_reconsume_times

    def orderly_max_reconsume_times(self) -> int:
        """Retry limit for orderly consumption; -1 means practically unlimited."""
        if self.max_reconsume_times == -1:
            return _MAX_INT32
        return self.max_reconsume_times

    def clamp_suspend_millis(self, suspend_time_millis: int) -> int:
        """Suspend time in milliseconds, bounded to [10, 30000].

        -1 stands for the configured suspend time.
        """
        if suspend_time_millis == -1:
            suspend_time_millis = self.suspend_current_queue_time_millis
        return max(_MIN_SUSPEND_MILLIS, min(_MAX_SUSPEND_MILLIS, suspend_time_millis))


# The dataclass field of the same name shadows the method on instances, so
# the retry limits are exposed through the class-level functions below.
_max_reconsume = PushConsumerOptions.max_reconsume_times
_orderly_max_reconsume = PushConsumerOptions.orderly_max_reconsume_times