"""A push consumer: subscriptions, callbacks and dispatch of pulled messages."""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Sequence

from rmqclient.errors import ClientError, ErrorKind
from rmqclient.message import MessageExt
from rmqclient.options import (
    ConsumeFromWhere,
    ConsumeResult,
    MessageSelector,
    PushConsumerOptions,
)
from rmqclient.statistics import StatsManager

logger = logging.getLogger(__name__)

RETRY_GROUP_TOPIC_PREFIX = "%RETRY%"
DEFAULT_CONSUMER_GROUP = "DEFAULT_CONSUMER"
PROPERTY_RETRY_TOPIC = "RETRY_TOPIC"
PROPERTY_CONSUME_START_TIME = "CONSUME_START_TIME"
PROP_CTX_TYPE = "ConsumeContextType"
SUCCESS_RETURN = "SUCCESS"
FAILED_RETURN = "FAILED"

Callback = Callable[[Any, list[MessageExt]], ConsumeResult]
Invoker = Callable[[Any, Any, Any], None]
Interceptor = Callable[[Any, Any, Any, Invoker], None]


class _State(enum.Enum):
    CREATE_JUST = "CreateJust"
    START_FAILED = "StartFailed"
    RUNNING = "Running"
    SHUTDOWN = "Shutdown"


@dataclass
class ConsumeResultHolder:
    """Carries the callback's result back through the interceptors."""

    consume_result: ConsumeResult = ConsumeResult.CONSUME_SUCCESS


@dataclass(frozen=True)
class PushConsumerCallback:
    """The consume function registered for one topic."""

    topic: str
    f: Callback

    @property
    def unique_id(self) -> str:
        return self.topic


def chain_interceptors(*args: Interceptor) -> Interceptor | None:
    """Compose interceptors so the first given runs outermost."""
    interceptors = list(args)
    if not interceptors:
        return None
    if len(interceptors) == 1:
        return interceptors[0]

    def chained(ctx: Any, req: Any, reply: Any, invoker: Invoker) -> None:
        def link(index: int) -> Invoker:
            if index == len(interceptors):
                return invoker

            def call(c: Any, r: Any, rep: Any) -> None:
                interceptors[index](c, r, rep, link(index + 1))

            return call

        link(0)(ctx, req, reply)

    return chained


class PushConsumer:
    """Consumer that feeds pulled messages to subscribed callbacks."""

    def __init__(
        self, group_name: str, options: PushConsumerOptions | None = None
    ) -> None:
        self.options = options if options is not None else PushConsumerOptions()
        if self.options.namespace:
            group_name = f"{self.options.namespace}%{group_name}"
        self.consumer_group = group_name
        self.model = self.options.consumer_model
        self.consume_orderly = self.options.consume_orderly
        self.unit_mode = self.options.unit_mode
        self.from_where = self.options.consume_from_where
        self.paused = False
        self.stats = StatsManager(start_timers=False)
        self._state = _State.CREATE_JUST
        self._subscriptions: dict[str, MessageSelector] = {}
        self._subscribed_topics: set[str] = set()
        self._callbacks: dict[str, PushConsumerCallback] = {}
        self._interceptor = chain_interceptors(*self.options.interceptors)

    def _with_namespace(self, topic: str) -> str:
        if self.options.namespace:
            return f"{self.options.namespace}%{topic}"
        return topic

    def subscribe(
        self, topic: str, selector: MessageSelector | None, callback: Callback
    ) -> None:
        """Register a callback for the messages of a topic."""
        if self._state in (_State.START_FAILED, _State.SHUTDOWN):
            raise ClientError(ErrorKind.START_TOPIC)
        topic = self._with_namespace(topic)
        self._subscriptions[topic] = selector if selector is not None else MessageSelector()
        self._subscribed_topics.add(topic)
        self._callbacks[topic] = PushConsumerCallback(topic=topic, f=callback)

    def unsubscribe(self, topic: str) -> None:
        """Drop the subscription data of a topic."""
        self._subscriptions.pop(self._with_namespace(topic), None)

    def is_subscribed(self, topic: str) -> bool:
        return self._with_namespace(topic) in self._subscriptions

    def suspend(self) -> None:
        self.paused = True
        logger.info("suspend consumer: %s", self.consumer_group)

    def resume(self) -> None:
        self.paused = False
        logger.info("resume consumer: %s", self.consumer_group)

    def shutdown(self) -> None:
        """Stop the consumer; later calls do nothing."""
        if self._state is _State.SHUTDOWN:
            return
        self._state = _State.SHUTDOWN
        self.stats.shutdown()

    def validate(self) -> None:
        """Check the group and settings, filling in defaults."""
        try:
            if not self.consumer_group:
                raise ClientError(ErrorKind.EMPTY_GROUP_ID)
            if self.consumer_group == DEFAULT_CONSUMER_GROUP:
                raise ValueError(
                    f"consumerGroup can't equal [{DEFAULT_CONSUMER_GROUP}], "
                    "please specify another one"
                )
            if not self._subscribed_topics:
                logger.warning(
                    "not subscribe any topic yet: group=%s", self.consumer_group
                )
            self.options.validate()
        except (ClientError, ValueError):
            self._state = _State.START_FAILED
            raise

    def get_where(self) -> str:
        if isinstance(self.from_where, ConsumeFromWhere):
            return self.from_where.value
        return "UNKNOWN"

    def get_model(self) -> str:
        return str(self.model)

    def _find_callback(self, msg: MessageExt) -> PushConsumerCallback:
        callback = self._callbacks.get(msg.topic)
        if callback is None and msg.topic.startswith(RETRY_GROUP_TOPIC_PREFIX):
            callback = self._callbacks.get(msg.get_property(PROPERTY_RETRY_TOPIC))
        if callback is None:
            raise LookupError(f"the consume callback missing for topic: {msg.topic}")
        return callback

    def consume_inner(
        self, context: dict | None, messages: Sequence[MessageExt]
    ) -> ConsumeResult:
        """Run the callback, through the interceptors, for a batch of messages."""
        if not messages:
            raise ValueError("msg list empty")
        callback = self._find_callback(messages[0])
        if context is None:
            context = {}
        if self._interceptor is None:
            return callback.f(context, list(messages))

        holder = ConsumeResultHolder()

        def invoke(ctx: Any, req: Any, reply: Any) -> None:
            reply.consume_result = callback.f(ctx, list(req))
            success = reply.consume_result == ConsumeResult.CONSUME_SUCCESS
            if isinstance(ctx, dict):
                ctx["success"] = success
                ctx.setdefault("properties", {})[PROP_CTX_TYPE] = (
                    SUCCESS_RETURN if success else FAILED_RETURN
                )

        self._interceptor(context, list(messages), holder, invoke)
        return holder.consume_result

    def reset_retry_and_namespace(self, messages: Sequence[MessageExt]) -> None:
        """Restore the original topic of retried messages and stamp the start time."""
        group_topic = RETRY_GROUP_TOPIC_PREFIX + self.consumer_group
        begin_millis = str(time.time_ns() // 1_000_000)
        for msg in messages:
            retry_topic = msg.get_property(PROPERTY_RETRY_TOPIC)
            if retry_topic and msg.topic == group_topic:
                msg.topic = retry_topic
            msg.with_property(PROPERTY_CONSUME_START_TIME, begin_millis)

    def split_batches(
        self, messages: Sequence[MessageExt]
    ) -> Iterator[list[MessageExt]]:
        """Yield the messages in batches of the configured maximum size."""
        size = max(1, self.options.consume_message_batch_max_size)
        items = list(messages)
        for start in range(0, len(items), size):
            yield items[start : start + size]