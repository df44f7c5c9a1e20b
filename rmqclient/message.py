"""Message queue and message types shared by the consumer code."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable


@dataclass(frozen=True)
class MessageQueue:
    """One queue of a topic on one broker."""

    topic: str = ""
    broker_name: str = ""
    queue_id: int = 0

    def __str__(self) -> str:
        return (
            f"MessageQueue [topic={self.topic}, brokerName={self.broker_name}, "
            f"queueId={self.queue_id}]"
        )


@dataclass
class MessageExt:
    """A message as delivered to a consumer."""

    topic: str = ""
    body: bytes = b""
    properties: dict[str, str] = field(default_factory=dict)
    queue: MessageQueue | None = None
    msg_id: str = ""
    queue_offset: int = 0
    commit_log_offset: int = 0
    store_host: str = ""
    reconsume_times: int = 0
    born_timestamp: int = 0

    def get_property(self, key: str) -> str:
        """Return the property value, or an empty string when it is absent."""
        return self.properties.get(key, "")

    def with_property(self, key: str, value: str) -> "MessageExt":
        """Set a property and return the message for chaining."""
        self.properties[key] = value
        return self


@dataclass
class FilterMessageContext:
    """What a filter hook sees about a batch of pulled messages."""

    consumer_group: str = ""
    messages: list[MessageExt] = field(default_factory=list)
    mq: MessageQueue | None = None
    arg: Any = None
    unit_mode: bool = False


FilterMessageHook = Callable[[FilterMessageContext], list[MessageExt]]