# rmqclient

Consumer-side building blocks for a message queue client, in plain Python with no third-party dependencies.

## What is inside

- `rmqclient.errors`: `ErrorKind`, an enumeration of the client's error conditions whose values are their messages, and `ClientError(kind, detail=None)`, the exception that carries one. Its message is the kind's message, followed by `: detail` when a detail is given.
- `rmqclient.message`: `MessageQueue` (topic, broker name, queue id; frozen and hashable), `MessageExt` (with `get_property`, which returns `""` for a missing key, and `with_property`, which sets a property and returns the message) and `FilterMessageContext`.
- `rmqclient.strategy`: strategies that decide which message queues a consumer in a group takes:
  - `allocate_by_averagely` and `allocate_by_averagely_circle`
  - `allocate_by_machine_nearby`, which currently behaves like `allocate_by_averagely`
  - `allocate_by_config(queues)`, `allocate_by_machine_room(consumer_idcs)` and `allocate_by_consistent_hash(virtual_node_cnt)`, each of which returns a strategy
  - `ConsistentHashRing`, the CRC32-based hash ring used by the consistent-hash strategy; `get` raises `LookupError` on an empty ring

  Every strategy takes `(consumer_group, current_cid, mq_all, cid_all)` and returns a list. An empty consumer id, no queues, no consumers, or a consumer id that is not among `cid_all` gives an empty list.
- `rmqclient.statistics`: `StatsManager`, `StatsItemSet` and `StatsItem` record pull and consume counts and response times per `topic@group`, keep sampled history windows, and summarise them as `StatsSnapshot` (`sum`, `tps`, `avgpt`) and `ConsumeStatus` values. `compute_stats_data`, `next_minutes_time`, `next_hour_time` and `next_month_time` are available as functions.
- `rmqclient.options`: `PushConsumerOptions` with range validation and defaults, plus `ConsumerModel`, `ConsumeFromWhere`, `ConsumeResult` and `MessageSelector`.
- `rmqclient.push_consumer`: `PushConsumer`, which keeps subscriptions, dispatches messages to the subscribed callbacks through an optional interceptor chain (`chain_interceptors`), restores the topic of retried messages and splits messages into batches.

## Installing

```
pip install .
```

With the test dependencies:

```
pip install .[test]
```

## Allocating queues

```python
from rmqclient.message import MessageQueue
from rmqclient.strategy import allocate_by_averagely

queues = [MessageQueue(topic="TopicTest", broker_name="broker-a", queue_id=i) for i in range(6)]
mine = allocate_by_averagely(
    "testGroup",
    "10.0.0.1@default",
    queues,
    ["10.0.0.1@default", "10.0.0.2@default"],
)
# mine holds the queues with ids 0, 1 and 2
```

## Options

`PushConsumerOptions.validate()` replaces numeric limits left at 0 with their defaults (for example a batch size of 1 and a pull batch size of 32) and raises `ValueError` for any value outside its range, such as `option.PullBatchSize out of range [1, 1024]`. `clamp_suspend_millis(-1)` returns the configured suspend time; every result is bounded to 10–30000 milliseconds.

## Consuming

A callback takes a context and a list of messages and returns a `ConsumeResult`.

```python
from rmqclient.message import MessageExt
from rmqclient.options import ConsumeResult, MessageSelector, PushConsumerOptions
from rmqclient.push_consumer import PushConsumer

def handle(context, messages):
    for message in messages:
        print(message.topic, message.body)
    return ConsumeResult.CONSUME_SUCCESS

consumer = PushConsumer("testGroup", PushConsumerOptions())
consumer.subscribe("TopicTest", MessageSelector(), handle)
consumer.validate()

batch = [MessageExt(topic="TopicTest", body=b"hello")]
consumer.reset_retry_and_namespace(batch)
for part in consumer.split_batches(batch):
    result = consumer.consume_inner(None, part)
```

- `validate()` raises `ClientError` for an empty group name and `ValueError` for the reserved group `DEFAULT_CONSUMER` or an out-of-range option; after a failed validation, or after `shutdown()`, `subscribe` raises `ClientError` with `ErrorKind.START_TOPIC`.
- With a namespace set in the options, the group and topics are prefixed with `<namespace>%`.
- `consume_inner` raises `ValueError` for an empty batch and `LookupError` when no callback is registered for the topic. A message on the group's retry topic (`%RETRY%<group>`) is routed by its `RETRY_TOPIC` property.
- Interceptors take `(context, request, reply, next)` and call `next(context, request, reply)`; `reply` is a `ConsumeResultHolder`. The first interceptor in `PushConsumerOptions.interceptors` runs outermost. When interceptors are in use and the context is a dict, `consume_inner` records `success` and a `ConsumeContextType` property in it.
- `suspend()` and `resume()` set the `paused` flag; `get_where()` and `get_model()` report the configured start point and model as strings.

## Statistics

```python
from rmqclient.statistics import StatsManager

stats = StatsManager(start_timers=False)
stats.increase_pull_tps("group", "topic", 3)
stats.pull_tps.sampling_in_seconds()
print(stats.get_consume_status("group", "topic"))
stats.shutdown()
```

By default (`start_timers=True`) background daemon threads take samples on the regular schedule (every 10 seconds, 10 minutes and hour) and log summaries; `shutdown()` stops them.

## What this package does not do

There is no network layer. `PushConsumer` does not connect to name servers or brokers, pull messages, store offsets, send messages back for retry or run rebalancing; the caller hands messages to `consume_inner` and applies the allocation strategies itself. There is no producer and no command-line program.

## Running the tests

```
pytest
```