from rmqclient.message import FilterMessageContext, MessageExt, MessageQueue


def test_missing_property_is_empty_string():
    msg = MessageExt(topic="TopicTest")
    assert msg.get_property("RETRY_TOPIC") == ""


def test_with_property_sets_and_chains():
    msg = MessageExt(topic="TopicTest")
    returned = msg.with_property("k", "v")
    assert returned is msg
    assert msg.get_property("k") == "v"


def test_properties_not_shared_between_messages():
    first = MessageExt()
    second = MessageExt()
    first.with_property("a", "b")
    assert second.get_property("a") == ""


def test_message_queue_equality_and_hash():
    a = MessageQueue("TopicTest", "broker-a", 1)
    b = MessageQueue("TopicTest", "broker-a", 1)
    assert a == b
    assert len({a, b}) == 1
    assert MessageQueue("TopicTest", "broker-a", 2) != a


def test_message_queue_str_names_fields():
    text = str(MessageQueue("TopicTest", "broker-a", 3))
    assert "TopicTest" in text
    assert "broker-a" in text
    assert "3" in text


def test_filter_context_defaults():
    ctx = FilterMessageContext(consumer_group="testGroup")
    assert ctx.messages == []
    assert ctx.unit_mode is False
    assert ctx.consumer_group == "testGroup"