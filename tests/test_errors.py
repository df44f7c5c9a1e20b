from rmqclient.errors import ClientError, ErrorKind


def test_kind_messages_are_source_messages():
    assert str(ClientError(ErrorKind.CREATED)) == "consumer group has been created"
    assert str(ClientError(ErrorKind.BROKER_NOT_FOUND)) == "broker can not found"


def test_error_message_without_detail_is_kind_message():
    err = ClientError(ErrorKind.START_TOPIC)
    assert str(err) == ErrorKind.START_TOPIC.value
    assert err.kind is ErrorKind.START_TOPIC
    assert err.detail is None


def test_error_message_includes_detail():
    err = ClientError(ErrorKind.TOPIC_NOT_EXIST, "orders")
    assert str(err).startswith(ErrorKind.TOPIC_NOT_EXIST.value)
    assert str(err).endswith("orders")
    assert err.detail == "orders"


def test_error_with_detail_keeps_kind_and_detail():
    err = ClientError(ErrorKind.CREATED, "testGroup")
    assert isinstance(err, Exception)
    assert err.kind is ErrorKind.CREATED
    assert err.detail == "testGroup"
    assert "consumer group has been created" in str(err)
    assert str(err).endswith("testGroup")


def test_error_with_none_detail_keeps_kind_message():
    err = ClientError(ErrorKind.CREATED, None)
    assert err.kind is ErrorKind.CREATED
    assert err.detail is None
    assert str(err) == "consumer group has been created"


def test_error_messages_are_unique_per_kind():
    messages = [str(ClientError(kind)) for kind in ErrorKind]
    assert len(messages) == len(set(messages))