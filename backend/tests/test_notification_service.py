from neocafe.services.notification_service import LoggingNotifier, notify


class ExplodingNotifier:
    def emit(self, event, payload):
        raise RuntimeError("socket closed")


def test_subscribers_receive_events_in_order():
    notifier = LoggingNotifier()
    seen = []
    notifier.subscribe(lambda event, payload: seen.append((event, payload["roomId"])))

    notifier.emit("room:status", {"roomId": 1})
    notifier.emit("room:status", {"roomId": 2})

    assert seen == [("room:status", 1), ("room:status", 2)]


def test_failing_subscriber_does_not_block_others():
    notifier = LoggingNotifier()
    seen = []

    def broken(event, payload):
        raise ValueError("boom")

    notifier.subscribe(broken)
    notifier.subscribe(lambda event, payload: seen.append(event))

    notifier.emit("order:new", {"orderId": 1})

    assert seen == ["order:new"]


def test_unsubscribe():
    notifier = LoggingNotifier()
    seen = []
    callback = lambda event, payload: seen.append(event)  # noqa: E731
    notifier.subscribe(callback)
    notifier.unsubscribe(callback)

    notifier.emit("order:new", {})

    assert seen == []


def test_notify_swallows_broadcaster_failure(app):
    notify(ExplodingNotifier(), "session:ended", {"sessionId": 1})
