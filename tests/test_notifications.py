from __future__ import annotations

import json

from redis.exceptions import ConnectionError as RedisConnectionError

from conftest import run
from jobboard.services.notifications import Events, NotificationPublisher


class FakeRedis:
    def __init__(self, fail_ping: bool = False, fail_publish: bool = False):
        self.fail_ping = fail_ping
        self.fail_publish = fail_publish
        self.published: list[tuple[str, str]] = []
        self.closed = False

    async def ping(self):
        if self.fail_ping:
            raise RedisConnectionError("connection refused")
        return True

    async def publish(self, channel, message):
        if self.fail_publish:
            raise RedisConnectionError("connection reset")
        self.published.append((channel, message))
        return 1

    async def aclose(self):
        self.closed = True


def test_disabled_publisher_drops_events() -> None:
    publisher = NotificationPublisher(redis_url="")

    assert run(publisher.connect()) is False
    assert run(publisher.publish_event("anything", {"a": 1})) is False


def test_publish_event_adds_timestamp() -> None:
    fake = FakeRedis()
    publisher = NotificationPublisher(client=fake)
    assert run(publisher.connect()) is True

    assert run(publisher.publish_user_registered("u1", "a@b.com", None)) is True

    channel, message = fake.published[0]
    assert channel == Events.USER_REGISTERED
    payload = json.loads(message)
    assert payload["event"] == "USER_REGISTERED"
    assert payload["userId"] == "u1"
    assert payload["name"] == "a@b.com"
    assert "timestamp" in payload


def test_password_changed_notification_targets_user() -> None:
    fake = FakeRedis()
    publisher = NotificationPublisher(client=fake)
    run(publisher.connect())

    run(publisher.publish_password_changed("u1", "reset"))

    channel, message = fake.published[0]
    assert channel == Events.PASSWORD_CHANGED
    assert json.loads(message)["notification"]["recipientId"] == "u1"


def test_unreachable_redis_is_tolerated() -> None:
    publisher = NotificationPublisher(client=FakeRedis(fail_ping=True))

    assert run(publisher.connect()) is False
    assert publisher.is_connected is False
    assert run(publisher.publish_event(Events.USER_REGISTERED, {"userId": "u1"})) is False


def test_publish_failure_returns_false() -> None:
    publisher = NotificationPublisher(client=FakeRedis(fail_publish=True))
    run(publisher.connect())

    assert run(publisher.publish_event(Events.USER_REGISTERED, {"userId": "u1"})) is False


def test_close_releases_client() -> None:
    fake = FakeRedis()
    publisher = NotificationPublisher(client=fake)
    run(publisher.connect())

    run(publisher.close())

    assert fake.closed is True
    assert publisher.is_connected is False
