"""
Service: Notification Publisher

Purpose:
- Best-effort Redis pub/sub events for real-time notifications. Publishing
  never raises and never blocks the request that triggered it: a missing or
  unreachable Redis is logged and the event is dropped.

Environment variables:
- REDIS_URL: e.g. redis://localhost:6379 (empty disables publishing)

Message format:
- JSON object: the event payload plus an ISO-8601 "timestamp"
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

logger = logging.getLogger("jobboard.notifications")


class Events:
    USER_REGISTERED = "user.registered"
    PASSWORD_CHANGED = "user.password.changed"


class NotificationPublisher:
    def __init__(self, redis_url: Optional[str] = None, client: Optional[aioredis.Redis] = None):
        self.redis_url = redis_url or ""
        self._client = client
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._client is not None and self._connected

    async def connect(self) -> bool:
        if not self.redis_url and self._client is None:
            logger.info("REDIS_URL not set; notifications disabled")
            return False
        try:
            if self._client is None:
                self._client = aioredis.from_url(
                    self.redis_url,
                    decode_responses=True,
                    socket_connect_timeout=2,
                    socket_timeout=2,
                )
            await self._client.ping()
            self._connected = True
            logger.info("Redis connected and ready")
        except (RedisError, OSError) as exc:
            # the app keeps running without notifications
            self._connected = False
            logger.error("Failed to connect to Redis: %s", exc)
        return self._connected

    async def close(self) -> None:
        if self._client is None:
            return
        try:
            await self._client.aclose()
        except (RedisError, OSError) as exc:
            logger.error("Error disconnecting from Redis: %s", exc)
        finally:
            self._client = None
            self._connected = False

    async def publish_event(self, channel: str, payload: Dict[str, Any]) -> bool:
        if not self.is_connected:
            logger.warning("Redis not connected. Event not published to channel: %s", channel)
            return False
        message = json.dumps({**payload, "timestamp": datetime.now(timezone.utc).isoformat()}, default=str)
        try:
            await self._client.publish(channel, message)
        except (RedisError, OSError) as exc:
            logger.error("Error publishing to %s: %s", channel, exc)
            return False
        logger.debug("Event published to %s", channel)
        return True

    async def publish_user_registered(self, user_id: str, email: str, name: Optional[str]) -> bool:
        return await self.publish_event(
            Events.USER_REGISTERED,
            {"event": "USER_REGISTERED", "userId": user_id, "email": email, "name": name or email},
        )

    async def publish_password_changed(self, user_id: str, reason: str) -> bool:
        return await self.publish_event(
            Events.PASSWORD_CHANGED,
            {
                "event": "PASSWORD_CHANGED",
                "userId": user_id,
                "reason": reason,
                "notification": {
                    "type": "SECURITY",
                    "title": "Password changed",
                    "message": "Your password was changed and all sessions were signed out.",
                    "recipientId": user_id,
                },
            },
        )
