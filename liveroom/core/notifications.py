# liveroom/core/notifications.py
"""
Change notification fan-out.

Channels are plain strings (see shared.schemas.events.room_channel /
activation_channel). Delivery is best-effort and at-most-once; ordering holds only
within one channel. Clients reconcile by re-reading state on (re)subscribe.

With NOTIFY_BACKEND=redis every publish goes through Redis pub/sub and the relay task
re-dispatches to in-process handlers, so events produced by Celery workers reach the
websocket clients held by the web processes. Only one of the two paths is active.
"""
import asyncio
import json
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from pydantic import BaseModel

from liveroom.core.config import NotifyBackend, settings
from liveroom.core.redis import RedisManager
from liveroom.shared.utils.logger import get_logger

Handler = Callable[[Dict[str, Any]], Union[Awaitable[None], None]]


class ChangeNotifier:
    def __init__(self):
        self.subscriptions: Dict[str, List[Handler]] = {}
        self.log = get_logger("notifications")
        self._relay_task: Optional[asyncio.Task] = None

    @property
    def uses_redis(self) -> bool:
        return settings.NOTIFY_BACKEND == NotifyBackend.REDIS

    async def publish(self, channel: str, event: Union[BaseModel, Dict[str, Any]]):
        payload = event.model_dump(mode="json") if isinstance(event, BaseModel) else dict(event)

        if self.uses_redis:
            try:
                client = RedisManager.get_client()
                await client.publish(
                    f"{settings.NOTIFY_REDIS_PREFIX}:{channel}",
                    json.dumps(payload, default=str),
                )
            except Exception as e:
                # state is already committed; clients catch up on their next read
                self.log.error(f"Failed to publish to {channel} via redis: {e}")
            return

        await self.dispatch(channel, payload)

    async def dispatch(self, channel: str, payload: Dict[str, Any]):
        handlers = list(self.subscriptions.get(channel, ()))
        if not handlers:
            return
        await asyncio.gather(*(self._run_handler(handler, payload) for handler in handlers))

    async def _run_handler(self, handler: Handler, payload: Dict[str, Any]):
        try:
            await asyncio.wait_for(
                handler(payload)
                if asyncio.iscoroutinefunction(handler)
                else asyncio.to_thread(handler, payload),
                timeout=settings.NOTIFY_HANDLER_TIMEOUT,
            )
        except asyncio.TimeoutError:
            self.log.error(f"Handler timed out: {getattr(handler, '__name__', handler)}")
        except Exception as e:
            self.log.error(f"Error in notification handler: {e}")

    def subscribe(self, channel: str, handler: Handler) -> Callable[[], None]:
        self.subscriptions.setdefault(channel, []).append(handler)
        self.log.debug(f"Subscribed handler to: {channel}")

        def unsubscribe():
            handlers = self.subscriptions.get(channel)
            if not handlers or handler not in handlers:
                return
            handlers.remove(handler)
            if not handlers:
                del self.subscriptions[channel]
            self.log.debug(f"Unsubscribed handler from: {channel}")

        return unsubscribe

    async def start(self):
        if not self.uses_redis or self._relay_task is not None:
            return
        self._relay_task = asyncio.get_running_loop().create_task(
            self._relay_loop(), name="notify-relay"
        )
        self.log.info("Redis notification relay started")

    async def stop(self):
        if self._relay_task is None:
            return
        self._relay_task.cancel()
        await asyncio.gather(self._relay_task, return_exceptions=True)
        self._relay_task = None
        self.log.info("Redis notification relay stopped")

    async def _relay_loop(self):
        prefix = f"{settings.NOTIFY_REDIS_PREFIX}:"
        while True:
            pubsub = RedisManager.get_client().pubsub()
            try:
                await pubsub.psubscribe(f"{prefix}*")
                async for message in pubsub.listen():
                    if message.get("type") != "pmessage":
                        continue
                    channel = message["channel"]
                    if isinstance(channel, bytes):
                        channel = channel.decode()
                    try:
                        payload = json.loads(message["data"])
                    except (TypeError, ValueError):
                        self.log.warning(f"Dropping malformed notification on {channel}")
                        continue
                    await self.dispatch(channel[len(prefix):], payload)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.log.error(f"Notification relay error, reconnecting: {e}")
                await asyncio.sleep(1)
            finally:
                await pubsub.aclose()


notifier = ChangeNotifier()
