# liveroom/core/websocket_manager.py
"""
WebSocket bridge for the change notification fan-out.

Each socket joins its room channel on connect and may join activation channels for
live poll tallies. A channel is subscribed on the notifier only while at least one
socket is listening to it.
"""
import asyncio
import json
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Set

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from liveroom.core.config import settings
from liveroom.core.notifications import notifier
from liveroom.shared.schemas.events import activation_channel, room_channel
from liveroom.shared.utils.logger import get_logger

logger = get_logger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ConnectionInfo:
    """Information about a WebSocket connection"""

    def __init__(self, websocket: WebSocket, room_id: str, participant_id: Optional[str] = None):
        self.websocket = websocket
        self.room_id = room_id
        self.participant_id = participant_id
        self.channels: Set[str] = set()
        self.connected_at = _now()
        self.last_ping = _now()
        self.last_pong = _now()

    def update_activity(self):
        self.last_pong = _now()


class WebSocketManager:
    def __init__(self):
        self.connections: Dict[str, List[WebSocket]] = {}
        self.connection_info: Dict[WebSocket, ConnectionInfo] = {}
        self._unsubscribers: Dict[str, Callable[[], None]] = {}

        self.ping_interval = settings.WS_PING_INTERVAL
        self.pong_timeout = settings.WS_PONG_TIMEOUT
        self.max_message_size = 65536

        self._tasks: list[asyncio.Task] = []
        self._started: bool = False

    async def start(self):
        """Start the heartbeat (must be called inside a running event loop)"""
        if self._started:
            return
        loop = asyncio.get_running_loop()
        self._tasks = [loop.create_task(self._heartbeat_loop(), name="ws-heartbeat")]
        self._started = True
        logger.info("WebSocketManager background tasks started")

    async def stop(self):
        if not self._started:
            return
        for t in self._tasks:
            t.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        self._started = False
        logger.info("WebSocketManager background tasks stopped")

    async def connect(self, websocket: WebSocket, room_id: str, participant_id: Optional[str] = None):
        await websocket.accept()
        self.connection_info[websocket] = ConnectionInfo(websocket, room_id, participant_id)
        self.join_channel(websocket, room_channel(room_id))
        logger.info(f"WebSocket connected: room={room_id}, participant={participant_id}")

    def join_channel(self, websocket: WebSocket, channel: str):
        info = self.connection_info.get(websocket)
        if not info or channel in info.channels:
            return
        info.channels.add(channel)
        self.connections.setdefault(channel, []).append(websocket)

        if channel not in self._unsubscribers:
            async def forward(payload: dict):
                await self.broadcast(channel, payload)

            self._unsubscribers[channel] = notifier.subscribe(channel, forward)

    def leave_channel(self, websocket: WebSocket, channel: str):
        info = self.connection_info.get(websocket)
        if info:
            info.channels.discard(channel)

        sockets = self.connections.get(channel)
        if sockets and websocket in sockets:
            sockets.remove(websocket)
        if channel in self.connections and not self.connections[channel]:
            del self.connections[channel]
            unsubscribe = self._unsubscribers.pop(channel, None)
            if unsubscribe:
                unsubscribe()

    def disconnect(self, websocket: WebSocket):
        info = self.connection_info.get(websocket)
        if not info:
            return
        for channel in list(info.channels):
            self.leave_channel(websocket, channel)
        del self.connection_info[websocket]
        logger.info(f"WebSocket disconnected: room={info.room_id}, participant={info.participant_id}")

    async def broadcast(self, channel: str, message: dict):
        sockets = list(self.connections.get(channel, ()))
        if not sockets:
            return

        results = await asyncio.gather(*(self._send_direct(ws, message) for ws in sockets))
        for websocket, sent in zip(sockets, results):
            if not sent:
                self.disconnect(websocket)

    async def send(self, websocket: WebSocket, message: dict) -> bool:
        return await self._send_direct(websocket, message)

    async def handle_message(self, websocket: WebSocket, message: str) -> Optional[dict]:
        """
        Handle heartbeat and channel membership messages.

        Returns the parsed message when the caller has follow-up work (a fresh
        subscription needs a state snapshot), None otherwise.
        """
        if len(message) > self.max_message_size:
            await self._send_direct(websocket, {"type": "error", "error": "Message too large"})
            return None

        try:
            data = json.loads(message)
        except json.JSONDecodeError:
            await self._send_direct(websocket, {"type": "error", "error": "Invalid JSON"})
            return None

        info = self.connection_info.get(websocket)
        if not info or not isinstance(data, dict):
            return None

        info.update_activity()
        msg_type = data.get("type")
        if msg_type == "ping":
            await self._send_direct(websocket, {"type": "pong"})
            return None
        if msg_type == "pong":
            return None
        if msg_type in ("subscribe", "unsubscribe") and data.get("activation_id"):
            channel = activation_channel(str(data["activation_id"]))
            if msg_type == "subscribe":
                self.join_channel(websocket, channel)
                return data
            self.leave_channel(websocket, channel)
            return None

        await self._send_direct(websocket, {"type": "error", "error": f"Unsupported message type {msg_type}"})
        return None

    async def _send_direct(self, websocket: WebSocket, message: dict) -> bool:
        try:
            if websocket.client_state == WebSocketState.CONNECTED:
                await websocket.send_json(message)
                return True
        except Exception as e:
            logger.debug(f"Direct send failed: {e}")
        return False

    async def _close(self, websocket: WebSocket):
        try:
            await websocket.close()
        except Exception as e:
            logger.debug(f"Close failed: {e}")

    async def _heartbeat_loop(self):
        while True:
            try:
                await asyncio.sleep(self.ping_interval)

                for websocket, info in list(self.connection_info.items()):
                    if websocket.client_state != WebSocketState.CONNECTED:
                        self.disconnect(websocket)
                        continue
                    silent_for = (_now() - info.last_pong).total_seconds()
                    if silent_for > self.ping_interval + self.pong_timeout:
                        logger.warning(f"Connection stale in room {info.room_id}")
                        self.disconnect(websocket)
                        await self._close(websocket)
                        continue
                    await self._send_direct(websocket, {"type": "ping"})
                    info.last_ping = _now()

            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Heartbeat error: {e}")

    def get_connection_stats(self) -> Dict:
        return {
            "total_connections": len(self.connection_info),
            "channels": len(self.connections),
        }


websocket_manager = WebSocketManager()
