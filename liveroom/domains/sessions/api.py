# liveroom/domains/sessions/api.py
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from liveroom.core.websocket_manager import websocket_manager
from liveroom.domains.auth.dependencies import require_room_operator
from liveroom.domains.sessions.schemas import ArmRequest, RoomState, SessionState
from liveroom.domains.sessions.service import session_coordinator
from liveroom.domains.votes.service import vote_service
from liveroom.shared.exceptions import LiveRoomError
from liveroom.shared.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()
ws_router = APIRouter()


@router.get("/{room_id}/session", response_model=SessionState)
async def get_session(room_id: str):
    return await session_coordinator.get(room_id)


@router.get("/{room_id}/state", response_model=RoomState)
async def get_room_state(room_id: str):
    """Current session and live activation, used on initial load and reconnect"""
    return await session_coordinator.get_room_state(room_id)


@router.post("/{room_id}/session/arm", response_model=SessionState)
async def arm_activation(room_id: str, request: ArmRequest, principal=Depends(require_room_operator)):
    return await session_coordinator.arm(
        room_id,
        request.activation_id,
        preserve_poll_state=request.preserve_poll_state,
        actor=principal.get("sub"),
    )


@router.post("/{room_id}/session/clear", response_model=SessionState)
async def clear_session(room_id: str, principal=Depends(require_room_operator)):
    return await session_coordinator.clear(room_id)


@ws_router.websocket("/{room_id}/ws")
async def room_websocket(websocket: WebSocket, room_id: str):
    participant_id = websocket.query_params.get("participant_id")
    await websocket_manager.connect(websocket, room_id, participant_id)
    try:
        snapshot = await session_coordinator.get_room_state(room_id)
        await websocket_manager.send(websocket, {"type": "snapshot", **snapshot.model_dump(mode="json")})

        while True:
            message = await websocket.receive_text()
            data = await websocket_manager.handle_message(websocket, message)
            if data and data.get("type") == "subscribe":
                try:
                    tally = await vote_service.get_tally(str(data["activation_id"]))
                except LiveRoomError as e:
                    await websocket_manager.send(websocket, {"type": "error", "error": e.message})
                    continue
                await websocket_manager.send(websocket, {"type": "tally", **tally.model_dump()})
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"WebSocket error in room {room_id}: {e}")
    finally:
        websocket_manager.disconnect(websocket)
