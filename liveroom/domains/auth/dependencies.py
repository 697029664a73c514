from typing import Optional

from fastapi import Depends, Request

from liveroom.core.database import get_db
from liveroom.domains.activations import repository as activation_repository
from liveroom.domains.auth import capability
from liveroom.shared.exceptions import NotFoundError, PermissionDeniedError


def get_principal(request: Request) -> Optional[dict]:
    return getattr(request.state, "principal", None)


def can_mutate(principal: Optional[dict], room_id: Optional[str]) -> bool:
    return capability.capability_checker.can_mutate_room(principal, room_id or "*")


def ensure_can_mutate(principal: Optional[dict], room_id: str):
    if not can_mutate(principal, room_id):
        raise PermissionDeniedError(f"Not allowed to manage room {room_id}")


async def require_room_operator(room_id: str, principal=Depends(get_principal)) -> dict:
    ensure_can_mutate(principal, room_id)
    return principal


async def require_activation_operator(activation_id: str, principal=Depends(get_principal)) -> dict:
    async with get_db() as db:
        activation = await activation_repository.get_activation(db, activation_id)
    if not activation:
        raise NotFoundError(f"Activation {activation_id} not found")
    # shared templates have no room; only a principal granted every room may touch them
    ensure_can_mutate(principal, activation.room_id or "*")
    return principal
