# liveroom/domains/activations/api.py
from typing import Optional

from fastapi import APIRouter, Depends, status

from liveroom.domains.activations.schemas import (
    ActivationOut,
    LaunchRequest,
    TemplateCreate,
    TransitionRequest,
    redact_answers,
)
from liveroom.domains.activations.service import activation_service
from liveroom.domains.auth.dependencies import (
    can_mutate,
    ensure_can_mutate,
    get_principal,
    require_activation_operator,
    require_room_operator,
)

router = APIRouter()


@router.post("/activations/templates", response_model=ActivationOut, status_code=status.HTTP_201_CREATED)
async def create_template(data: TemplateCreate, principal=Depends(get_principal)):
    ensure_can_mutate(principal, data.room_id or "*")
    return await activation_service.create_template(data)


@router.get("/activations/templates")
async def list_templates(room_id: Optional[str] = None, principal=Depends(get_principal)):
    return await activation_service.list_templates(room_id, include_answers=can_mutate(principal, room_id))


@router.get("/activations/{activation_id}")
async def get_activation(activation_id: str, principal=Depends(get_principal)):
    """Answer fields are only returned to callers allowed to manage the room"""
    activation = await activation_service.get(activation_id)
    if not can_mutate(principal, activation["room_id"]):
        activation = redact_answers(activation)
    return activation


@router.post("/activations/{activation_id}/poll-state", response_model=ActivationOut)
async def transition_poll(
        activation_id: str,
        request: TransitionRequest,
        principal=Depends(require_activation_operator),
):
    """Move a poll pending -> voting -> closed; repeating the current state is a no-op"""
    return await activation_service.transition_poll(activation_id, request.to, actor=principal.get("sub"))


@router.post("/activations/{activation_id}/deactivate", response_model=ActivationOut)
async def deactivate(activation_id: str, principal=Depends(require_activation_operator)):
    return await activation_service.deactivate(activation_id, actor=principal.get("sub"))


@router.delete("/activations/{activation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_activation(activation_id: str, principal=Depends(require_activation_operator)):
    await activation_service.delete_activation(activation_id)


@router.post("/rooms/{room_id}/activations", response_model=ActivationOut, status_code=status.HTTP_201_CREATED)
async def launch(room_id: str, request: LaunchRequest, principal=Depends(require_room_operator)):
    """Copy a template into the room and make it the live activation"""
    return await activation_service.launch(request.template_id, room_id, actor=principal.get("sub"))


@router.get("/rooms/{room_id}/activations")
async def list_live(room_id: str, principal=Depends(get_principal)):
    return await activation_service.list_live(room_id, include_answers=can_mutate(principal, room_id))
