"""Blocked and safe list routes."""

import logging

from fastapi import APIRouter, Depends
from fraudwatch_shared.schemas import EntityListEntry, EntityType, UserProfile
from pydantic import BaseModel, Field

from fraudwatch_api.auth.jwt import get_current_user
from fraudwatch_api.errors import ValidationError
from fraudwatch_api.security.normalizer import detect_entity_type, normalize_entity
from fraudwatch_api.services import Services, get_services

logger = logging.getLogger("fraudwatch-api")

router = APIRouter(prefix="/actions", tags=["Actions"])


# =============================================================================
# Request/Response Models
# =============================================================================


class EntityActionRequest(BaseModel):
    """An entity to block or mark safe."""

    entity: str = Field(..., max_length=255)
    entity_type: EntityType | None = None


class EntityActionResponse(BaseModel):
    success: bool = True
    message: str
    entry: EntityListEntry


class MyListsResponse(BaseModel):
    blocked_entities: list[EntityListEntry]
    safe_entities: list[EntityListEntry]


def _resolve(request: EntityActionRequest) -> tuple[str, EntityType]:
    entity = normalize_entity(request.entity)
    return entity, request.entity_type or detect_entity_type(entity)


# =============================================================================
# Routes
# =============================================================================


@router.post("/block", response_model=EntityActionResponse)
async def block_entity(
    request: EntityActionRequest,
    user: UserProfile = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """Block an entity. It comes off the safe list if it was there."""
    entity, entity_type = _resolve(request)
    if user.is_blocked(entity, entity_type):
        raise ValidationError("This entity is already blocked.", code="already_listed")

    entry = user.block(entity, entity_type)
    await services.storage.users.save_user(user)
    logger.info(f"User {user.id} blocked {entity_type.value} {entity}")
    return EntityActionResponse(message="Entity blocked successfully.", entry=entry)


@router.post("/mark-safe", response_model=EntityActionResponse)
async def mark_entity_safe(
    request: EntityActionRequest,
    user: UserProfile = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """Mark an entity safe. It comes off the blocked list if it was there."""
    entity, entity_type = _resolve(request)
    if user.is_marked_safe(entity, entity_type):
        raise ValidationError(
            "This entity is already marked as safe.", code="already_listed"
        )

    entry = user.mark_safe(entity, entity_type)
    await services.storage.users.save_user(user)
    logger.info(f"User {user.id} marked {entity_type.value} {entity} safe")
    return EntityActionResponse(message="Entity marked as safe.", entry=entry)


@router.get("/my-lists", response_model=MyListsResponse)
async def my_lists(user: UserProfile = Depends(get_current_user)):
    """The user's blocked and safe lists, oldest first."""
    return MyListsResponse(
        blocked_entities=user.blocked_entities,
        safe_entities=user.safe_entities,
    )
