"""
Integration sync endpoints
"""
from fastapi import APIRouter, Depends, HTTPException

from clariti.api.deps import get_current_user, get_sync_service
from clariti.exceptions import IntegrationNotConnectedError
from clariti.models.task import TaskSource
from clariti.models.user import User
from clariti.services.sync_service import SyncService

router = APIRouter()

# Older clients post to /calendar/sync
SOURCE_ALIASES = {"calendar": TaskSource.GOOGLE_CALENDAR}


def _resolve_source(provider: str) -> TaskSource:
    if provider in SOURCE_ALIASES:
        return SOURCE_ALIASES[provider]
    try:
        return TaskSource(provider)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown provider: {provider}")


@router.post("/sync-all")
async def sync_all(
    current_user: User = Depends(get_current_user),
    service: SyncService = Depends(get_sync_service),
):
    """Sync every connected integration for the current user"""
    response = await service.sync_all(current_user)
    return response.model_dump()


@router.post("/{provider}/sync")
async def sync_provider(
    provider: str,
    current_user: User = Depends(get_current_user),
    service: SyncService = Depends(get_sync_service),
):
    source = _resolve_source(provider)
    try:
        summary = await service.sync_source(current_user, source)
    except IntegrationNotConnectedError as e:
        raise HTTPException(status_code=400, detail=f"{e.provider.capitalize()} not connected")
    return summary.to_response()
