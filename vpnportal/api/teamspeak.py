"""Voice-server admin API endpoints, forwarded to the TeamSpeak admin service."""
from typing import Any

from fastapi import APIRouter, Depends, Response, status

from vpnportal.api.deps import get_voice_client
from vpnportal.api.schemas import VoiceChannelCreate, VoiceUserCreate, VoiceUserUpdate
from vpnportal.db.models_auth import User
from vpnportal.services.auth import get_admin_user
from vpnportal.services.voice_server import VoiceServerClient

router = APIRouter(prefix="/teamspeak", tags=["teamspeak"])


@router.get("/users")
async def list_voice_users(
    voice: VoiceServerClient = Depends(get_voice_client),
    admin: User = Depends(get_admin_user),
) -> Any:
    return await voice.list_users()


@router.post("/users", status_code=status.HTTP_201_CREATED)
async def create_voice_user(
    req: VoiceUserCreate,
    voice: VoiceServerClient = Depends(get_voice_client),
    admin: User = Depends(get_admin_user),
) -> Any:
    return await voice.create_user(req.model_dump(exclude_none=True))


@router.put("/users/{voice_user_id}")
async def update_voice_user(
    voice_user_id: str,
    req: VoiceUserUpdate,
    voice: VoiceServerClient = Depends(get_voice_client),
    admin: User = Depends(get_admin_user),
) -> Any:
    return await voice.update_user(voice_user_id, req.model_dump(exclude_none=True))


@router.delete("/users/{voice_user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_voice_user(
    voice_user_id: str,
    voice: VoiceServerClient = Depends(get_voice_client),
    admin: User = Depends(get_admin_user),
):
    await voice.delete_user(voice_user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/channels")
async def list_voice_channels(
    voice: VoiceServerClient = Depends(get_voice_client),
    admin: User = Depends(get_admin_user),
) -> Any:
    return await voice.list_channels()


@router.post("/channels", status_code=status.HTTP_201_CREATED)
async def create_voice_channel(
    req: VoiceChannelCreate,
    voice: VoiceServerClient = Depends(get_voice_client),
    admin: User = Depends(get_admin_user),
) -> Any:
    return await voice.create_channel(req.model_dump(exclude_none=True, by_alias=True))
