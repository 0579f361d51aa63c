# src/rchat/api/v1/endpoints/admin.py
"""Site administration endpoints: site bans, site-wide listings and count repair."""

from __future__ import annotations

import asyncio
from typing import Annotated

from fastapi import APIRouter, Query, Response, status

from rchat.models import BannedUsername
from rchat.schemas.events import IdentityBanned
from rchat.schemas.moderation import BannedUsernameResponse, CountsRepairResponse, SiteBanRequest
from rchat.schemas.server import ServerPage, ServerResponse
from rchat.schemas.user import UserPage, UserResponse
from rchat.services import moderation
from rchat.services.accounts import list_users
from rchat.services.permissions import require_admin
from rchat.services.servers import list_all_servers, recompute_counts

from ..dependencies import CurrentUserDep, ManagerDep, SessionDep

router = APIRouter(prefix="/admin", tags=["admin"])

SearchQuery = Annotated[str | None, Query(max_length=64)]
LimitQuery = Annotated[int, Query(ge=1, le=200)]
OffsetQuery = Annotated[int, Query(ge=0)]


@router.post("/bans", status_code=status.HTTP_204_NO_CONTENT)
async def site_ban(
    payload: SiteBanRequest,
    current_user: CurrentUserDep,
    db: SessionDep,
    manager: ManagerDep,
) -> Response:
    """Ban a user from the whole site and erase their data."""
    # The cascade may sleep between retries; keep it off the event loop.
    username = await asyncio.to_thread(
        moderation.site_ban, db, payload.username, current_user.username
    )
    manager.publish(IdentityBanned(username=username))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/bans", response_model=list[BannedUsernameResponse])
async def list_site_bans(
    current_user: CurrentUserDep,
    db: SessionDep,
    q: SearchQuery = None,
    limit: LimitQuery = 50,
    offset: OffsetQuery = 0,
) -> list[BannedUsername]:
    return moderation.list_site_bans(db, current_user.username, q=q, limit=limit, offset=offset)


@router.post("/bans/{username}/resume", status_code=status.HTTP_204_NO_CONTENT)
async def resume_site_ban(
    username: str,
    current_user: CurrentUserDep,
    db: SessionDep,
    manager: ManagerDep,
) -> Response:
    """Finish a site ban whose cascade stopped part-way."""
    banned = await asyncio.to_thread(
        moderation.resume_site_ban, db, username, current_user.username
    )
    manager.publish(IdentityBanned(username=banned))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/bans/{username}", status_code=status.HTTP_204_NO_CONTENT)
async def lift_site_ban(
    username: str,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> Response:
    moderation.lift_site_ban(db, username, current_user.username)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/servers", response_model=ServerPage)
async def list_servers(
    current_user: CurrentUserDep,
    db: SessionDep,
    q: SearchQuery = None,
    limit: LimitQuery = 50,
    offset: OffsetQuery = 0,
) -> ServerPage:
    """Every active community on the site, newest first."""
    page, total = list_all_servers(db, current_user.username, q=q, limit=limit, offset=offset)
    return ServerPage(
        servers=[ServerResponse.model_validate(server) for server in page], total=total
    )


@router.get("/users", response_model=UserPage)
async def list_accounts(
    current_user: CurrentUserDep,
    db: SessionDep,
    q: SearchQuery = None,
    limit: LimitQuery = 50,
    offset: OffsetQuery = 0,
) -> UserPage:
    page, total = list_users(db, current_user.username, q=q, limit=limit, offset=offset)
    return UserPage(users=[UserResponse.model_validate(user) for user in page], total=total)


@router.post("/recompute-counts", response_model=CountsRepairResponse)
async def repair_counts(current_user: CurrentUserDep, db: SessionDep) -> CountsRepairResponse:
    """Recompute every community's member and channel counts."""
    require_admin(db, current_user.username)
    return CountsRepairResponse(servers_updated=recompute_counts(db))
