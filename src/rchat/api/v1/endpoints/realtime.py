# src/rchat/api/v1/endpoints/realtime.py
"""Live event stream over WebSocket."""

from __future__ import annotations

from fastapi import APIRouter, WebSocket

from ..dependencies import ManagerDep, SessionDep, identity_from_token

router = APIRouter(tags=["realtime"])


def _token_from(websocket: WebSocket) -> str | None:
    token = websocket.query_params.get("token")
    if token:
        return token
    header = websocket.headers.get("authorization", "")
    scheme, _, value = header.partition(" ")
    if scheme.lower() == "bearer" and value:
        return value
    return None


@router.websocket("/ws")
async def live_events(websocket: WebSocket, db: SessionDep, manager: ManagerDep) -> None:
    """Stream every published event to the client until either side hangs up.

    An invalid or missing token connects as the guest identity, which
    receives events but never appears online.
    """
    username = identity_from_token(_token_from(websocket), db)
    # The socket can live for hours; it must not pin a pooled connection.
    db.commit()

    await websocket.accept()
    await manager.serve(websocket, username)
