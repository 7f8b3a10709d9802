"""WebSocket entry point for real-time messaging."""

from __future__ import annotations

from fastapi import APIRouter, Query, WebSocket

from kiu_social.api.dependencies import GatewayDep, SessionDep

router = APIRouter(tags=["realtime"])


def _bearer_token(websocket: WebSocket) -> str | None:
    header = websocket.headers.get("authorization", "")
    scheme, _, value = header.partition(" ")
    if scheme.lower() == "bearer" and value:
        return value.strip()
    return None


@router.websocket("/ws")
async def realtime_socket(
    websocket: WebSocket,
    db: SessionDep,
    gateway: GatewayDep,
    token: str | None = Query(default=None),
) -> None:
    """Authenticate with ``?token=`` or a bearer header, then exchange events."""
    await gateway.serve(websocket, db, token or _bearer_token(websocket))
