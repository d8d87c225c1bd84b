"""Real-time gateway.

Clients open ``/api/realtime/ws``, authenticate with a first frame
``{"token": "<jwt>"}``, then subscribe to rooms with control frames::

    {"event": "join-client",    "data": "<tenant id>"}
    {"event": "join-incident",  "data": "<incident id>"}
    {"event": "leave-client",   "data": "<tenant id>"}
    {"event": "leave-incident", "data": "<incident id>"}
    {"event": "ping"}

Joins go through the same tenant checks as the HTTP API. A refused join is
answered with an ``error`` frame and the connection stays open.
"""

import json
import logging
from typing import Any, Callable

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from sqlalchemy.ext.asyncio import AsyncSession

from incidentdesk.api.deps import get_session_factory
from incidentdesk.core import tenant_scope
from incidentdesk.core.actor import Actor
from incidentdesk.core.errors import DomainError, ValidationError
from incidentdesk.services.auth import resolve_actor
from incidentdesk.services.broadcast import BroadcastRouter, Connection, incident_room, tenant_room
from incidentdesk.services.incidents import load_incident_in_scope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/realtime", tags=["realtime"])

CONTROL_EVENTS = ("join-client", "join-incident", "leave-client", "leave-incident", "ping")


def _parse_frame(raw: str) -> dict[str, Any]:
    try:
        frame = json.loads(raw)
    except json.JSONDecodeError:
        raise ValidationError("Frame is not valid JSON") from None
    if not isinstance(frame, dict):
        raise ValidationError("Frame must be a JSON object")
    return frame


def _room_target(message: dict[str, Any]) -> str:
    target = message.get("data")
    if not isinstance(target, str) or not target:
        raise ValidationError("Room id is required", details={"event": message.get("event")})
    return target


async def handle_control_message(
    db: AsyncSession,
    actor: Actor,
    connection: Connection,
    message: dict[str, Any],
    hub: BroadcastRouter,
) -> dict[str, Any]:
    """Apply one control frame and return the reply frame.

    Raises ``DomainError`` when the frame is malformed or the join is not
    allowed for this actor.
    """
    event = message.get("event")
    if event not in CONTROL_EVENTS:
        raise ValidationError(
            f"Unknown event: {event!r}", details={"allowed": list(CONTROL_EVENTS)}
        )

    if event == "ping":
        return {"event": "pong", "data": None}

    target = _room_target(message)
    if event == "join-client":
        tenant_scope.ensure_tenant_access(actor, target)
        room = tenant_room(target)
        hub.join(connection, room)
    elif event == "join-incident":
        incident = await load_incident_in_scope(db, actor, target)
        room = incident_room(incident.id)
        hub.join(connection, room)
    elif event == "leave-client":
        room = tenant_room(target)
        hub.leave(connection, room)
    else:
        room = incident_room(target)
        hub.leave(connection, room)

    logger.debug("Actor %s %s %s", actor.id, event, room)
    return {"event": "joined" if event.startswith("join") else "left", "data": {"room": room}}


@router.websocket("/ws")
async def realtime_endpoint(
    websocket: WebSocket,
    sessions: Callable[[], AsyncSession] = Depends(get_session_factory),
):
    hub: BroadcastRouter = websocket.app.state.broadcaster
    await websocket.accept()

    try:
        auth = _parse_frame(await websocket.receive_text())
        token = auth.get("token")
        if not isinstance(token, str) or not token:
            raise ValidationError("Token required")
        async with sessions() as db:
            actor = await resolve_actor(token, db)
    except WebSocketDisconnect:
        return
    except DomainError as e:
        logger.info("Rejected real-time connection: %s", e.message)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.send_json({"event": "connected", "data": {"actorId": actor.id}})
    logger.info("Real-time connection opened for %s", actor.id)

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = _parse_frame(raw)
                async with sessions() as db:
                    reply = await handle_control_message(db, actor, websocket, message, hub)
            except DomainError as e:
                reply = {"event": "error", "data": e.to_dict()["error"]}
            await websocket.send_json(reply)
    except WebSocketDisconnect:
        pass
    finally:
        hub.disconnect(websocket)
        logger.info("Real-time connection closed for %s", actor.id)
