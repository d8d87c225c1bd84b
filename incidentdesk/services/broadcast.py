"""In-process real-time fan-out.

A single ``BroadcastRouter`` instance owns the mapping from room id to the
set of subscribed connections. Rooms are addressed as ``tenant:<id>`` and
``incident:<id>``.

``broadcast`` never waits on a socket: it puts the frame on each member's
outbound queue and returns. One writer task per connection drains that
queue in order, bounding every send by a timeout. A connection whose send
fails, times out, or whose queue is full is dropped from every room.
Nothing is kept for subscribers that are not connected.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Any, Protocol

from incidentdesk.config import settings

logger = logging.getLogger(__name__)

INCIDENT_CREATED = "incident:created"
INCIDENT_UPDATED = "incident:updated"
INCIDENT_COMMENTED = "incident:commented"


def tenant_room(tenant_id: str) -> str:
    return f"tenant:{tenant_id}"


def incident_room(incident_id: str) -> str:
    return f"incident:{incident_id}"


class Connection(Protocol):
    async def send_json(self, data: Any) -> None: ...


class _Outbox:
    """Outbound frames for one connection and the task that writes them."""

    def __init__(self, maxsize: int):
        self.queue: asyncio.Queue[dict] = asyncio.Queue(maxsize)
        self.writer: asyncio.Task | None = None

    def discard_pending(self) -> None:
        while not self.queue.empty():
            self.queue.get_nowait()
            self.queue.task_done()


class BroadcastRouter:
    """Room registry with join / leave / broadcast as its only mutators."""

    def __init__(self, send_timeout: float | None = None, queue_size: int | None = None):
        self._rooms: dict[str, set[Connection]] = defaultdict(set)
        self._memberships: dict[Connection, set[str]] = defaultdict(set)
        self._outboxes: dict[Connection, _Outbox] = {}
        self._send_timeout = (
            send_timeout if send_timeout is not None
            else settings.BROADCAST_SEND_TIMEOUT_SECONDS
        )
        self._queue_size = (
            queue_size if queue_size is not None
            else settings.BROADCAST_QUEUE_SIZE
        )

    # -- membership ---------------------------------------------------------

    def join(self, connection: Connection, room_id: str) -> None:
        self._rooms[room_id].add(connection)
        self._memberships[connection].add(room_id)
        if connection not in self._outboxes:
            self._outboxes[connection] = _Outbox(self._queue_size)

    def leave(self, connection: Connection, room_id: str) -> None:
        members = self._rooms.get(room_id)
        if members is not None:
            members.discard(connection)
            if not members:
                del self._rooms[room_id]
        rooms = self._memberships.get(connection)
        if rooms is not None:
            rooms.discard(room_id)
            if not rooms:
                del self._memberships[connection]

    def disconnect(self, connection: Connection) -> None:
        """Leave every room and discard anything still queued for the connection."""
        for room_id in list(self._memberships.get(connection, ())):
            self.leave(connection, room_id)
        outbox = self._outboxes.pop(connection, None)
        if outbox is None:
            return
        outbox.discard_pending()
        if outbox.writer is not None and outbox.writer is not asyncio.current_task():
            outbox.writer.cancel()

    def members(self, room_id: str) -> frozenset[Connection]:
        return frozenset(self._rooms.get(room_id, ()))

    def rooms_of(self, connection: Connection) -> frozenset[str]:
        return frozenset(self._memberships.get(connection, ()))

    # -- delivery -----------------------------------------------------------

    async def broadcast(self, room_id: str, event_name: str, payload: Any) -> int:
        """Queue ``{"event", "room", "data"}`` for every current member of a room.

        Returns the number of members the frame was queued for. Never raises
        and never waits for a send to complete.
        """
        targets = list(self._rooms.get(room_id, ()))
        if not targets:
            return 0

        message = {"event": event_name, "room": room_id, "data": payload}
        queued = 0
        for conn in targets:
            outbox = self._outboxes.get(conn)
            if outbox is None:
                continue
            try:
                outbox.queue.put_nowait(message)
            except asyncio.QueueFull:
                logger.warning(
                    "Dropping subscriber from %s: %d frames already pending",
                    room_id, self._queue_size,
                )
                self.disconnect(conn)
                continue
            if outbox.writer is None:
                outbox.writer = asyncio.create_task(self._write(conn, outbox))
            queued += 1
        logger.debug("Broadcast %s to %s: queued for %d/%d", event_name, room_id, queued, len(targets))
        return queued

    async def flush(self) -> None:
        """Wait until every frame queued so far has been sent or discarded."""
        await asyncio.gather(*(o.queue.join() for o in list(self._outboxes.values())))

    async def close(self) -> None:
        """Drop every connection and stop all writer tasks."""
        writers = [o.writer for o in self._outboxes.values() if o.writer is not None]
        for conn in list(self._outboxes):
            self.disconnect(conn)
        await asyncio.gather(*writers, return_exceptions=True)

    async def _write(self, connection: Connection, outbox: _Outbox) -> None:
        while True:
            message = await outbox.queue.get()
            try:
                await asyncio.wait_for(connection.send_json(message), timeout=self._send_timeout)
            except Exception as e:
                logger.warning(
                    "Dropping subscriber after failed %s delivery to %s: %r",
                    message["event"], message["room"], e,
                )
                self.disconnect(connection)
                return
            finally:
                outbox.queue.task_done()
