"""Per-user real-time notification rooms.

A connection belongs to one user and can join rooms named
``user:<user_id>:<kind>``.  Pipelines never address connections directly:
they emit to a room, and every connection currently in that room receives
the event.  Delivery is best-effort and at-most-once; a failed send is
logged and dropped, it never reaches the emitting pipeline.

Each connection has its own lock so frames from concurrent emitters are
never interleaved and one run's events reach a client in emission order.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, NamedTuple
from uuid import uuid4

import structlog

from src.models.knowledge import DetailStatus
from src.models.pipeline import (
    CropDetailsUpdateEvent,
    ErrorEvent,
    GardenAddingStatusEvent,
    PipelineKind,
    ProgressEvent,
    RunStatus,
    result_payload,
)
from src.utils.errors import PipelineError
from src.utils.logging import get_logger

SendFunc = Callable[[dict[str, Any]], Awaitable[None]]


def room_name(user_id: str, kind: PipelineKind) -> str:
    return f"user:{user_id}:{kind.value}"


@dataclass
class _Connection:
    connection_id: str
    user_id: str
    send: SendFunc
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    rooms: set[str] = field(default_factory=set)


class NotificationHub:
    """Room membership and event fan-out for live connections."""

    def __init__(self) -> None:
        self._connections: dict[str, _Connection] = {}
        self._rooms: dict[str, set[str]] = {}
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def connect(self, user_id: str, send: SendFunc) -> str:
        """Register a connection for *user_id* and return its id.

        *send* delivers one JSON-serialisable frame to the client.
        """
        connection_id = uuid4().hex
        self._connections[connection_id] = _Connection(connection_id, user_id, send)
        self._logger.info("connection_opened", connection_id=connection_id, user_id=user_id)
        return connection_id

    def disconnect(self, connection_id: str) -> None:
        """Forget the connection and drop all of its room memberships."""
        conn = self._connections.pop(connection_id, None)
        if conn is None:
            return
        for room in conn.rooms:
            members = self._rooms.get(room)
            if members is not None:
                members.discard(connection_id)
                if not members:
                    del self._rooms[room]
        self._logger.info(
            "connection_closed",
            connection_id=connection_id,
            user_id=conn.user_id,
            rooms=sorted(conn.rooms),
        )

    def join(self, connection_id: str, room: str) -> bool:
        """Add the connection to *room*; ``False`` if it was already a member."""
        conn = self._require(connection_id)
        if room in conn.rooms:
            return False
        conn.rooms.add(room)
        self._rooms.setdefault(room, set()).add(connection_id)
        self._logger.info("room_joined", connection_id=connection_id, room=room)
        return True

    def leave(self, connection_id: str, room: str) -> bool:
        """Remove the connection from *room*; ``False`` if it was not a member."""
        conn = self._connections.get(connection_id)
        if conn is None or room not in conn.rooms:
            return False
        conn.rooms.discard(room)
        members = self._rooms.get(room, set())
        members.discard(connection_id)
        if not members:
            self._rooms.pop(room, None)
        self._logger.info("room_left", connection_id=connection_id, room=room)
        return True

    def members(self, room: str) -> set[str]:
        return set(self._rooms.get(room, ()))

    def rooms_of(self, connection_id: str) -> set[str]:
        conn = self._connections.get(connection_id)
        return set(conn.rooms) if conn is not None else set()

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    async def emit(self, room: str, event: str, payload: dict[str, Any]) -> int:
        """Send ``{"event", "data"}`` to every member of *room*.

        Returns the number of connections the frame was delivered to.  An
        empty room is not an error.
        """
        targets = [self._connections[cid] for cid in self._rooms.get(room, ()) if cid in self._connections]
        if not targets:
            self._logger.debug("emit_no_listeners", room=room, notification=event)
            return 0

        frame = {"event": event, "data": payload}
        results = await asyncio.gather(*(self._deliver(conn, frame) for conn in targets))
        return sum(results)

    async def send_to(self, connection_id: str, event: str, payload: dict[str, Any]) -> bool:
        """Send a frame to one connection only (acks and protocol errors)."""
        conn = self._connections.get(connection_id)
        if conn is None:
            return False
        return await self._deliver(conn, {"event": event, "data": payload})

    async def _deliver(self, conn: _Connection, frame: dict[str, Any]) -> bool:
        async with conn.lock:
            try:
                await conn.send(frame)
            except Exception as exc:
                self._logger.warning(
                    "notification_dropped",
                    connection_id=conn.connection_id,
                    notification=frame["event"],
                    error=str(exc),
                )
                return False
        return True

    def _require(self, connection_id: str) -> _Connection:
        conn = self._connections.get(connection_id)
        if conn is None:
            raise PipelineError(message=f"Unknown connection {connection_id}")
        return conn


# ---------------------------------------------------------------------------
# Pipeline-facing channel
# ---------------------------------------------------------------------------

class _EventNames(NamedTuple):
    progress: str
    result: str
    error: str
    details: str | None
    garden_status: str | None


_EVENT_NAMES: dict[PipelineKind, _EventNames] = {
    PipelineKind.CROP_SUGGESTION: _EventNames(
        progress="cropSuggestionProgressUpdate",
        result="cropSuggestionCompleted",
        error="cropSuggestionFailed",
        details="individualCropDetailsUpdate",
        garden_status="gardenAddingStatus",
    ),
    PipelineKind.DISEASE_DETECTION: _EventNames(
        progress="diseaseDetection:progressUpdate",
        result="diseaseDetection:result",
        error="diseaseDetection:error",
        details=None,
        garden_status=None,
    ),
}


class PipelineChannel:
    """Maps a pipeline's semantic emissions onto its event names and room."""

    def __init__(self, hub: NotificationHub, kind: PipelineKind) -> None:
        self._hub = hub
        self._kind = kind
        self._names = _EVENT_NAMES[kind]

    @property
    def kind(self) -> PipelineKind:
        return self._kind

    async def progress(
        self,
        user_id: str,
        status: RunStatus,
        progress: int,
        message: str | None = None,
    ) -> int:
        event = ProgressEvent(status=status, progress=max(0, min(100, int(progress))), message=message)
        return await self._hub.emit(
            room_name(user_id, self._kind),
            self._names.progress,
            event.model_dump(mode="json", by_alias=True, exclude_none=True),
        )

    async def result(self, user_id: str, data: dict[str, Any]) -> int:
        return await self._hub.emit(room_name(user_id, self._kind), self._names.result, result_payload(data))

    async def error(self, user_id: str, message: str) -> int:
        return await self._hub.emit(
            room_name(user_id, self._kind),
            self._names.error,
            ErrorEvent(error=message).to_public(),
        )

    async def details_update(
        self,
        user_id: str,
        status: DetailStatus,
        scientific_name: str,
        slug: str | None = None,
    ) -> int:
        if self._names.details is None:
            raise PipelineError(message=f"{self._kind.value} has no detail updates")
        event = CropDetailsUpdateEvent(status=status, scientific_name=scientific_name, slug=slug)
        return await self._hub.emit(
            room_name(user_id, self._kind),
            self._names.details,
            event.model_dump(mode="json", by_alias=True, exclude_none=True),
        )

    async def garden_status(self, user_id: str, success: bool, message: str, crop_id: str) -> int:
        if self._names.garden_status is None:
            raise PipelineError(message=f"{self._kind.value} has no garden status updates")
        event = GardenAddingStatusEvent(success=success, message=message, crop_id=crop_id)
        return await self._hub.emit(
            room_name(user_id, self._kind),
            self._names.garden_status,
            event.to_public(),
        )
