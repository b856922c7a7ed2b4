# Overview: In-process live event hub feeding the /api/sse stream.

"""
Live event fan-out.

One EventHub per application, created in create_app and stored in
app.extensions["event_hub"]. Each open stream registers a Connection with a
bounded queue; publish() pushes a JSON payload onto every connection whose
email matches. Delivery is best effort: absent users get nothing, a full
queue is treated as a dead client and pruned.

Flask serves requests on threads, so the registry is guarded by a lock.
"""

from __future__ import annotations

import json
import logging
import queue
import threading
import time
import uuid
from dataclasses import dataclass, field

from flask import current_app

from warehouse.time_utils import iso_timestamp


# Closes a stream from the hub side (stop() or prune)
_CLOSE = object()


@dataclass
class Connection:
    id: str
    user_id: str
    user_email: str
    queue: queue.Queue
    connected_at: float = field(default_factory=time.time)

    def matches(self, email: str) -> bool:
        return self.user_email == email


class EventHub:
    def __init__(self, app=None):
        self._lock = threading.Lock()
        self._connections: dict[str, Connection] = {}
        self._running = False
        self.queue_size = 100
        self.heartbeat_seconds = 15.0
        self.logger = logging.getLogger(__name__)
        if app is not None:
            self.init_app(app)

    def init_app(self, app) -> None:
        self.queue_size = app.config.get("SSE_QUEUE_SIZE", 100)
        self.heartbeat_seconds = app.config.get("SSE_HEARTBEAT_SECONDS", 15.0)
        # Streams outlive the request that opened them
        self.logger = app.logger
        app.extensions["event_hub"] = self

    # -- lifecycle --------------------------------------------------------

    def start(self) -> None:
        self._running = True

    def stop(self) -> None:
        """Close every open stream and refuse new registrations."""
        with self._lock:
            self._running = False
            connections = list(self._connections.values())
            self._connections.clear()
        for conn in connections:
            self._close(conn)

    @property
    def running(self) -> bool:
        return self._running

    # -- registry ---------------------------------------------------------

    def register(self, user_id, user_email: str) -> Connection:
        if not self._running:
            raise RuntimeError("Event hub is not running")
        conn = Connection(
            id=f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:12]}",
            user_id=str(user_id),
            user_email=(user_email or "").strip().lower(),
            queue=queue.Queue(maxsize=self.queue_size),
        )
        with self._lock:
            self._connections[conn.id] = conn
            total = len(self._connections)
        self.logger.info("Stream client connected: %s (%s), %d open", conn.id, conn.user_email, total)
        return conn

    def unregister(self, connection_id: str) -> bool:
        with self._lock:
            conn = self._connections.pop(connection_id, None)
        if conn is not None:
            self.logger.info("Stream client disconnected: %s (%s)", conn.id, conn.user_email)
        return conn is not None

    def connection_count(self, user_email: str | None = None) -> int:
        with self._lock:
            if user_email is None:
                return len(self._connections)
            email = user_email.strip().lower()
            return sum(1 for c in self._connections.values() if c.matches(email))

    # -- fan-out ----------------------------------------------------------

    def publish(self, user_email: str, payload: dict) -> bool:
        """
        Deliver payload (stamped with an ISO timestamp) to every open stream of
        user_email. Returns True if at least one stream accepted it.
        """
        email = (user_email or "").strip().lower()
        if not email:
            return False

        message = json.dumps({**payload, "timestamp": iso_timestamp()})

        with self._lock:
            targets = [c for c in self._connections.values() if c.matches(email)]

        delivered = 0
        for conn in targets:
            try:
                conn.queue.put_nowait(message)
                delivered += 1
            except queue.Full:
                self.logger.warning("Stream client %s is not draining; dropping it", conn.id)
                self.unregister(conn.id)
                self._close(conn)

        if not delivered:
            self.logger.info("No live stream for %s; %s not delivered", email, payload.get("type"))
        return delivered > 0

    def _close(self, conn: Connection) -> None:
        try:
            conn.queue.put_nowait(_CLOSE)
        except queue.Full:
            # Drain one slot so the reader sees the close marker
            try:
                conn.queue.get_nowait()
            except queue.Empty:
                pass
            conn.queue.put_nowait(_CLOSE)

    # -- streaming --------------------------------------------------------

    def stream(self, conn: Connection):
        """
        Generator of text/event-stream frames for one connection.

        Yields CONNECTION_ESTABLISHED first, then forwarded events, and a
        heartbeat whenever nothing arrives within heartbeat_seconds. Closing the
        generator (client disconnect) unregisters the connection.
        """
        try:
            yield _frame({"type": "CONNECTION_ESTABLISHED", "clientId": conn.id, "timestamp": iso_timestamp()})
            while True:
                try:
                    item = conn.queue.get(timeout=self.heartbeat_seconds)
                except queue.Empty:
                    yield _frame({"type": "heartbeat", "timestamp": iso_timestamp()})
                    continue
                if item is _CLOSE:
                    return
                yield f"data: {item}\n\n"
        finally:
            self.unregister(conn.id)


def _frame(payload: dict) -> str:
    return f"data: {json.dumps(payload)}\n\n"


def get_event_hub() -> EventHub:
    return current_app.extensions["event_hub"]
