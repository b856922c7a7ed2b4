"""
Live event hub and the /api/sse endpoint.
"""

import json

import pytest

from warehouse.events import EventHub


def _decode(frame):
    if isinstance(frame, bytes):
        frame = frame.decode("utf-8")
    assert frame.startswith("data: ") and frame.endswith("\n\n")
    return json.loads(frame[len("data: "):])


@pytest.fixture
def hub():
    hub = EventHub()
    hub.queue_size = 3
    hub.heartbeat_seconds = 0.01
    hub.start()
    yield hub
    hub.stop()


class TestEventHub:

    def test_register_requires_running_hub(self):
        with pytest.raises(RuntimeError):
            EventHub().register(1, "a@lgw.test")

    def test_publish_targets_matching_email(self, hub):
        a = hub.register(1, "A@lgw.test")
        b = hub.register(2, "b@lgw.test")

        assert hub.publish("a@LGW.test", {"type": "PING"}) is True
        assert json.loads(a.queue.get_nowait())["type"] == "PING"
        assert b.queue.empty()

    def test_publish_without_listener(self, hub):
        assert hub.publish("nobody@lgw.test", {"type": "PING"}) is False

    def test_multiple_tabs_all_receive(self, hub):
        first = hub.register(1, "a@lgw.test")
        second = hub.register(1, "a@lgw.test")
        hub.publish("a@lgw.test", {"type": "PING"})
        assert not first.queue.empty()
        assert not second.queue.empty()
        assert hub.connection_count("a@lgw.test") == 2

    def test_full_queue_prunes_connection(self, hub):
        conn = hub.register(1, "slow@lgw.test")
        for _ in range(3):
            assert hub.publish("slow@lgw.test", {"type": "PING"})
        assert hub.publish("slow@lgw.test", {"type": "PING"}) is False
        assert hub.connection_count() == 0

        # The reader sees the close marker and the stream ends
        frames = list(hub.stream(conn))
        assert _decode(frames[0])["type"] == "CONNECTION_ESTABLISHED"

    def test_stream_yields_events_and_heartbeats(self, hub):
        conn = hub.register(1, "a@lgw.test")
        stream = hub.stream(conn)

        hello = _decode(next(stream))
        assert hello == {"type": "CONNECTION_ESTABLISHED", "clientId": conn.id, "timestamp": hello["timestamp"]}

        assert _decode(next(stream))["type"] == "heartbeat"

        hub.publish("a@lgw.test", {"type": "NEW_ASSIGNMENT", "data": {"assignmentId": "7"}})
        event = _decode(next(stream))
        assert event["type"] == "NEW_ASSIGNMENT"
        assert event["data"] == {"assignmentId": "7"}

        stream.close()
        assert hub.connection_count() == 0

    def test_stop_closes_streams(self, hub):
        conn = hub.register(1, "a@lgw.test")
        stream = hub.stream(conn)
        next(stream)
        hub.stop()
        assert list(stream) == []
        assert not hub.running


class TestSseEndpoint:

    def test_stream_lifecycle(self, app, client, driver_user, driver_headers):
        hub = app.extensions["event_hub"]
        resp = client.get(
            f"/api/sse?userId={driver_user.id}&userEmail={driver_user.email}",
            headers=driver_headers,
            buffered=False,
        )
        assert resp.status_code == 200
        assert resp.mimetype == "text/event-stream"
        assert resp.headers["Cache-Control"].startswith("no-cache")
        assert resp.headers["X-Accel-Buffering"] == "no"

        chunks = iter(resp.response)
        assert _decode(next(chunks))["type"] == "CONNECTION_ESTABLISHED"
        assert hub.connection_count(driver_user.email) == 1

        hub.publish(driver_user.email, {"type": "NEW_ASSIGNMENT", "data": {}})
        frame = _decode(next(chunks))
        while frame["type"] == "heartbeat":
            frame = _decode(next(chunks))
        assert frame["type"] == "NEW_ASSIGNMENT"

        resp.close()
        assert hub.connection_count(driver_user.email) == 0

    def test_missing_params(self, client, driver_user, driver_headers):
        resp = client.get(f"/api/sse?userId={driver_user.id}", headers=driver_headers)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "User ID and email are required"

    def test_cannot_subscribe_as_someone_else(self, client, driver_user, driver_headers):
        resp = client.get(f"/api/sse?userId={driver_user.id}&userEmail=admin@lgw.test", headers=driver_headers)
        assert resp.status_code == 403
