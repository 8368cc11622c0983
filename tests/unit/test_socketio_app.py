"""Integration tests for the Socket.IO host module.

Drives the real event handlers through flask_socketio's test client, so the
wire-level event names and payload shapes are covered without a browser.
"""

from __future__ import annotations

import pytest

pytestmark = pytest.mark.timeout(30)


@pytest.fixture
def make_client(socketio_app):
    clients = []

    def _make():
        client = socketio_app.socketio.test_client(socketio_app.app)
        clients.append(client)
        return client

    yield _make

    for client in clients:
        if client.is_connected():
            client.disconnect()


def _received(client, name):
    return [event["args"][0] for event in client.get_received() if event["name"] == name]


def _match(make_client):
    learner = make_client()
    teacher = make_client()
    learner.emit("join", "learner")
    teacher.emit("join", {"role": "teacher"})
    learner_matched = _received(learner, "matched")
    teacher_matched = _received(teacher, "matched")
    return learner, teacher, learner_matched[0], teacher_matched[0]


class TestHttpRoutes:
    def test_root_and_health(self, socketio_app):
        http = socketio_app.app.test_client()

        assert http.get("/").data == b"OK"
        response = http.get("/health")
        assert response.status_code == 200
        assert response.get_json() == {"status": "ok"}

    def test_debug_queues_snapshot(self, socketio_app, make_client):
        learner = make_client()
        learner.emit("join", "learn")

        snapshot = socketio_app.app.test_client().get("/debug/queues").get_json()
        assert snapshot["learners"] == 1
        assert snapshot["teachers"] == 0
        assert snapshot["total_connected"] == 1
        assert snapshot["pairs"] == []


class TestSocketEvents:
    def test_connect_broadcasts_online_count(self, make_client):
        first = make_client()
        assert _received(first, "onlineCount")[-1] == 1

        make_client()
        assert _received(first, "onlineCount")[-1] == 2

    def test_get_online_count_acknowledges(self, make_client):
        client = make_client()
        make_client()
        client.get_received()

        assert client.emit("getOnlineCount", callback=True) == 2
        assert _received(client, "onlineCount") == [2]

    def test_join_matches_learner_and_teacher(self, make_client):
        _, _, learner_matched, teacher_matched = _match(make_client)

        assert learner_matched["generation"] == teacher_matched["generation"]
        assert learner_matched["is_initiator"] != teacher_matched["is_initiator"]
        assert learner_matched["partner_id"] != teacher_matched["partner_id"]

    def test_signal_is_relayed_to_partner_only(self, make_client):
        learner, teacher, learner_matched, teacher_matched = _match(make_client)
        bystander = make_client()
        bystander.get_received()

        offer = {"type": "offer", "sdp": "v=0"}
        learner.emit(
            "signal",
            {
                "to": learner_matched["partner_id"],
                "signal": offer,
                "generation": learner_matched["generation"],
            },
        )

        relayed = _received(teacher, "signal")
        assert relayed == [{"from": teacher_matched["partner_id"], "signal": offer}]
        assert _received(bystander, "signal") == []

    def test_signal_to_non_partner_is_dropped(self, make_client):
        learner, teacher, _, _ = _match(make_client)

        learner.emit("signal", {"to": "not-my-partner", "signal": {"candidate": "x"}})
        learner.emit("signal", "malformed")

        assert _received(teacher, "signal") == []
        assert _received(learner, "signal") == []

    def test_disconnect_sends_partner_left(self, make_client):
        learner, teacher, learner_matched, _ = _match(make_client)

        teacher.disconnect()

        assert _received(learner, "partner-left") == [
            {"partner_id": learner_matched["partner_id"]}
        ]

    def test_next_hands_partner_to_waiting_learner(self, socketio_app, make_client):
        first_learner, teacher, _, _ = _match(make_client)
        second_learner = make_client()
        second_learner.emit("join", "learner")

        teacher.emit("next")

        assert len(_received(first_learner, "partner-left")) == 1
        matched = _received(second_learner, "matched")
        assert len(matched) == 1
        assert len(_received(teacher, "matched")) == 1

        snapshot = socketio_app.SERVICE.snapshot()
        assert snapshot["learners"] == 1
        assert len(snapshot["pairs"]) == 1
        socketio_app.SERVICE.check_invariants()

    def test_next_with_stale_generation_is_ignored(self, socketio_app, make_client):
        learner, teacher, learner_matched, _ = _match(make_client)

        learner.emit("next", {"generation": learner_matched["generation"] + 100})

        assert _received(teacher, "partner-left") == []
        assert len(socketio_app.SERVICE.snapshot()["pairs"]) == 1

    def test_join_and_signal_without_payload_are_ignored(self, socketio_app, make_client):
        client = make_client()

        client.emit("join")
        client.emit("join", {})
        client.emit("signal")

        assert client.is_connected()
        snapshot = socketio_app.SERVICE.snapshot()
        assert snapshot["learners"] == 0
        assert snapshot["teachers"] == 0
        assert _received(client, "signal") == []

    def test_lone_pair_rematches_after_next(self, socketio_app, make_client):
        learner, teacher, learner_matched, _ = _match(make_client)

        learner.emit("next", {"generation": learner_matched["generation"]})

        assert len(_received(teacher, "partner-left")) == 1
        rematched = _received(learner, "matched")
        assert len(rematched) == 1
        assert rematched[0]["partner_id"] == learner_matched["partner_id"]
        assert rematched[0]["generation"] > learner_matched["generation"]
        socketio_app.SERVICE.check_invariants()
