from __future__ import annotations

import logging
from typing import Any

from flask import request
from flask_socketio import SocketIO, emit, join_room, leave_room

from ..game.models import Category
from ..game.registry import RoomRegistry
from ..game.session import RoomSession


logger = logging.getLogger(__name__)


MAX_NAME_LENGTH = 16


def _valid_player_name(name: str) -> bool:
    cleaned = (name or "").strip()
    if not cleaned or len(cleaned) > MAX_NAME_LENGTH:
        return False
    # Names are echoed into every roster update; no markup or control characters.
    return not any(ch in "<>" or ord(ch) < 32 for ch in cleaned)


def _payload(data: Any) -> dict:
    return data if isinstance(data, dict) else {}


def _room_id(payload: dict) -> str:
    return str(payload.get("roomId", "") or "").strip()


def register_socketio_handlers(socketio: SocketIO, registry: RoomRegistry) -> None:
    def _session(payload: dict) -> RoomSession | None:
        room_id = _room_id(payload)
        if not room_id:
            return None
        session = registry.get(room_id)
        if session is None:
            logger.debug("[ignore] unknown room=%s sid=%s", room_id, request.sid)
        return session

    @socketio.on("joinRoom")
    def join_room_event(data):
        payload = _payload(data)
        room_id = _room_id(payload)
        name = str(payload.get("name", "") or "").strip()

        if not room_id or not _valid_player_name(name):
            emit("roomError", {"error": "invalid_payload"})
            return

        previous = registry.room_of(request.sid)
        if previous is not None and previous.room_id != room_id:
            leave_room(previous.room_id)

        join_room(room_id)
        registry.join(room_id, request.sid, name, claim_host=bool(payload.get("isHost")))

    @socketio.on("startGame")
    def start_game(data):
        session = _session(_payload(data))
        if session:
            session.start(actor_id=request.sid)

    @socketio.on("submitAnswers")
    def submit_answers(data):
        payload = _payload(data)
        session = _session(payload)
        if not session:
            return

        name = str(payload.get("player", "") or "").strip()
        player = session.resolve_submitter(request.sid, name)
        if player is None:
            logger.info("[ignore] room=%s submission from unknown player", session.room_id)
            return
        session.submit(player.id, payload.get("answers"))

    @socketio.on("getFinalResults")
    def get_final_results(data):
        session = _session(_payload(data))
        if session:
            session.request_snapshot(request.sid)

    @socketio.on("updateScores")
    def update_scores(data):
        payload = _payload(data)
        session = _session(payload)
        if session:
            session.replace_results(payload.get("results"), actor_id=request.sid)

    @socketio.on("overrideScore")
    def override_score(data):
        payload = _payload(data)
        session = _session(payload)
        category = Category.parse(payload.get("category"))
        points = payload.get("points")
        if not session or category is None or isinstance(points, bool) or not isinstance(points, int):
            return
        session.override_score(category, str(payload.get("playerId", "")), points, actor_id=request.sid)

    @socketio.on("markValid")
    def mark_valid(data):
        payload = _payload(data)
        session = _session(payload)
        category = Category.parse(payload.get("category"))
        if not session or category is None:
            return
        session.mark_valid(category, str(payload.get("playerId", "")), actor_id=request.sid)

    @socketio.on("splitPoints")
    def split_points(data):
        payload = _payload(data)
        session = _session(payload)
        category = Category.parse(payload.get("category"))
        if not session or category is None:
            return
        session.split_points(category, str(payload.get("answer", "") or ""), actor_id=request.sid)

    @socketio.on("startNextRound")
    def start_next_round(data):
        session = _session(_payload(data))
        if session:
            session.advance_round(actor_id=request.sid)

    @socketio.on("endGame")
    def end_game(data):
        session = _session(_payload(data))
        if session:
            session.end_game(actor_id=request.sid)

    @socketio.on("restartGame")
    def restart_game(data):
        session = _session(_payload(data))
        if session:
            session.restart_game(actor_id=request.sid)

    @socketio.on("getPlayerStatuses")
    def get_player_statuses(data):
        # Older clients send the bare room id.
        payload = {"roomId": data} if isinstance(data, str) else _payload(data)
        session = _session(payload)
        if session:
            emit("playerStatusesUpdate", session.player_statuses())

    @socketio.on("disconnect")
    def on_disconnect(reason=None):
        registry.disconnect(request.sid)
