from __future__ import annotations

from flask import Blueprint, current_app, jsonify

bp = Blueprint("rooms", __name__)


def _registry():
    return current_app.extensions["npat.rooms"]


@bp.post("/rooms")
def create_room():
    # Players join the returned code over Socket.IO.
    session = _registry().create()
    return jsonify({"roomId": session.room_id}), 201


@bp.get("/rooms/<room_id>")
def get_room(room_id: str):
    session = _registry().get(room_id)
    if not session:
        return jsonify({"error": "room_not_found"}), 404
    return jsonify(session.public_state())
