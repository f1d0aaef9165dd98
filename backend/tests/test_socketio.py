import time

from conftest import TestConfig as BaseTestConfig, answers_for

from npat.server import create_app


def _named(client, name):
    return [pkt["args"][0] if pkt["args"] else None for pkt in client.get_received() if pkt["name"] == name]


def _join(client, name, room_id="ABCD", host=False):
    client.emit("joinRoom", {"roomId": room_id, "name": name, "isHost": host})


def _started_room(connect):
    host = connect()
    guest = connect()
    _join(host, "Ann", host=True)
    _join(guest, "Ben")
    host.emit("startGame", {"roomId": "ABCD"})
    letter = _named(host, "startRound")[0]["letter"]
    guest.get_received()
    return host, guest, letter


def test_join_broadcasts_room_state(connect):
    host = connect()
    guest = connect()
    _join(host, "Ann", host=True)
    _join(guest, "Ben", host=True)

    updates = _named(host, "roomUpdate")
    assert len(updates) == 2
    players = updates[-1]["players"]
    assert [p["name"] for p in players] == ["Ann", "Ben"]
    assert [p["isHost"] for p in players] == [True, False]


def test_invalid_join_payload(connect):
    client = connect()
    client.emit("joinRoom", {"roomId": "ABCD", "name": "<script>"})
    assert _named(client, "roomError") == [{"error": "invalid_payload"}]
    client.emit("joinRoom", None)
    assert _named(client, "roomError") == [{"error": "invalid_payload"}]


def test_events_for_unknown_room_are_ignored(connect):
    client = connect()
    client.emit("startGame", {"roomId": "NOPE"})
    client.emit("submitAnswers", {"roomId": "NOPE", "player": "Ann", "answers": {}})
    client.emit("getFinalResults", {"roomId": "NOPE"})
    client.emit("getPlayerStatuses", "NOPE")
    assert client.get_received() == []


def test_start_round_reaches_every_member(connect):
    host = connect()
    guest = connect()
    _join(host, "Ann", host=True)
    _join(guest, "Ben")
    guest.get_received()

    host.emit("startGame", {"roomId": "ABCD"})

    received = guest.get_received()
    assert [pkt["name"] for pkt in received] == ["gameStarted", "startRound"]
    start = received[1]["args"][0]
    assert start["round"] == 1
    assert len(start["letter"]) == 1 and start["letter"].isupper()


def test_non_host_cannot_start(connect):
    host = connect()
    guest = connect()
    _join(host, "Ann", host=True)
    _join(guest, "Ben")
    host.get_received()

    guest.emit("startGame", {"roomId": "ABCD"})

    assert _named(host, "startRound") == []


def test_full_round_produces_results(connect):
    host, guest, letter = _started_room(connect)

    host.emit("submitAnswers", {"roomId": "ABCD", "player": "Ann", "answers": answers_for(letter, thing="{L}oat")})
    guest.emit("submitAnswers", {"roomId": "ABCD", "player": "Ben", "answers": answers_for(letter, thing="{L}oat ")})

    results = _named(guest, "roundResults")
    assert len(results) == 1
    assert results[0]["letter"] == letter
    assert [(s["player"], s["total"]) for s in results[0]["summary"]] == [("Ann", 5), ("Ben", 5)]


def test_submission_from_unknown_name_is_dropped(connect):
    host, guest, letter = _started_room(connect)
    host.get_received()

    guest.emit("submitAnswers", {"roomId": "ABCD", "player": "Mallory", "answers": {}})

    assert host.get_received() == []


def test_host_override_and_next_round(connect):
    host, guest, letter = _started_room(connect)
    host.emit("submitAnswers", {"roomId": "ABCD", "player": "Ann", "answers": answers_for(letter)})
    guest.emit("submitAnswers", {"roomId": "ABCD", "player": "Ben", "answers": answers_for(letter, place="9 Elms")})
    host.get_received()

    ben_id = _ben_id(host)
    host.emit("markValid", {"roomId": "ABCD", "category": "place", "playerId": ben_id})
    updates = _named(guest, "scoresUpdated")
    assert updates[-1]["summary"][1]["total"] == 10
    assert updates[-1]["breakdown"][0]["round"] == 1

    host.emit("startNextRound", {"roomId": "ABCD"})
    rounds = _named(guest, "startRound")
    assert rounds[-1]["round"] == 2


def _ben_id(client):
    client.emit("getPlayerStatuses", {"roomId": "ABCD"})
    statuses = _named(client, "playerStatusesUpdate")[-1]
    return [s["id"] for s in statuses if s["name"] == "Ben"][0]


def test_update_scores_replays_host_edits(connect):
    host, guest, letter = _started_room(connect)
    host.emit("submitAnswers", {"roomId": "ABCD", "player": "Ann", "answers": answers_for(letter)})
    guest.emit("submitAnswers", {"roomId": "ABCD", "player": "Ben", "answers": answers_for(letter)})
    guest.get_received()

    host.emit(
        "updateScores",
        {"roomId": "ABCD", "results": {"movie": [{"player": "Ann", "points": 5}]}, "summary": []},
    )

    summary = _named(guest, "scoresUpdated")[-1]["summary"]
    assert [(s["player"], s["total"]) for s in summary] == [("Ann", 5), ("Ben", 0)]


def test_end_game_and_snapshot(connect):
    host, guest, letter = _started_room(connect)
    host.emit("submitAnswers", {"roomId": "ABCD", "player": "Ann", "answers": answers_for(letter, name="{L}ee")})
    guest.emit("submitAnswers", {"roomId": "ABCD", "player": "Ben", "answers": answers_for(letter)})
    host.emit("endGame", {"roomId": "ABCD"})

    over = _named(guest, "gameOver")
    assert over[-1]["winner"] == {"name": "Ann", "points": 10}
    assert [s["name"] for s in over[-1]["scores"]] == ["Ann", "Ben"]

    host.get_received()
    guest.emit("getFinalResults", {"roomId": "ABCD"})
    names = [pkt["name"] for pkt in guest.get_received()]
    assert names == ["roundResults", "gameOver"]
    assert host.get_received() == []


def test_restart_game_starts_round_one(connect):
    host, guest, letter = _started_room(connect)
    host.emit("submitAnswers", {"roomId": "ABCD", "player": "Ann", "answers": answers_for(letter)})
    guest.emit("submitAnswers", {"roomId": "ABCD", "player": "Ben", "answers": answers_for(letter)})
    host.emit("endGame", {"roomId": "ABCD"})
    guest.get_received()

    host.emit("restartGame", {"roomId": "ABCD"})

    assert _named(guest, "startRound")[-1]["round"] == 1


def test_player_statuses_accept_bare_room_id(connect):
    host, guest, letter = _started_room(connect)
    guest.emit("submitAnswers", {"roomId": "ABCD", "player": "Ben", "answers": {"name": "Bo"}})
    host.get_received()

    host.emit("getPlayerStatuses", "ABCD")

    statuses = _named(host, "playerStatusesUpdate")[-1]
    assert [(s["name"], s["done"]) for s in statuses] == [("Ann", False), ("Ben", True)]
    assert statuses[1]["answers"]["name"] == "Bo"


def test_disconnect_updates_remaining_players(connect):
    host = connect()
    guest = connect()
    _join(host, "Ann", host=True)
    _join(guest, "Ben")
    guest.get_received()

    host.disconnect()

    update = _named(guest, "roomUpdate")[-1]
    assert [p["name"] for p in update["players"]] == ["Ben"]
    assert update["players"][0]["isHost"] is True


def test_duplicate_names_are_resolved_by_connection(connect):
    first = connect()
    second = connect()
    _join(first, "Ann", room_id="DUPE", host=True)
    _join(second, "Ann", room_id="DUPE")
    first.emit("startGame", {"roomId": "DUPE"})
    letter = _named(first, "startRound")[0]["letter"]
    second.get_received()

    first.emit("submitAnswers", {"roomId": "DUPE", "player": "Ann", "answers": answers_for(letter)})
    second.emit("submitAnswers", {"roomId": "DUPE", "player": "Ann", "answers": answers_for(letter)})

    results = _named(second, "roundResults")
    assert len(results) == 1
    assert [s["player"] for s in results[0]["summary"]] == ["Ann", "Ann"]


class FastTimeoutConfig(BaseTestConfig):
    COLLECTION_TIMEOUT_SEC = 0.2


def test_collection_timeout_fires_on_background_task():
    app, socketio = create_app(FastTimeoutConfig)
    clients = [socketio.test_client(app, flask_test_client=app.test_client()) for _ in range(3)]
    try:
        for i, (test_client, name) in enumerate(zip(clients, ["Ann", "Ben", "Cy"])):
            _join(test_client, name, host=i == 0)
        clients[0].emit("startGame", {"roomId": "ABCD"})
        letter = _named(clients[0], "startRound")[0]["letter"]
        clients[2].get_received()

        clients[0].emit("submitAnswers", {"roomId": "ABCD", "player": "Ann", "answers": answers_for(letter)})
        clients[1].emit("submitAnswers", {"roomId": "ABCD", "player": "Ben", "answers": answers_for(letter)})

        seen = []
        deadline = time.monotonic() + 3
        while "roundResults" not in seen and time.monotonic() < deadline:
            seen.extend(pkt["name"] for pkt in clients[2].get_received())
            time.sleep(0.05)

        assert "timerStarted" in seen
        assert "roundResults" in seen
        assert seen.index("timerStarted") < seen.index("roundResults")
    finally:
        for test_client in clients:
            if test_client.is_connected():
                test_client.disconnect()
