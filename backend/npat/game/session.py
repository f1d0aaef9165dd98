from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from threading import RLock
from typing import Any, Callable, Mapping

from .collector import AnswerCollector, timeout_due
from .ledger import RoundBreakdownLedger
from .letters import LetterAllocator
from .models import (
    Category,
    GameResult,
    Player,
    Room,
    RoundResult,
    ScoreEntry,
    answers_to_dict,
    parse_answers,
)
from .scoring import UNIQUE_POINTS, build_round_result, override_points, split_points
from .timers import Scheduler, TimerHandle


logger = logging.getLogger(__name__)

# (room_id, event, payload, to) -> None; `to=None` means the whole room.
Publisher = Callable[[str, str, Any, "str | None"], None]


@dataclass(frozen=True)
class Outbound:
    event: str
    payload: Any
    to: str | None = None


class RoomSession:
    """State machine for one room.

    lobby -> round_active -> round_review -> (round_active | game_over)

    Every public operation mutates under the room lock, collects the events
    it produced and emits them after the lock is released.
    """

    def __init__(
        self,
        room_id: str,
        publisher: Publisher,
        scheduler: Scheduler,
        *,
        collection_timeout_sec: float = 10,
        host_reelection: bool = True,
        enforce_host: bool = True,
        rng: random.Random | None = None,
    ) -> None:
        self.room = Room(room_id=room_id)
        self.letters = LetterAllocator(rng)
        self.collector = AnswerCollector()
        self.ledger = RoundBreakdownLedger()
        self.collection_timeout_sec = collection_timeout_sec
        self.host_reelection = host_reelection
        self.enforce_host = enforce_host

        self._publish = publisher
        self._scheduler = scheduler
        self._lock = RLock()
        self._timeout: TimerHandle | None = None
        self._timeout_armed = False

    @property
    def room_id(self) -> str:
        return self.room.room_id

    @property
    def state(self) -> str:
        return self.room.state

    @property
    def timeout_pending(self) -> bool:
        return self._timeout is not None

    # ---- queries ----

    def resolve_submitter(self, connection_id: str, name: str) -> Player | None:
        # The caller's own seat wins; display names are not unique.
        with self._lock:
            own = self.room.players.get(connection_id)
            if own is not None and own.name == name:
                return own
            return next((p for p in self.room.players.values() if p.name == name), None)

    def is_member(self, player_id: str) -> bool:
        with self._lock:
            return player_id in self.room.players

    def public_state(self) -> dict:
        with self._lock:
            return self._public_state_locked()

    def player_statuses(self) -> list[dict]:
        with self._lock:
            return self.collector.statuses(self.room.players.values())

    # ---- membership ----

    def join(self, player_id: str, name: str, claim_host: bool = False) -> Player:
        with self._lock:
            room = self.room
            player = room.players.get(player_id)
            if player is None:
                player = Player(id=player_id, name=name, is_host=bool(claim_host) and room.host is None)
                room.players[player_id] = player
                logger.info(
                    "[join] room=%s player=%s host=%s players=%d",
                    room.room_id, name, player.is_host, len(room.players),
                )
            events = [Outbound("roomUpdate", self._public_state_locked())]
        self._dispatch(events)
        return player

    def disconnect(self, player_id: str) -> bool:
        with self._lock:
            room = self.room
            player = room.players.pop(player_id, None)
            if player is None:
                return False

            self.collector.discard(player_id)
            room.scores.pop(player_id, None)
            logger.info("[leave] room=%s player=%s players=%d", room.room_id, player.name, len(room.players))

            if player.is_host and self.host_reelection and room.players:
                successor = next(iter(room.players.values()))
                successor.is_host = True
                logger.info("[host-reelect] room=%s host=%s", room.room_id, successor.name)

            if not room.players:
                self._cancel_timeout_locked()

            events = [
                Outbound("roomUpdate", self._public_state_locked()),
                Outbound("playerStatusesUpdate", self.collector.statuses(room.players.values())),
            ]
            events.extend(self._try_finalize_locked())
        self._dispatch(events)
        return True

    # ---- round lifecycle ----

    def start(self, actor_id: str | None = None) -> bool:
        with self._lock:
            if not self._authorized_locked(actor_id, "start"):
                return False
            if self.room.state != "lobby":
                logger.info("[start-skip] room=%s state=%s", self.room_id, self.room.state)
                return False
            self._begin_round_locked(1)
            events = [Outbound("gameStarted", {}), self._start_round_event_locked()]
        self._dispatch(events)
        return True

    def submit(self, player_id: str, answers: Mapping[str, Any] | None) -> bool:
        with self._lock:
            room = self.room
            if room.state not in ("round_active", "round_review"):
                logger.info("[submit-skip] room=%s state=%s", room.room_id, room.state)
                return False
            if player_id not in room.players:
                logger.info("[submit-skip] room=%s unknown player=%s", room.room_id, player_id)
                return False

            answer_set = parse_answers(answers)
            self.collector.record(player_id, answer_set)
            logger.info(
                "[submit] room=%s %d/%d submitted",
                room.room_id, self.collector.submitted_count, len(room.players),
            )

            events = [
                Outbound("answerUpdate", {"playerId": player_id, "answers": answers_to_dict(answer_set)}),
                Outbound("playerStatusesUpdate", self.collector.statuses(room.players.values())),
            ]
            events.extend(self._try_finalize_locked())

            if (
                not self._timeout_armed
                and not room.pending_result_sent
                and timeout_due(len(room.players), self.collector.submitted_count)
            ):
                self._arm_timeout_locked()
                events.append(Outbound("timerStarted", {"duration": self.collection_timeout_sec}))
        self._dispatch(events)
        return True

    def try_finalize(self) -> bool:
        with self._lock:
            events = self._try_finalize_locked()
        self._dispatch(events)
        return bool(events)

    def request_snapshot(self, requester_id: str | None = None) -> list[RoundResult | GameResult]:
        """Results the requester may have missed: the pending round, then the final standings."""
        with self._lock:
            snapshots: list[RoundResult | GameResult] = []
            events = []
            if self.room.pending_result is not None:
                snapshots.append(self.room.pending_result)
                events.append(Outbound("roundResults", self.room.pending_result.to_dict(), to=requester_id))
            if self.room.game_ended:
                result = self._game_result_locked()
                snapshots.append(result)
                events.append(Outbound("gameOver", result.to_dict(), to=requester_id))
        if requester_id is not None:
            self._dispatch(events)
        return snapshots

    def advance_round(self, actor_id: str | None = None) -> bool:
        with self._lock:
            room = self.room
            if not self._authorized_locked(actor_id, "advance"):
                return False
            if room.state != "round_review" or room.pending_result is None or room.pending_folded:
                logger.info("[advance-skip] room=%s state=%s", room.room_id, room.state)
                return False

            self._fold_pending_locked()
            self.ledger.seal(room.current_round)
            self._begin_round_locked(room.current_round + 1)
            events = [self._start_round_event_locked()]
        self._dispatch(events)
        return True

    def end_game(self, actor_id: str | None = None) -> GameResult | None:
        with self._lock:
            room = self.room
            if not self._authorized_locked(actor_id, "end"):
                return None
            if room.state == "lobby":
                logger.info("[end-skip] room=%s not started", room.room_id)
                return None

            if room.state != "game_over":
                self._cancel_timeout_locked()
                if room.pending_result is not None and not room.pending_folded:
                    self._fold_pending_locked()
                self.ledger.seal(room.current_round)
                room.game_ended = True
                room.state = "game_over"
                logger.info("[game-over] room=%s rounds=%d", room.room_id, room.current_round)

            result = self._game_result_locked()
            events = [Outbound("gameOver", result.to_dict())]
        self._dispatch(events)
        return result

    def restart_game(self, actor_id: str | None = None) -> bool:
        with self._lock:
            room = self.room
            if not self._authorized_locked(actor_id, "restart"):
                return False
            if room.state == "lobby":
                logger.info("[restart-skip] room=%s not started", room.room_id)
                return False

            room.scores = {}
            self.ledger.clear()
            self._begin_round_locked(1)
            events = [self._start_round_event_locked()]
        self._dispatch(events)
        return True

    # ---- host review ----

    def override_score(self, category: Category, player_id: str, points: int, actor_id: str | None = None) -> bool:
        with self._lock:
            result = self._reviewable_locked(actor_id)
            if result is None:
                return False
            events = self._commit_review_locked(override_points(result, category, player_id, int(points)))
        self._dispatch(events)
        return True

    def mark_valid(self, category: Category, player_id: str, actor_id: str | None = None) -> bool:
        return self.override_score(category, player_id, UNIQUE_POINTS, actor_id=actor_id)

    def split_points(self, category: Category, answer_text: str, actor_id: str | None = None) -> bool:
        with self._lock:
            result = self._reviewable_locked(actor_id)
            if result is None:
                return False
            events = self._commit_review_locked(split_points(result, category, answer_text))
        self._dispatch(events)
        return True

    def replace_results(self, results: Any, actor_id: str | None = None) -> bool:
        """Apply a host-edited results table wholesale.

        Entries are matched by player id, or by player name when the id is
        missing. Only points are taken from the client; the summary is refolded.
        """
        with self._lock:
            result = self._reviewable_locked(actor_id)
            if result is None:
                return False
            if not isinstance(results, Mapping):
                logger.info("[review-skip] room=%s malformed results", self.room_id)
                return False

            for key, entries in results.items():
                category = Category.parse(key)
                if category is None or not isinstance(entries, list):
                    continue
                for item in entries:
                    if not isinstance(item, Mapping):
                        continue
                    player_id = self._resolve_entry_player(result, category, item)
                    points = item.get("points")
                    if player_id is None or isinstance(points, bool) or not isinstance(points, int):
                        continue
                    result = override_points(result, category, player_id, points)

            events = self._commit_review_locked(result)
        self._dispatch(events)
        return True

    # ---- internals ----

    def _dispatch(self, events: list[Outbound]) -> None:
        for e in events:
            self._publish(self.room_id, e.event, e.payload, e.to)

    def _authorized_locked(self, actor_id: str | None, action: str) -> bool:
        if not self.enforce_host or actor_id is None:
            return True
        host = self.room.host
        if host is None or host.id == actor_id:
            return True
        logger.info("[auth-deny] room=%s action=%s actor=%s", self.room_id, action, actor_id)
        return False

    def _begin_round_locked(self, round_number: int) -> None:
        room = self.room
        self._cancel_timeout_locked()
        self._timeout_armed = False
        self.collector.clear()
        room.current_round = round_number
        room.current_letter = self.letters.draw()
        room.pending_result = None
        room.pending_result_sent = False
        room.pending_folded = False
        room.game_ended = False
        room.state = "round_active"
        logger.info("[round] room=%s round=%d letter=%s", room.room_id, round_number, room.current_letter)

    def _start_round_event_locked(self) -> Outbound:
        return Outbound("startRound", {"round": self.room.current_round, "letter": self.room.current_letter})

    def _try_finalize_locked(self) -> list[Outbound]:
        room = self.room
        if room.pending_result_sent or room.state != "round_active":
            return []
        roster = list(room.players.values())
        if not self.collector.is_complete(p.id for p in roster):
            return []

        result = build_round_result(room.current_round, room.current_letter, roster, self.collector.snapshot())
        room.pending_result = result
        room.pending_result_sent = True
        room.state = "round_review"
        self._cancel_timeout_locked()
        self.ledger.record(room.current_round, result.summary)
        logger.info("[results] room=%s round=%d", room.room_id, room.current_round)
        return [Outbound("roundResults", result.to_dict())]

    def _arm_timeout_locked(self) -> None:
        round_number = self.room.current_round

        def _fire() -> None:
            self._on_collection_timeout(handle)

        handle = self._scheduler.call_later(self.collection_timeout_sec, _fire)
        self._timeout = handle
        self._timeout_armed = True
        logger.info(
            "[timer-set] room=%s round=%d duration=%ss",
            self.room_id, round_number, self.collection_timeout_sec,
        )

    def _on_collection_timeout(self, handle: TimerHandle) -> None:
        with self._lock:
            if self._timeout is not handle:
                logger.info("[timer-abort] room=%s stale timer", self.room_id)
                return
            self._timeout = None
            room = self.room
            filled = self.collector.backfill(list(room.players))
            logger.info("[timer-fire] room=%s round=%d backfilled=%d", room.room_id, room.current_round, len(filled))
            events = []
            if filled:
                events.append(Outbound("playerStatusesUpdate", self.collector.statuses(room.players.values())))
            events.extend(self._try_finalize_locked())
        self._dispatch(events)

    def _cancel_timeout_locked(self) -> None:
        if self._timeout is None:
            return
        self._timeout.cancel()
        self._timeout = None
        logger.info("[timer-cancel] room=%s round=%d", self.room_id, self.room.current_round)

    def _fold_pending_locked(self) -> None:
        room = self.room
        for s in room.pending_result.summary:
            if s.player_id not in room.players:
                continue
            room.scores[s.player_id] = room.scores.get(s.player_id, 0) + s.total
        room.pending_folded = True

    def _reviewable_locked(self, actor_id: str | None) -> RoundResult | None:
        if not self._authorized_locked(actor_id, "review"):
            return None
        if self.room.state != "round_review" or self.room.pending_result is None:
            logger.info("[review-skip] room=%s state=%s", self.room_id, self.room.state)
            return None
        return self.room.pending_result

    def _commit_review_locked(self, result: RoundResult) -> list[Outbound]:
        room = self.room
        room.pending_result = result
        self.ledger.record(room.current_round, result.summary)
        return [
            Outbound(
                "scoresUpdated",
                {
                    "results": result.results_to_dict(),
                    "summary": [s.to_dict() for s in result.summary],
                    "breakdown": self.ledger.to_list(),
                },
            )
        ]

    @staticmethod
    def _resolve_entry_player(result: RoundResult, category: Category, item: Mapping) -> str | None:
        entries = result.results.get(category, ())
        pid = item.get("id")
        if isinstance(pid, str) and any(e.player_id == pid for e in entries):
            return pid
        name = item.get("player")
        match = next((e for e in entries if e.player == name), None)
        return match.player_id if match else None

    def _game_result_locked(self) -> GameResult:
        room = self.room
        # Stable sort: equal totals keep join order.
        standings = sorted(
            (ScoreEntry(name=p.name, points=room.scores.get(p.id, 0)) for p in room.players.values()),
            key=lambda s: s.points,
            reverse=True,
        )
        return GameResult(scores=tuple(standings), breakdown=self.ledger.entries())

    def _public_state_locked(self) -> dict:
        room = self.room
        host = room.host
        return {
            "roomId": room.room_id,
            "state": room.state,
            "players": [p.to_dict() for p in room.players.values()],
            "hostId": host.id if host else None,
            "currentRound": room.current_round,
            "currentLetter": room.current_letter,
            "usedLetters": list(self.letters.used),
            "scores": dict(room.scores),
            "pendingResultSent": room.pending_result_sent,
            "gameEnded": room.game_ended,
        }
