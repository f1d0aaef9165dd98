from __future__ import annotations

from typing import Iterable

from .models import AnswerSet, Player, answers_to_dict, empty_answers


# Collection timeout is armed only in rooms larger than this, on the submission
# that brings the count to exactly this many.
TIMEOUT_SUBMISSION_THRESHOLD = 2


def timeout_due(room_size: int, submitted: int) -> bool:
    return room_size > TIMEOUT_SUBMISSION_THRESHOLD and submitted == TIMEOUT_SUBMISSION_THRESHOLD


class AnswerCollector:
    def __init__(self) -> None:
        self._answers: dict[str, AnswerSet] = {}

    def __contains__(self, player_id: object) -> bool:
        return player_id in self._answers

    @property
    def submitted_count(self) -> int:
        return len(self._answers)

    def record(self, player_id: str, answers: AnswerSet) -> None:
        self._answers[player_id] = dict(answers)

    def get(self, player_id: str) -> AnswerSet | None:
        return self._answers.get(player_id)

    def discard(self, player_id: str) -> None:
        self._answers.pop(player_id, None)

    def clear(self) -> None:
        self._answers = {}

    def is_complete(self, roster_ids: Iterable[str]) -> bool:
        ids = list(roster_ids)
        if not ids:
            return False
        return len(self._answers) == len(ids) and all(pid in self._answers for pid in ids)

    def backfill(self, roster_ids: Iterable[str]) -> list[str]:
        """Give every roster member without a submission an all-empty AnswerSet."""
        filled = []
        for pid in roster_ids:
            if pid not in self._answers:
                self._answers[pid] = empty_answers()
                filled.append(pid)
        return filled

    def snapshot(self) -> dict[str, AnswerSet]:
        return {pid: dict(a) for pid, a in self._answers.items()}

    def statuses(self, roster: Iterable[Player]) -> list[dict]:
        out = []
        for p in roster:
            answers = self._answers.get(p.id)
            out.append(
                {
                    "id": p.id,
                    "name": p.name,
                    "done": answers is not None,
                    "answers": answers_to_dict(answers) if answers is not None else None,
                }
            )
        return out
