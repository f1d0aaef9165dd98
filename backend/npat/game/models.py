from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Literal, Mapping


RoomState = Literal["lobby", "round_active", "round_review", "game_over"]


class Category(str, Enum):
    NAME = "name"
    SURNAME = "surname"
    PLACE = "place"
    ANIMAL_BIRD = "animalBird"
    THING = "thing"
    MOVIE = "movie"
    FRUIT_FLOWER = "fruitFlower"
    COLOR_DISH = "colorDish"

    @property
    def field_name(self) -> str:
        return self.name.lower()

    @classmethod
    def parse(cls, raw: Any) -> Category | None:
        try:
            return cls(raw)
        except ValueError:
            return None


CATEGORIES: tuple[Category, ...] = tuple(Category)

AnswerSet = dict[Category, str]


def empty_answers() -> AnswerSet:
    return {c: "" for c in CATEGORIES}


def parse_answers(raw: Any) -> AnswerSet:
    """Coerce a client answer payload into a full AnswerSet.

    Unknown keys are dropped, missing categories default to "" and
    non-string values are treated as unanswered.
    """
    answers = empty_answers()
    if not isinstance(raw, Mapping):
        return answers
    for key, value in raw.items():
        category = Category.parse(key)
        if category is None or not isinstance(value, str):
            continue
        answers[category] = value
    return answers


def answers_to_dict(answers: AnswerSet) -> dict[str, str]:
    return {c.value: answers.get(c, "") for c in CATEGORIES}


@dataclass(frozen=True)
class CategoryPoints:
    name: int = 0
    surname: int = 0
    place: int = 0
    animal_bird: int = 0
    thing: int = 0
    movie: int = 0
    fruit_flower: int = 0
    color_dish: int = 0

    def get(self, category: Category) -> int:
        return getattr(self, category.field_name)

    def with_points(self, category: Category, points: int) -> CategoryPoints:
        return replace(self, **{category.field_name: points})

    @property
    def total(self) -> int:
        return sum(self.get(c) for c in CATEGORIES)

    def to_dict(self) -> dict[str, int]:
        return {c.value: self.get(c) for c in CATEGORIES}


@dataclass
class Player:
    id: str
    name: str
    is_host: bool = False

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "isHost": self.is_host}


@dataclass(frozen=True)
class CategoryScore:
    player_id: str
    player: str
    answer: str
    points: int

    def to_dict(self) -> dict:
        return {"id": self.player_id, "player": self.player, "answer": self.answer, "points": self.points}


@dataclass(frozen=True)
class RoundSummary:
    player_id: str
    player: str
    breakdown: CategoryPoints

    @property
    def total(self) -> int:
        return self.breakdown.total

    def to_dict(self) -> dict:
        return {
            "id": self.player_id,
            "player": self.player,
            "total": self.total,
            "breakdown": self.breakdown.to_dict(),
        }


@dataclass(frozen=True)
class RoundResult:
    round_number: int
    letter: str
    results: dict[Category, tuple[CategoryScore, ...]]
    summary: tuple[RoundSummary, ...]

    def summary_for(self, player_id: str) -> RoundSummary | None:
        return next((s for s in self.summary if s.player_id == player_id), None)

    def results_to_dict(self) -> dict[str, list[dict]]:
        return {c.value: [s.to_dict() for s in self.results.get(c, ())] for c in CATEGORIES}

    def to_dict(self) -> dict:
        return {
            "roundNumber": self.round_number,
            "results": self.results_to_dict(),
            "summary": [s.to_dict() for s in self.summary],
            "isFinal": False,
            "letter": self.letter,
        }


@dataclass(frozen=True)
class RoundBreakdownEntry:
    round_number: int
    scores: tuple[RoundSummary, ...]

    def to_dict(self) -> dict:
        rows = []
        for s in self.scores:
            row: dict[str, Any] = {"player": s.player}
            row.update(s.breakdown.to_dict())
            row["total"] = s.total
            rows.append(row)
        return {"round": self.round_number, "scores": rows}


@dataclass(frozen=True)
class ScoreEntry:
    name: str
    points: int

    def to_dict(self) -> dict:
        return {"name": self.name, "points": self.points}


@dataclass(frozen=True)
class GameResult:
    scores: tuple[ScoreEntry, ...]
    breakdown: tuple[RoundBreakdownEntry, ...]

    @property
    def winner(self) -> ScoreEntry | None:
        return self.scores[0] if self.scores else None

    def to_dict(self) -> dict:
        winner = self.winner
        return {
            "scores": [s.to_dict() for s in self.scores],
            "winner": winner.to_dict() if winner else None,
            "breakdown": [b.to_dict() for b in self.breakdown],
        }


@dataclass
class Room:
    room_id: str
    state: RoomState = "lobby"
    current_round: int = 1
    current_letter: str = ""
    players: dict[str, Player] = field(default_factory=dict)
    scores: dict[str, int] = field(default_factory=dict)
    pending_result: RoundResult | None = None
    pending_result_sent: bool = False
    # Set once the pending result has been credited to `scores`.
    pending_folded: bool = False
    game_ended: bool = False

    @property
    def host(self) -> Player | None:
        return next((p for p in self.players.values() if p.is_host), None)
