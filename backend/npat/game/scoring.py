"""Round scoring.

Everything here is pure: results are rebuilt rather than mutated, so the
same answers and letter always produce the same RoundResult.
"""

from __future__ import annotations

from typing import Iterable, Mapping

from .models import (
    CATEGORIES,
    AnswerSet,
    Category,
    CategoryPoints,
    CategoryScore,
    Player,
    RoundResult,
    RoundSummary,
)


UNIQUE_POINTS = 10
SHARED_POINTS = 5


def normalize_answer(text: str | None) -> str:
    return (text or "").strip().casefold()


def score_answers(answers: Mapping[str, AnswerSet], letter: str) -> dict[str, CategoryPoints]:
    """Score every player's answers for one round.

    Per category, an answer counts only if it is non-empty and starts with
    the round letter. A valid answer nobody else gave earns UNIQUE_POINTS;
    every holder of a shared answer earns SHARED_POINTS each.
    """
    target = normalize_answer(letter)[:1]
    scores = {pid: CategoryPoints() for pid in answers}

    for category in CATEGORIES:
        groups: dict[str, list[str]] = {}
        for pid, answer_set in answers.items():
            text = normalize_answer(answer_set.get(category, ""))
            if not text or not target or text[0] != target:
                continue
            groups.setdefault(text, []).append(pid)

        for owners in groups.values():
            points = UNIQUE_POINTS if len(owners) == 1 else SHARED_POINTS
            for pid in owners:
                scores[pid] = scores[pid].with_points(category, points)

    return scores


def summarize(results: Mapping[Category, Iterable[CategoryScore]]) -> tuple[RoundSummary, ...]:
    """Fold per-category scores into one summary per player, in first-seen order."""
    names: dict[str, str] = {}
    points: dict[str, CategoryPoints] = {}
    for category in CATEGORIES:
        for entry in results.get(category, ()):
            if entry.player_id not in points:
                names[entry.player_id] = entry.player
                points[entry.player_id] = CategoryPoints()
            points[entry.player_id] = points[entry.player_id].with_points(category, entry.points)
    return tuple(RoundSummary(player_id=pid, player=names[pid], breakdown=bp) for pid, bp in points.items())


def build_round_result(
    round_number: int,
    letter: str,
    roster: Iterable[Player],
    answers: Mapping[str, AnswerSet],
) -> RoundResult:
    roster = list(roster)
    scored = score_answers(answers, letter)

    results: dict[Category, tuple[CategoryScore, ...]] = {}
    for category in CATEGORIES:
        entries = []
        for p in roster:
            answer_set = answers.get(p.id) or {}
            entries.append(
                CategoryScore(
                    player_id=p.id,
                    player=p.name,
                    answer=answer_set.get(category, ""),
                    points=scored[p.id].get(category) if p.id in scored else 0,
                )
            )
        results[category] = tuple(entries)

    return RoundResult(
        round_number=round_number,
        letter=letter,
        results=results,
        summary=summarize(results),
    )


def _rebuild(result: RoundResult, results: dict[Category, tuple[CategoryScore, ...]]) -> RoundResult:
    return RoundResult(
        round_number=result.round_number,
        letter=result.letter,
        results=results,
        summary=summarize(results),
    )


def override_points(result: RoundResult, category: Category, player_id: str, points: int) -> RoundResult:
    results = dict(result.results)
    results[category] = tuple(
        CategoryScore(e.player_id, e.player, e.answer, points) if e.player_id == player_id else e
        for e in result.results.get(category, ())
    )
    return _rebuild(result, results)


def split_points(result: RoundResult, category: Category, answer_text: str) -> RoundResult:
    target = normalize_answer(answer_text)
    results = dict(result.results)
    results[category] = tuple(
        CategoryScore(e.player_id, e.player, e.answer, SHARED_POINTS) if normalize_answer(e.answer) == target else e
        for e in result.results.get(category, ())
    )
    return _rebuild(result, results)
