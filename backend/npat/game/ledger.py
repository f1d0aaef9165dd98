from __future__ import annotations

import logging
from typing import Iterable

from .models import RoundBreakdownEntry, RoundSummary


logger = logging.getLogger(__name__)


class RoundBreakdownLedger:
    """Per-round score history kept for the end-of-game review.

    The entry for the round under review may be overwritten any number of
    times; once a round is sealed its entry is frozen.
    """

    def __init__(self) -> None:
        self._entries: list[RoundBreakdownEntry] = []
        self._sealed_through = 0

    def __len__(self) -> int:
        return len(self._entries)

    def record(self, round_number: int, summary: Iterable[RoundSummary]) -> bool:
        if round_number <= self._sealed_through:
            logger.info("[ledger-skip] round=%s already sealed", round_number)
            return False

        entry = RoundBreakdownEntry(round_number=round_number, scores=tuple(summary))
        for idx, existing in enumerate(self._entries):
            if existing.round_number == round_number:
                self._entries[idx] = entry
                return True
        self._entries.append(entry)
        return True

    def seal(self, round_number: int) -> None:
        self._sealed_through = max(self._sealed_through, round_number)

    def clear(self) -> None:
        self._entries = []
        self._sealed_through = 0

    def entries(self) -> tuple[RoundBreakdownEntry, ...]:
        return tuple(self._entries)

    def to_list(self) -> list[dict]:
        return [e.to_dict() for e in self._entries]
