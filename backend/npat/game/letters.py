from __future__ import annotations

import logging
import random
import string


logger = logging.getLogger(__name__)

ALPHABET = tuple(string.ascii_uppercase)


class LetterAllocator:
    """Draws round letters for one room without repeats until the alphabet is exhausted."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()
        self._used: list[str] = []

    @property
    def used(self) -> tuple[str, ...]:
        return tuple(self._used)

    def draw(self) -> str:
        unused = [letter for letter in ALPHABET if letter not in self._used]
        if not unused:
            logger.debug("[letters-reset] all %d letters used", len(ALPHABET))
            self._used = []
            unused = list(ALPHABET)

        letter = self._rng.choice(unused)
        self._used.append(letter)
        return letter
