"""
Suggestion Engine

Offers a few spend options matched to the user's health tier:
- D / F: only the strict options for that tier
- S / A: common options plus premium treats
- B / C: common options plus standard ones

Labels the user logged recently are left out so suggestions rotate.
"""

from collections.abc import Iterable
from typing import Optional

import numpy as np

from src.models.budget import HealthTier, Suggestion
from src.persona import load_table


class SuggestionEngine:

    def __init__(
        self,
        rng: Optional[np.random.Generator] = None,
        count: int = 3,
    ):
        self._rng = rng if rng is not None else np.random.default_rng()
        self._count = count
        self._table = load_table("suggestions")

    def pool_for(self, tier: HealthTier) -> list[Suggestion]:
        if tier.is_restricted:
            items = self._table[tier.value]
        elif tier >= HealthTier.A:
            items = self._table["common"] + self._table["premium"]
        else:
            items = self._table["common"] + self._table["standard"]
        return [Suggestion(**item) for item in items]

    def suggest(
        self,
        tier: HealthTier,
        recent_labels: Iterable[str] = (),
    ) -> list[Suggestion]:
        """Pick up to `count` suggestions, skipping recently logged labels."""
        pool = self.pool_for(tier)
        recent = {label.casefold() for label in recent_labels}
        fresh = [s for s in pool if s.label.casefold() not in recent]
        # Everything was eaten recently: fall back to the whole pool
        candidates = fresh or pool

        size = min(self._count, len(candidates))
        picks = self._rng.choice(len(candidates), size=size, replace=False)
        return [candidates[int(i)] for i in picks]
