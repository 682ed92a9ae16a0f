"""Per-game scorecard and golf score names."""

from __future__ import annotations

from .types import hole_result

SCORE_NAMES = {
    -2: "Eagle",
    -1: "Birdie",
    0: "Par",
    1: "Bogey",
    2: "Double Bogey",
}


def score_name(strokes: int, par: int) -> str:
    """Name of a hole score relative to par ("Birdie", "Par", "+3", ...)."""
    diff = strokes - par
    if diff < -2:
        return "Albatross"
    return SCORE_NAMES.get(diff, f"+{diff}")


class Scorecard:
    """Results of the holes played so far."""

    def __init__(self):
        self._results: list[hole_result] = []

    def record(self, result: hole_result) -> str:
        """Store a result and return its score name."""
        self._results.append(result)
        return score_name(result.strokes, result.par)

    @property
    def results(self) -> list[hole_result]:
        return list(self._results)

    @property
    def total_strokes(self) -> int:
        return sum(r.strokes for r in self._results)

    @property
    def total_par(self) -> int:
        return sum(r.par for r in self._results)

    @property
    def score_vs_par(self) -> int:
        return self.total_strokes - self.total_par

    def reset(self) -> None:
        self._results.clear()

    def __len__(self) -> int:
        return len(self._results)
