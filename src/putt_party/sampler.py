"""Orientation sampler: buffers sensor events for the duration of one swing."""

from __future__ import annotations

from .types import orientation_sample


class OrientationSampler:
    """Collects orientation samples between swing start and release.

    The history exists only while a swing is in progress: begin() creates it,
    finish() or cancel() hands it over and discards it. Samples closer than
    min_interval_ms to the previous one are skipped; samples with an older
    timestamp are kept in arrival order. Once max_samples is reached the last
    slot is overwritten so the first and newest samples always survive.
    """

    def __init__(self, max_samples: int = 600, min_interval_ms: float = 50.0):
        if max_samples < 2:
            raise ValueError("max_samples must be at least 2")
        self.max_samples = max_samples
        self.min_interval_ms = min_interval_ms
        self._history: list[orientation_sample] = []
        self.dropped_samples = 0

    @classmethod
    def from_config(cls, config) -> OrientationSampler:
        """Build from a ControllerConfig."""
        return cls(
            max_samples=config.swing_max_samples,
            min_interval_ms=config.sample_min_interval_ms,
        )

    @property
    def is_swinging(self) -> bool:
        return bool(self._history)

    @property
    def history(self) -> list[orientation_sample]:
        """Copy of the current history."""
        return list(self._history)

    def __len__(self) -> int:
        return len(self._history)

    def begin(self, sample: orientation_sample) -> None:
        """Start a swing seeded with the orientation at swing start."""
        self._history = [sample]
        self.dropped_samples = 0

    def add(self, sample: orientation_sample) -> bool:
        """Record a sample of the active swing. Returns False when skipped."""
        if not self._history:
            return False

        delta = sample.timestamp - self._history[-1].timestamp
        if 0 <= delta < self.min_interval_ms:
            return False

        self._append(sample)
        return True

    def finish(self, sample: orientation_sample | None = None) -> list[orientation_sample]:
        """End the swing, optionally recording the release orientation.

        Returns:
            The complete history (empty if no swing was active).
        """
        if self._history and sample is not None:
            self._append(sample)
        history, self._history = self._history, []
        return history

    def cancel(self) -> None:
        """Discard the active swing without producing a history."""
        self._history = []

    def _append(self, sample: orientation_sample) -> None:
        if len(self._history) >= self.max_samples:
            self._history[-1] = sample
            self.dropped_samples += 1
        else:
            self._history.append(sample)
