"""Severity threshold gate; a lower rank means more severe ("less is more")."""

from jsonlog.config import SECTION
from jsonlog.levels import LEVEL_RANKS, to_rank

THRESHOLD_DEFAULT = LEVEL_RANKS["warning"]


class ThresholdGate:
    """Admits events at least as severe as the configured threshold.

    The threshold is read from config on first use and cached for the
    lifetime of the gate.
    """

    def __init__(self, config):
        self._config = config
        self._threshold: int | None = None

    @property
    def threshold(self) -> int:
        if self._threshold is None:
            self._threshold = to_rank(
                self._config.get(SECTION, "threshold", THRESHOLD_DEFAULT)
            )
        return self._threshold

    def allows(self, rank) -> bool:
        """Return True if the event rank passes; raises InvalidLevel if unknown."""
        return to_rank(rank) <= self.threshold
