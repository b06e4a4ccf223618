"""Meter hooks and post-render checks.

MeterLog is a ready-made meter hook for compress(): it records every value
it is called with. safety_check rejects output the renderer shouldn't write.
"""

import logging

import numpy as np

log = logging.getLogger(__name__)


class MeterLog:
    """Meter hook that keeps every reading (dB), in call order."""

    def __init__(self, echo=False):
        self.values = []
        self.echo = echo

    def __call__(self, gain_db: float):
        self.values.append(gain_db)
        if self.echo:
            log.debug("meter %.2f dB", gain_db)

    def __len__(self):
        return len(self.values)

    def as_array(self):
        return np.asarray(self.values, dtype=np.float64)

    @property
    def min_db(self):
        """Deepest gain reduction seen, or None if nothing was metered."""
        if not self.values:
            return None
        return float(np.min(self.values))

    def reset(self):
        self.values.clear()


def safety_check(output):
    """Reject non-finite or exploded output.

    Returns (ok, error_message).
    """
    if not np.all(np.isfinite(output)):
        return False, "ERROR: output diverged (non-finite values)"
    peak = np.max(np.abs(output)) if output.size else 0.0
    if peak > 1e6:
        return False, f"ERROR: output exploded (peak={peak:.0e})"
    return True, ""
