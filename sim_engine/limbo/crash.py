"""Crash Generator - banded piecewise-uniform crash point distribution."""
import logging
import math
import random
from dataclasses import dataclass

logger = logging.getLogger("limbo.crash")


@dataclass(frozen=True)
class CrashBand:
    """One slice of the distribution: r in [r_lo, r_hi) maps to [lo, hi)."""
    r_lo: float
    r_hi: float
    lo: float
    hi: float

    @property
    def weight(self) -> float:
        return self.r_hi - self.r_lo


# Skewed toward short rounds. No house edge / RTP guarantee is implied.
CRASH_BANDS = (
    CrashBand(0.0, 0.4, 1.00, 1.50),
    CrashBand(0.4, 0.7, 1.50, 3.00),
    CrashBand(0.7, 0.9, 3.00, 10.00),
    CrashBand(0.9, 1.0, 10.00, 15.00),
)

MIN_CRASH = CRASH_BANDS[0].lo
MAX_CRASH = CRASH_BANDS[-1].hi


def round_cents(value: float) -> float:
    """Round to 2dp, halves away from zero (not banker's rounding)."""
    return math.floor(value * 100 + 0.5) / 100


def band_for(r: float) -> CrashBand:
    for band in CRASH_BANDS:
        if r < band.r_hi:
            return band
    return CRASH_BANDS[-1]


class CrashGenerator:
    """Draws one hidden crash multiplier per round.

    `rng` is any object with a `random() -> float` method returning [0, 1):
    random.Random, a seeded FastRNG, or a scripted stub in tests.
    """

    def __init__(self, rng=None):
        self.rng = rng if rng is not None else random.Random()

    def generate(self) -> float:
        band = band_for(self.rng.random())
        u = self.rng.random()
        crash = round_cents(band.lo + u * (band.hi - band.lo))
        logger.debug(f"crash drawn: {crash:.2f}x (band {band.lo:.2f}-{band.hi:.2f})")
        return crash
