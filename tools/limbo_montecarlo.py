"""
LIMBO ENGINE - Monte Carlo Validator

Plays N rounds at a fixed target through the real CrashGenerator and race
resolver, then checks:
  • Measured win rate against the closed-form probability from the band table
  • Crash band frequencies against the 40/30/20/10 weights (chi-squared)
  • RNG uniformity of the seeded stream the generator draws from
  • Win/loss streaks and measured return-to-player

Usage:
    from tools.limbo_montecarlo import MonteCarloValidator
    mc = MonteCarloValidator()
    result = mc.validate_target(target=2.0, n_rounds=200_000)
    print(result.summary())
"""

from __future__ import annotations

import hashlib
import json
import logging
import math
import statistics
import time
from dataclasses import dataclass, field
from typing import Optional

from config.limbo_schema import EngineConfig, OutcomeStatus
from sim_engine.limbo.crash import CRASH_BANDS, CrashGenerator
from sim_engine.limbo.race import resolve_race

logger = logging.getLogger("limbo.montecarlo")

# Chi-squared critical values at α=0.01
CHI2_CRIT_3DF = 11.345
CHI2_CRIT_99DF = 135.8


# ═══════════════════════════════════════════════════════════════
# Data Structures
# ═══════════════════════════════════════════════════════════════

@dataclass
class SimulationResult:
    """Results from a Monte Carlo run at one target multiplier."""
    target: float
    n_rounds: int
    theoretical_win_rate: float
    measured_win_rate: float
    win_rate_delta: float
    win_rate_pass: bool
    tolerance: float = 0.005

    theoretical_rtp: float = 0.0
    measured_rtp: float = 0.0
    measured_mean_crash: float = 0.0
    measured_max_crash: float = 0.0

    band_expected: dict = field(default_factory=dict)   # {band_label: fraction}
    band_measured: dict = field(default_factory=dict)
    band_chi_squared: float = 0.0
    band_pass: bool = True

    streak_analysis: dict = field(default_factory=dict)
    chi_squared: float = 0.0         # RNG uniformity
    chi_squared_pass: bool = True

    duration_seconds: float = 0.0
    rounds_per_second: float = 0.0
    parameters: dict = field(default_factory=dict)
    seed: str = ""

    @property
    def passed(self) -> bool:
        return self.win_rate_pass and self.band_pass and self.chi_squared_pass

    def summary(self) -> str:
        status = "✅ PASS" if self.passed else "❌ FAIL"
        lines = [
            f"═══ Monte Carlo: target {self.target:.2f}x ═══",
            f"  Rounds:      {self.n_rounds:,}",
            f"  Win rate:    theory={self.theoretical_win_rate*100:.3f}% "
            f"measured={self.measured_win_rate*100:.3f}% "
            f"(Δ {self.win_rate_delta*100:.3f}%, ±{self.tolerance*100:.1f}%)",
            f"  RTP:         theory={self.theoretical_rtp*100:.2f}% "
            f"measured={self.measured_rtp*100:.2f}%",
            f"  Mean crash:  {self.measured_mean_crash:.3f}x  (max {self.measured_max_crash:.2f}x)",
            f"  Bands χ²:    {self.band_chi_squared:.3f} ({'ok' if self.band_pass else 'FAIL'})",
            f"  RNG χ²:      {self.chi_squared:.1f} ({'ok' if self.chi_squared_pass else 'FAIL'})",
            f"  Speed:       {self.rounds_per_second:,.0f} rounds/sec",
            f"  Overall:     {status}",
        ]
        if self.streak_analysis:
            lines.append(f"  Max Loss Streak: {self.streak_analysis.get('max_loss_streak', 'N/A')}")
            lines.append(f"  Max Win Streak:  {self.streak_analysis.get('max_win_streak', 'N/A')}")
        return "\n".join(lines)

    def to_dict(self) -> dict:
        return {
            "target": self.target,
            "n_rounds": self.n_rounds,
            "win_rate": {
                "theoretical_pct": round(self.theoretical_win_rate * 100, 4),
                "measured_pct": round(self.measured_win_rate * 100, 4),
                "delta_pct": round(self.win_rate_delta * 100, 4),
                "tolerance_pct": self.tolerance * 100,
                "pass": self.win_rate_pass,
            },
            "rtp": {
                "theoretical_pct": round(self.theoretical_rtp * 100, 4),
                "measured_pct": round(self.measured_rtp * 100, 4),
            },
            "crash": {
                "mean": round(self.measured_mean_crash, 4),
                "max": round(self.measured_max_crash, 2),
            },
            "bands": {
                "expected": self.band_expected,
                "measured": self.band_measured,
                "chi_squared": round(self.band_chi_squared, 4),
                "pass": self.band_pass,
            },
            "streak_analysis": self.streak_analysis,
            "uniformity": {
                "chi_squared": round(self.chi_squared, 4),
                "pass": self.chi_squared_pass,
            },
            "performance": {
                "duration_s": round(self.duration_seconds, 2),
                "rounds_per_sec": int(self.rounds_per_second),
            },
            "parameters": self.parameters,
            "seed": self.seed,
            "passed": self.passed,
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)


# ═══════════════════════════════════════════════════════════════
# Fast RNG (pure Python, no external deps)
# ═══════════════════════════════════════════════════════════════

class FastRNG:
    """Splitmix64 PRNG - fast, deterministic, good distribution."""

    def __init__(self, seed: int = 0):
        self.state = seed & 0xFFFFFFFFFFFFFFFF

    def _next(self) -> int:
        self.state = (self.state + 0x9E3779B97F4A7C15) & 0xFFFFFFFFFFFFFFFF
        z = self.state
        z = ((z ^ (z >> 30)) * 0xBF58476D1CE4E5B9) & 0xFFFFFFFFFFFFFFFF
        z = ((z ^ (z >> 27)) * 0x94D049BB133111EB) & 0xFFFFFFFFFFFFFFFF
        return (z ^ (z >> 31)) & 0xFFFFFFFFFFFFFFFF

    def random(self) -> float:
        """Float in [0, 1)."""
        return self._next() / (1 << 64)


# ═══════════════════════════════════════════════════════════════
# Closed-form Probabilities
# ═══════════════════════════════════════════════════════════════

def raw_survival(x: float) -> float:
    """P(unrounded crash draw >= x) under the band table."""
    p = 0.0
    for band in CRASH_BANDS:
        frac = (band.hi - x) / (band.hi - band.lo)
        p += band.weight * min(1.0, max(0.0, frac))
    return p


def crash_at_least(c: float) -> float:
    """P(crash >= c) for the 2dp-rounded crash value.

    Rounding half-up means crash >= k/100 iff raw >= (k - 0.5)/100.
    """
    k = math.ceil(c * 100 - 1e-9)
    return raw_survival((k - 0.5) / 100)


def theoretical_win_rate(target: float, growth_rate: float, epsilon: float) -> float:
    """P(win) at a fixed target: crash >= target - epsilon * growth_rate."""
    return crash_at_least(target - epsilon * growth_rate)


def band_label(lo: float, hi: float) -> str:
    return f"{lo:.2f}-{hi:.2f}x"


def expected_band_fractions() -> dict:
    """Share of rounded crash values landing in each [lo, hi) band."""
    out = {}
    for i, band in enumerate(CRASH_BANDS):
        upper = crash_at_least(band.hi) if i < len(CRASH_BANDS) - 1 else 0.0
        out[band_label(band.lo, band.hi)] = crash_at_least(band.lo) - upper
    return out


# ═══════════════════════════════════════════════════════════════
# Streak & Uniformity Analysis
# ═══════════════════════════════════════════════════════════════

def _analyze_streaks(wins: list[bool]) -> dict:
    """Longest win/loss runs from a list of per-round results."""
    if not wins:
        return {}

    max_win = max_loss = cur_win = cur_loss = 0
    for won in wins:
        if won:
            cur_win += 1
            cur_loss = 0
            max_win = max(max_win, cur_win)
        else:
            cur_loss += 1
            cur_win = 0
            max_loss = max(max_loss, cur_loss)

    total_wins = sum(1 for w in wins if w)
    return {
        "max_win_streak": max_win,
        "max_loss_streak": max_loss,
        "total_wins": total_wins,
        "total_losses": len(wins) - total_wins,
    }


def _chi_squared_uniformity(rng: FastRNG, n_samples: int = 100000,
                            n_bins: int = 100) -> tuple[float, bool]:
    """Chi-squared test for RNG uniformity."""
    bins = [0] * n_bins
    for _ in range(n_samples):
        idx = min(int(rng.random() * n_bins), n_bins - 1)
        bins[idx] += 1
    expected = n_samples / n_bins
    chi2 = sum((obs - expected) ** 2 / expected for obs in bins)
    return chi2, chi2 < CHI2_CRIT_99DF


def _band_chi_squared(crashes: list[float], expected: dict) -> tuple[dict, float, bool]:
    counts = {label: 0 for label in expected}
    for crash in crashes:
        for band in reversed(CRASH_BANDS):
            if crash >= band.lo:
                counts[band_label(band.lo, band.hi)] += 1
                break
    n = len(crashes)
    chi2 = 0.0
    for label, frac in expected.items():
        exp = frac * n
        if exp > 0:
            chi2 += (counts[label] - exp) ** 2 / exp
    measured = {label: round(c / n, 6) for label, c in counts.items()}
    return measured, chi2, chi2 < CHI2_CRIT_3DF


# ═══════════════════════════════════════════════════════════════
# Monte Carlo Validator
# ═══════════════════════════════════════════════════════════════

class MonteCarloValidator:
    """Validates the crash distribution and race outcomes by simulation."""

    def __init__(self, config: Optional[EngineConfig] = None,
                 tolerance: float = 0.005, seed: int = 42):
        """
        Args:
            config: Engine constants (growth rate, epsilon) to simulate with
            tolerance: Maximum allowed win-rate deviation (0.005 = ±0.5%)
            seed: Base seed for reproducibility
        """
        self.config = config or EngineConfig()
        self.tolerance = tolerance
        self.base_seed = seed

    def _rng(self, target: float) -> FastRNG:
        h = int(hashlib.md5(f"{self.base_seed}:{target:.2f}".encode()).hexdigest()[:8], 16)
        return FastRNG(h)

    def validate_target(self, target: float = 2.0, n_rounds: int = 200_000) -> SimulationResult:
        """Play n_rounds at `target`, resolving each race at its end time."""
        cfg = self.config
        if target < cfg.min_target_multiplier:
            raise ValueError(f"target {target} below minimum {cfg.min_target_multiplier}")
        if n_rounds <= 0:
            raise ValueError("n_rounds must be positive")

        generator = CrashGenerator(self._rng(target))
        # Same seed as the generator, so the checked stream is the one played.
        chi2, chi_pass = _chi_squared_uniformity(self._rng(target))

        t0 = time.time()
        crashes: list[float] = []
        wins: list[bool] = []
        for _ in range(n_rounds):
            crash = generator.generate()
            race = resolve_race(math.inf, cfg.growth_rate, target, crash, cfg.epsilon)
            crashes.append(crash)
            wins.append(race.status == OutcomeStatus.WIN)
        duration = time.time() - t0

        measured = sum(1 for w in wins if w) / n_rounds
        theory = theoretical_win_rate(target, cfg.growth_rate, cfg.epsilon)
        band_exp = expected_band_fractions()
        band_meas, band_chi2, band_pass = _band_chi_squared(crashes, band_exp)
        delta = abs(measured - theory)

        result = SimulationResult(
            target=target,
            n_rounds=n_rounds,
            theoretical_win_rate=theory,
            measured_win_rate=measured,
            win_rate_delta=delta,
            win_rate_pass=delta <= self.tolerance,
            tolerance=self.tolerance,
            theoretical_rtp=theory * target,
            measured_rtp=measured * target,
            measured_mean_crash=statistics.fmean(crashes),
            measured_max_crash=max(crashes),
            band_expected={k: round(v, 6) for k, v in band_exp.items()},
            band_measured=band_meas,
            band_chi_squared=band_chi2,
            band_pass=band_pass,
            streak_analysis=_analyze_streaks(wins),
            chi_squared=chi2,
            chi_squared_pass=chi_pass,
            duration_seconds=duration,
            rounds_per_second=n_rounds / duration if duration > 0 else 0,
            parameters={"growth_rate": cfg.growth_rate, "epsilon": cfg.epsilon},
            seed=f"{self.base_seed}:{target:.2f}",
        )
        logger.info(f"monte carlo target={target:.2f}x rounds={n_rounds:,} "
                    f"win_rate={measured:.4f} (theory {theory:.4f}) pass={result.passed}")
        return result

    def validate_targets(self, targets: list[float], n_rounds: int = 200_000) -> list[SimulationResult]:
        return [self.validate_target(t, n_rounds) for t in targets]


# ═══════════════════════════════════════════════════════════════
# CLI
# ═══════════════════════════════════════════════════════════════

if __name__ == "__main__":
    import sys
    n = int(sys.argv[1]) if len(sys.argv) > 1 else 200_000
    target = float(sys.argv[2]) if len(sys.argv) > 2 else 2.0
    print(MonteCarloValidator().validate_target(target, n_rounds=n).summary())
