"""
LIMBO ENGINE - Round Resolution

Crash generation, the continuous-time target/crash race, and the round
lifecycle for a single-player limbo game.

Usage:
    from sim_engine.limbo import build_controller
    ctl = build_controller(seed=7)
    ctl.start_round(bet_amount=10, target_multiplier=2.0)
    ctl.tick(0.0); ctl.tick(2.0)
    print(ctl.outcome.to_dict(), ctl.history)
"""

import random
from typing import Optional

from config.limbo_schema import EngineConfig, OutcomeStatus, RoundConfig, RoundPhase
from sim_engine.limbo.crash import CRASH_BANDS, CrashBand, CrashGenerator, band_for, round_cents
from sim_engine.limbo.race import RaceState, event_time, resolve_race
from sim_engine.limbo.round import Outcome, RoundController, RoundSnapshot
from sim_engine.limbo.scheduler import FrameHandle, ManualFrameScheduler, RealtimeFrameScheduler
from sim_engine.limbo.wallet import InsufficientFunds, Wallet

__all__ = [
    "CRASH_BANDS", "CrashBand", "CrashGenerator", "band_for", "round_cents",
    "RaceState", "event_time", "resolve_race",
    "Outcome", "RoundController", "RoundSnapshot",
    "FrameHandle", "ManualFrameScheduler", "RealtimeFrameScheduler",
    "InsufficientFunds", "Wallet",
    "EngineConfig", "OutcomeStatus", "RoundConfig", "RoundPhase",
    "build_controller",
]


def build_controller(config: Optional[EngineConfig] = None, seed: Optional[int] = None,
                     scheduler=None) -> RoundController:
    """Controller with a (optionally seeded) generator."""
    rng = random.Random(seed) if seed is not None else random.Random()
    return RoundController(config=config, generator=CrashGenerator(rng), scheduler=scheduler)
