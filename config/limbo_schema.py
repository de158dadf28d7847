"""
LIMBO ENGINE - Configuration Schema

Typed configuration for the round-resolution engine. The engine reads every
tunable constant from an EngineConfig instead of hardcoded values, so a
front-end (or a test) can override them at construction time.

Usage:
    from config.limbo_schema import EngineConfig, RoundConfig
    config = EngineConfig(growth_rate=1.2, history_length=10)
    json_str = config.model_dump_json(indent=2)
"""

from __future__ import annotations
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


# ═══════════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════════

class RoundPhase(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    ENDED = "ended"


class OutcomeStatus(str, Enum):
    WIN = "win"
    LOSS = "loss"


# ═══════════════════════════════════════════════════════════════
# Engine Configuration
# ═══════════════════════════════════════════════════════════════

DEFAULT_GROWTH_RATE = 0.8          # multiplier units per second
DEFAULT_MIN_TARGET = 1.01
DEFAULT_EPSILON = 1e-3             # seconds-equivalent float guard
DEFAULT_HISTORY_LENGTH = 5
DEFAULT_STARTING_BALANCE = 1000.0


class EngineConfig(BaseModel):
    """Constants fixed for the lifetime of a RoundController."""
    model_config = ConfigDict(frozen=True)

    growth_rate: float = Field(DEFAULT_GROWTH_RATE, gt=0)
    min_target_multiplier: float = Field(DEFAULT_MIN_TARGET, ge=1.0)
    epsilon: float = Field(DEFAULT_EPSILON, ge=0)
    history_length: int = Field(DEFAULT_HISTORY_LENGTH, ge=1)
    # None = no balance tracking
    starting_balance: Optional[float] = Field(None, ge=0)


# ═══════════════════════════════════════════════════════════════
# Per-Round Inputs
# ═══════════════════════════════════════════════════════════════

class RoundConfig(BaseModel):
    """Player inputs captured at round start.

    Deliberately unconstrained: an out-of-range bet or target is a silent
    refusal in RoundController.start_round, not a validation error.
    """
    model_config = ConfigDict(frozen=True)

    bet_amount: float
    target_multiplier: float

    @property
    def potential_payout(self) -> float:
        return self.bet_amount * self.target_multiplier

    def rejection_reason(self, config: EngineConfig,
                         balance: Optional[float] = None) -> Optional[str]:
        """Return why this round may not start, or None if it may."""
        if not self.bet_amount > 0:
            return f"bet_amount must be positive (got {self.bet_amount})"
        if not self.target_multiplier >= config.min_target_multiplier:
            return (f"target_multiplier {self.target_multiplier} below minimum "
                    f"{config.min_target_multiplier}")
        if balance is not None and self.bet_amount > balance:
            return f"bet_amount {self.bet_amount} exceeds balance {balance}"
        return None
