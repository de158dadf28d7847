"""
LIMBO ENGINE - Runtime Settings

Environment-driven defaults for the engine and the CLI driver.
Values are read once at import (after .env is loaded); every setting can be
overridden per-process, e.g. LIMBO_GROWTH_RATE=1.5 python -m tools.limbo_cli play
"""

import os
from typing import Optional
from dotenv import load_dotenv

from config.limbo_schema import (
    DEFAULT_EPSILON, DEFAULT_GROWTH_RATE, DEFAULT_HISTORY_LENGTH,
    DEFAULT_MIN_TARGET, EngineConfig,
)

load_dotenv()


def _optional_float(raw: Optional[str]) -> Optional[float]:
    if raw is None or raw.strip() == "":
        return None
    return float(raw)


class LimboSettings:

    # --- Race constants ---
    GROWTH_RATE = float(os.getenv("LIMBO_GROWTH_RATE", str(DEFAULT_GROWTH_RATE)))
    MIN_TARGET = float(os.getenv("LIMBO_MIN_TARGET", str(DEFAULT_MIN_TARGET)))
    EPSILON = float(os.getenv("LIMBO_EPSILON", str(DEFAULT_EPSILON)))
    HISTORY_LENGTH = int(os.getenv("LIMBO_HISTORY_LENGTH", str(DEFAULT_HISTORY_LENGTH)))

    # --- Optional wallet (unset = no balance tracking) ---
    STARTING_BALANCE = _optional_float(os.getenv("LIMBO_STARTING_BALANCE"))

    # --- CLI driver ---
    FPS = int(os.getenv("LIMBO_FPS", "60"))
    SEED = os.getenv("LIMBO_SEED", "")

    @classmethod
    def engine_config(cls, **overrides) -> EngineConfig:
        """Build a validated EngineConfig from env values plus explicit overrides.

        Overrides are taken as given, so starting_balance=None disables the
        wallet even when LIMBO_STARTING_BALANCE is set.
        """
        values = {
            "growth_rate": cls.GROWTH_RATE,
            "min_target_multiplier": cls.MIN_TARGET,
            "epsilon": cls.EPSILON,
            "history_length": cls.HISTORY_LENGTH,
            "starting_balance": cls.STARTING_BALANCE,
        }
        values.update(overrides)
        return EngineConfig(**values)

    @classmethod
    def seed(cls) -> Optional[int]:
        return int(cls.SEED) if cls.SEED.strip() else None
