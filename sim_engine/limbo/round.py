"""
LIMBO ENGINE - Round Controller

Owns the round lifecycle:

    idle ──start_round──▶ running ──tick (race ends)──▶ ended
      ▲                      │                            │
      └──────── reset ◀──────┴────────────────────────────┘
                              ended ──start_round──▶ running

The UI layer only calls start_round() / reset() and renders the snapshots
pushed to subscribers; it owns no simulation logic.

Usage:
    from sim_engine.limbo import RoundController, ManualFrameScheduler
    scheduler = ManualFrameScheduler()
    ctl = RoundController(scheduler=scheduler)
    ctl.subscribe(lambda snap: print(snap.to_dict()))
    ctl.start_round(bet_amount=10, target_multiplier=2.0)
    scheduler.advance(0.0); scheduler.advance(0.5); ...
"""

import logging
from collections import deque
from dataclasses import dataclass
from typing import Callable, Optional

from config.limbo_schema import EngineConfig, OutcomeStatus, RoundConfig, RoundPhase
from sim_engine.limbo.crash import CrashGenerator
from sim_engine.limbo.race import resolve_race
from sim_engine.limbo.wallet import Wallet

logger = logging.getLogger("limbo.round")


# ═══════════════════════════════════════════════════════════════
# Data Structures
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Outcome:
    """Result of one completed round. Never mutated after creation."""
    status: OutcomeStatus
    crash_value: float
    bet_amount: float
    target_multiplier: float
    payout: Optional[float] = None   # present iff status == WIN

    @property
    def is_win(self) -> bool:
        return self.status == OutcomeStatus.WIN

    def to_dict(self) -> dict:
        d = {
            "status": self.status.value,
            "crash": self.crash_value,
            "bet_amount": self.bet_amount,
            "target_multiplier": self.target_multiplier,
        }
        if self.payout is not None:
            d["payout"] = self.payout
        return d


@dataclass(frozen=True)
class RoundSnapshot:
    """Everything a renderer needs. Never carries a running round's crash value."""
    phase: RoundPhase
    current_multiplier: float
    outcome: Optional[Outcome]
    history: tuple
    balance: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "phase": self.phase.value,
            "current_multiplier": self.current_multiplier,
            "outcome": None if self.outcome is None else self.outcome.to_dict(),
            "history": list(self.history),
            "balance": self.balance,
        }


@dataclass
class _ActiveRound:
    config: RoundConfig
    crash_value: float
    start_timestamp: Optional[float] = None   # captured on first tick


Listener = Callable[[RoundSnapshot], None]


# ═══════════════════════════════════════════════════════════════
# Controller
# ═══════════════════════════════════════════════════════════════

class RoundController:
    """Single-threaded state machine for one player's rounds.

    scheduler: optional object with request_frame(callback) -> handle. When
    given, the controller keeps requesting frames while a round runs and
    feeds their timestamps to tick(). Without one, the caller calls tick().
    """

    def __init__(self, config: Optional[EngineConfig] = None,
                 generator: Optional[CrashGenerator] = None,
                 scheduler=None, wallet: Optional[Wallet] = None):
        self.config = config or EngineConfig()
        self.generator = generator or CrashGenerator()
        self.scheduler = scheduler
        if wallet is None and self.config.starting_balance is not None:
            wallet = Wallet(self.config.starting_balance)
        self.wallet = wallet

        self.phase = RoundPhase.IDLE
        self.current_multiplier = 1.0
        self.outcome: Optional[Outcome] = None
        self._history: deque = deque(maxlen=self.config.history_length)
        self._active: Optional[_ActiveRound] = None
        self._frame = None
        self._listeners: list[Listener] = []

    # ── Observation ──────────────────────────────────────────

    @property
    def history(self) -> list[float]:
        return list(self._history)

    @property
    def balance(self) -> Optional[float]:
        return None if self.wallet is None else self.wallet.balance

    @property
    def is_running(self) -> bool:
        return self.phase == RoundPhase.RUNNING

    def snapshot(self) -> RoundSnapshot:
        return RoundSnapshot(
            phase=self.phase,
            current_multiplier=self.current_multiplier,
            outcome=self.outcome,
            history=tuple(self._history),
            balance=self.balance,
        )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a snapshot listener. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def _emit(self) -> None:
        snap = self.snapshot()
        for listener in list(self._listeners):
            listener(snap)

    # ── Commands ─────────────────────────────────────────────

    def can_start(self, bet_amount: float, target_multiplier: float) -> bool:
        """True iff start_round() with these inputs would be accepted."""
        if self.is_running:
            return False
        round_config = RoundConfig(bet_amount=bet_amount, target_multiplier=target_multiplier)
        return round_config.rejection_reason(self.config, self.balance) is None

    def start_round(self, bet_amount: float, target_multiplier: float) -> bool:
        """Begin a round. Invalid input is refused silently (returns False)."""
        if self.is_running:
            logger.debug("start refused: a round is already running")
            return False

        round_config = RoundConfig(bet_amount=bet_amount, target_multiplier=target_multiplier)
        reason = round_config.rejection_reason(self.config, self.balance)
        if reason:
            logger.debug(f"start refused: {reason}")
            return False

        self._cancel_frame()
        self._active = _ActiveRound(config=round_config, crash_value=self.generator.generate())
        self.outcome = None
        self.current_multiplier = 1.0
        self.phase = RoundPhase.RUNNING
        logger.info(f"round started: bet={bet_amount:.2f} target={target_multiplier:.2f}x")

        self._request_frame()
        self._emit()
        return True

    def tick(self, timestamp: float) -> None:
        """Advance the running round to `timestamp` (seconds). No-op otherwise."""
        if self.phase != RoundPhase.RUNNING or self._active is None:
            return

        active = self._active
        if active.start_timestamp is None:
            active.start_timestamp = timestamp
        elapsed = max(0.0, timestamp - active.start_timestamp)

        race = resolve_race(
            elapsed, self.config.growth_rate, active.config.target_multiplier,
            active.crash_value, self.config.epsilon,
        )
        self.current_multiplier = race.current_multiplier

        if race.ended:
            self._finish(race.status)
        self._emit()

    def reset(self) -> None:
        """Abandon any round and return to idle. History is kept."""
        self._cancel_frame()
        changed = (self.phase != RoundPhase.IDLE or self.outcome is not None
                   or self.current_multiplier != 1.0)
        if self.phase == RoundPhase.RUNNING:
            logger.info("running round abandoned by reset")
        self._active = None
        self.phase = RoundPhase.IDLE
        self.current_multiplier = 1.0
        self.outcome = None
        if changed:
            self._emit()

    def close(self) -> None:
        """Teardown: stop frames and drop listeners."""
        self._cancel_frame()
        self._listeners.clear()

    # ── Internals ────────────────────────────────────────────

    def _finish(self, status: OutcomeStatus) -> None:
        active = self._active
        cfg = active.config
        payout = cfg.potential_payout if status == OutcomeStatus.WIN else None
        self.outcome = Outcome(
            status=status,
            crash_value=active.crash_value,
            bet_amount=cfg.bet_amount,
            target_multiplier=cfg.target_multiplier,
            payout=payout,
        )
        self.phase = RoundPhase.ENDED
        self._active = None
        self._cancel_frame()
        self._history.appendleft(self.outcome.crash_value)
        if self.wallet is not None:
            self.wallet.settle(self.outcome)

        if payout is not None:
            logger.info(f"round won: {cfg.target_multiplier:.2f}x before crash "
                        f"{self.outcome.crash_value:.2f}x, payout={payout:.2f}")
        else:
            logger.info(f"round lost: crashed at {self.outcome.crash_value:.2f}x "
                        f"(target {cfg.target_multiplier:.2f}x)")

    def _request_frame(self) -> None:
        if self.scheduler is None:
            return
        holder = {}

        def on_frame(timestamp: float):
            # Stale frames (cancelled or superseded) must not touch state.
            if holder.get("handle") is not self._frame:
                return
            self._frame = None
            try:
                self.tick(timestamp)
            finally:
                # A running round always owns exactly one pending frame,
                # even when a listener raised or already restarted a round.
                if self.phase == RoundPhase.RUNNING and self._frame is None:
                    self._request_frame()

        self._frame = holder["handle"] = self.scheduler.request_frame(on_frame)

    def _cancel_frame(self) -> None:
        if self._frame is not None:
            self._frame.cancel()
            self._frame = None
