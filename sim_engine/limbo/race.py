"""
LIMBO ENGINE - Race Resolver

Decides a round by event time, not by frame count. Both events (reaching the
target, reaching the crash value) happen at exact continuous times on the
linear growth curve; whichever is first ends the round. Because the decision
is a pure function of elapsed time, a 20 FPS client and a 240 FPS client
observing the same round always see the same outcome and the same final
number.
"""

from dataclasses import dataclass
from typing import Optional

from config.limbo_schema import DEFAULT_EPSILON, OutcomeStatus


@dataclass(frozen=True)
class RaceState:
    """Resolver output for one instant of a round."""
    elapsed: float
    current_multiplier: float
    t_target: float
    t_crash: float
    ended: bool
    status: Optional[OutcomeStatus] = None   # set iff ended

    @property
    def t_end(self) -> float:
        return min(self.t_target, self.t_crash)


def event_time(multiplier: float, growth_rate: float) -> float:
    """Seconds after start at which the curve reaches `multiplier`."""
    return (multiplier - 1.0) / growth_rate


def resolve_race(elapsed: float, growth_rate: float, target_multiplier: float,
                 crash_value: float, epsilon: float = DEFAULT_EPSILON) -> RaceState:
    """Resolve the target-vs-crash race at `elapsed` seconds.

    growth_rate > 0 and validated target/crash values are the caller's
    responsibility.
    """
    t_target = event_time(target_multiplier, growth_rate)
    t_crash = event_time(crash_value, growth_rate)
    t_end = min(t_target, t_crash)

    if elapsed + epsilon >= t_end:
        # Ties within epsilon go to the player.
        if t_target <= t_crash + epsilon:
            return RaceState(elapsed, target_multiplier, t_target, t_crash,
                             ended=True, status=OutcomeStatus.WIN)
        return RaceState(elapsed, crash_value, t_target, t_crash,
                         ended=True, status=OutcomeStatus.LOSS)

    return RaceState(elapsed, 1.0 + elapsed * growth_rate, t_target, t_crash,
                     ended=False)
