#!/usr/bin/env python3
"""
LIMBO ENGINE - Unit & Integration Test Suite

Run: python tests.py
     python tests.py -v            # verbose
     python tests.py TestRace      # run specific class

Test categories:
  TestCrashGenerator   - band selection, rounding, bounds, seeding
  TestRaceResolver     - event times, epsilon, tie-break, snap, polling independence
  TestRoundController  - lifecycle, silent refusal, history, reset, listeners
  TestFrameScheduling  - frame dispatch, cancellation, stale-frame guard
  TestWallet           - optional balance bookkeeping
  TestConfig           - pydantic schema + env settings
  TestCli              - argparse driver
"""

import contextlib
import io
import json
import math
import random
import sys
import unittest
from pathlib import Path
from unittest.mock import patch

# ── Ensure project root is on sys.path ──
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from pydantic import ValidationError

from config.limbo_schema import EngineConfig, OutcomeStatus, RoundConfig, RoundPhase
from config.settings import LimboSettings
from sim_engine.limbo import (
    CRASH_BANDS, CrashGenerator, InsufficientFunds, ManualFrameScheduler,
    RealtimeFrameScheduler, RoundController, Wallet, band_for, build_controller,
    event_time, resolve_race, round_cents,
)
from sim_engine.limbo.round import Outcome


# ============================================================
# Helpers
# ============================================================

class ScriptedRNG:
    """Uniform source that replays fixed values."""

    def __init__(self, values):
        self.values = list(values)
        self.calls = 0

    def random(self):
        v = self.values[self.calls]
        self.calls += 1
        return v


class FixedCrash:
    """Generator stand-in returning preset crash values in order."""

    def __init__(self, *crashes):
        self.crashes = list(crashes)
        self.calls = 0

    def generate(self):
        crash = self.crashes[self.calls % len(self.crashes)]
        self.calls += 1
        return crash


def _play(ctl, end_time=60.0, frames=2):
    """Drive one round with evenly spaced manual ticks from t=0."""
    for i in range(frames + 1):
        ctl.tick(end_time * i / frames)


# ============================================================
# Crash Generator
# ============================================================

class TestCrashGenerator(unittest.TestCase):

    def test_bounds_and_precision(self):
        """Every crash is within [1.00, 15.00] and has two decimals."""
        gen = CrashGenerator(random.Random(2024))
        for _ in range(20_000):
            crash = gen.generate()
            self.assertGreaterEqual(crash, 1.0)
            self.assertLessEqual(crash, 15.0)
            self.assertAlmostEqual(crash * 100, round(crash * 100), places=6)

    def test_band_selection(self):
        cases = [
            ((0.0, 0.0), 1.00),
            ((0.5, 0.5), 2.25),
            ((0.8, 0.5), 6.50),
            ((0.95, 0.2), 11.00),
        ]
        for draws, expected in cases:
            gen = CrashGenerator(ScriptedRNG(draws))
            self.assertAlmostEqual(gen.generate(), expected, places=9, msg=str(draws))

    def test_band_boundaries_belong_to_upper_band(self):
        self.assertEqual(band_for(0.4).lo, 1.50)
        self.assertEqual(band_for(0.7).lo, 3.00)
        self.assertEqual(band_for(0.9).lo, 10.00)
        self.assertEqual(band_for(0.3999).lo, 1.00)

    def test_band_weights(self):
        weights = [round(b.weight, 9) for b in CRASH_BANDS]
        self.assertEqual(weights, [0.4, 0.3, 0.2, 0.1])
        self.assertAlmostEqual(sum(weights), 1.0)

    def test_rounds_half_up(self):
        self.assertEqual(round_cents(1.125), 1.13)
        self.assertEqual(round_cents(2.0), 2.0)
        gen = CrashGenerator(ScriptedRNG([0.1, 0.25]))   # 1.0 + 0.25 * 0.5
        self.assertEqual(gen.generate(), 1.13)

    def test_two_draws_per_round(self):
        rng = ScriptedRNG([0.1, 0.2, 0.6, 0.4])
        gen = CrashGenerator(rng)
        gen.generate()
        self.assertEqual(rng.calls, 2)
        gen.generate()
        self.assertEqual(rng.calls, 4)

    def test_seeded_generators_repeat(self):
        a = CrashGenerator(random.Random(99))
        b = CrashGenerator(random.Random(99))
        self.assertEqual([a.generate() for _ in range(50)],
                         [b.generate() for _ in range(50)])


# ============================================================
# Race Resolver
# ============================================================

class TestRaceResolver(unittest.TestCase):

    def test_event_times(self):
        self.assertAlmostEqual(event_time(2.0, 0.8), 1.25)
        self.assertAlmostEqual(event_time(1.5, 0.8), 0.625)
        self.assertEqual(event_time(1.0, 0.8), 0.0)

    def test_running_multiplier_is_linear(self):
        race = resolve_race(0.5, 0.8, 2.0, 5.0)
        self.assertFalse(race.ended)
        self.assertIsNone(race.status)
        self.assertAlmostEqual(race.current_multiplier, 1.4)

    def test_crash_first_is_loss_and_snaps_to_crash(self):
        race = resolve_race(0.625, 0.8, 2.0, 1.5)
        self.assertTrue(race.ended)
        self.assertEqual(race.status, OutcomeStatus.LOSS)
        self.assertEqual(race.current_multiplier, 1.5)
        self.assertAlmostEqual(race.t_end, 0.625)

    def test_target_first_is_win_and_snaps_to_target(self):
        race = resolve_race(1.25, 0.8, 2.0, 5.0)
        self.assertTrue(race.ended)
        self.assertEqual(race.status, OutcomeStatus.WIN)
        self.assertEqual(race.current_multiplier, 2.0)

    def test_overshoot_still_snaps(self):
        """A late sample long after the event reports the exact event value."""
        race = resolve_race(30.0, 0.8, 2.0, 1.5)
        self.assertEqual(race.current_multiplier, 1.5)
        race = resolve_race(30.0, 0.8, 2.0, 5.0)
        self.assertEqual(race.current_multiplier, 2.0)

    def test_exact_tie_is_win(self):
        race = resolve_race(2.5, 0.8, 3.0, 3.0)
        self.assertEqual(race.status, OutcomeStatus.WIN)
        self.assertEqual(race.current_multiplier, 3.0)

    def test_tie_within_epsilon_is_win(self):
        race = resolve_race(10.0, 0.8, 2.0, 1.9995)
        self.assertEqual(race.status, OutcomeStatus.WIN)

    def test_one_cent_short_is_loss(self):
        race = resolve_race(10.0, 0.8, 2.0, 1.99)
        self.assertEqual(race.status, OutcomeStatus.LOSS)
        self.assertEqual(race.current_multiplier, 1.99)

    def test_epsilon_ends_round_just_before_event(self):
        self.assertTrue(resolve_race(1.25 - 0.0005, 0.8, 2.0, 5.0).ended)
        self.assertFalse(resolve_race(1.25 - 0.01, 0.8, 2.0, 5.0).ended)

    def test_instant_crash(self):
        race = resolve_race(0.0, 0.8, 1.01, 1.0)
        self.assertTrue(race.ended)
        self.assertEqual(race.status, OutcomeStatus.LOSS)
        self.assertEqual(race.current_multiplier, 1.0)

    def test_running_value_never_passes_terminal_value(self):
        for target, crash in [(2.0, 1.5), (2.0, 5.0), (7.3, 7.3), (1.01, 14.99)]:
            terminal = min(target, crash)
            t = 0.0
            while True:
                race = resolve_race(t, 0.8, target, crash)
                if race.ended:
                    break
                self.assertLess(race.current_multiplier, terminal)
                t += 0.0007

    def test_outcome_independent_of_polling_rate(self):
        """10 samples and 10,000 samples over the same span agree exactly."""
        rng = random.Random(5)
        for _ in range(50):
            target = round(rng.uniform(1.01, 15.0), 2)
            crash = round(rng.uniform(1.0, 15.0), 2)
            growth = rng.choice([0.3, 0.8, 2.5])
            span = min(event_time(target, growth), event_time(crash, growth)) + 0.1

            finals = []
            for n in (10, 10_000):
                for i in range(n + 1):
                    race = resolve_race(span * i / n, growth, target, crash)
                    if race.ended:
                        break
                finals.append((race.status, race.current_multiplier))
            self.assertEqual(finals[0], finals[1], msg=f"target={target} crash={crash}")

    def test_decision_matches_event_times(self):
        for target, crash in [(2.0, 1.5), (2.0, 5.0), (3.0, 3.0), (1.5, 1.49)]:
            race = resolve_race(math.inf, 0.8, target, crash)
            expected = (OutcomeStatus.WIN if race.t_target <= race.t_crash + 1e-3
                        else OutcomeStatus.LOSS)
            self.assertEqual(race.status, expected)


# ============================================================
# Round Controller
# ============================================================

class TestRoundController(unittest.TestCase):

    def _ctl(self, *crashes, **config):
        return RoundController(config=EngineConfig(**config), generator=FixedCrash(*crashes))

    def test_initial_state(self):
        ctl = self._ctl(2.0)
        snap = ctl.snapshot()
        self.assertEqual(snap.phase, RoundPhase.IDLE)
        self.assertEqual(snap.current_multiplier, 1.0)
        self.assertIsNone(snap.outcome)
        self.assertEqual(snap.history, ())
        self.assertIsNone(snap.balance)

    def test_loss_scenario(self):
        """bet 10, target 2.00, crash 1.50 -> loss, display snaps to 1.50."""
        ctl = self._ctl(1.5)
        self.assertTrue(ctl.start_round(10, 2.0))
        ctl.tick(0.0)
        ctl.tick(0.7)
        self.assertEqual(ctl.phase, RoundPhase.ENDED)
        self.assertEqual(ctl.outcome.status, OutcomeStatus.LOSS)
        self.assertIsNone(ctl.outcome.payout)
        self.assertEqual(ctl.outcome.crash_value, 1.5)
        self.assertEqual(ctl.current_multiplier, 1.5)

    def test_win_scenario(self):
        """bet 10, target 2.00, crash 5.00 -> win, payout 20.00, display 2.00."""
        ctl = self._ctl(5.0)
        ctl.start_round(10, 2.0)
        ctl.tick(0.0)
        ctl.tick(1.3)
        self.assertEqual(ctl.outcome.status, OutcomeStatus.WIN)
        self.assertEqual(ctl.outcome.payout, 20.0)
        self.assertEqual(ctl.current_multiplier, 2.0)
        self.assertEqual(ctl.outcome.crash_value, 5.0)

    def test_tie_scenario(self):
        ctl = self._ctl(3.0)
        ctl.start_round(10, 3.0)
        _play(ctl)
        self.assertEqual(ctl.outcome.status, OutcomeStatus.WIN)
        self.assertEqual(ctl.outcome.payout, 10 * 3.0)

    def test_payout_is_exact_product(self):
        ctl = self._ctl(14.0)
        ctl.start_round(3.33, 2.71)
        _play(ctl)
        self.assertEqual(ctl.outcome.payout, 3.33 * 2.71)

    def test_start_timestamp_captured_on_first_tick(self):
        ctl = self._ctl(5.0)
        ctl.start_round(10, 2.0)
        ctl.tick(50.0)
        self.assertEqual(ctl.current_multiplier, 1.0)
        ctl.tick(50.5)
        self.assertAlmostEqual(ctl.current_multiplier, 1.4)
        self.assertEqual(ctl.phase, RoundPhase.RUNNING)

    def test_invalid_inputs_refused_silently(self):
        ctl = self._ctl(5.0)
        for bet, target in [(0, 2.0), (-5, 2.0), (10, 1.0), (10, 1.009), (float("nan"), 2.0)]:
            self.assertFalse(ctl.start_round(bet, target), msg=f"{bet}, {target}")
            self.assertEqual(ctl.phase, RoundPhase.IDLE)
        self.assertEqual(ctl.generator.calls, 0)
        self.assertTrue(ctl.start_round(10, 1.01))

    def test_minimum_threshold_is_configurable(self):
        ctl = self._ctl(5.0, min_target_multiplier=1.5)
        self.assertFalse(ctl.start_round(10, 1.2))
        self.assertTrue(ctl.start_round(10, 1.5))

    def test_second_start_while_running_refused(self):
        ctl = self._ctl(5.0, 1.2)
        ctl.start_round(10, 2.0)
        ctl.tick(0.0)
        self.assertFalse(ctl.start_round(10, 3.0))
        self.assertEqual(ctl.generator.calls, 1)
        ctl.tick(1.3)
        self.assertEqual(ctl.outcome.target_multiplier, 2.0)

    def test_tick_while_idle_is_noop(self):
        ctl = self._ctl(5.0)
        ctl.tick(0.0)
        ctl.tick(10.0)
        self.assertEqual(ctl.phase, RoundPhase.IDLE)
        self.assertEqual(ctl.current_multiplier, 1.0)

    def test_late_tick_after_end_is_noop(self):
        ctl = self._ctl(1.5)
        ctl.start_round(10, 2.0)
        _play(ctl)
        outcome = ctl.outcome
        ctl.tick(999.0)
        self.assertIs(ctl.outcome, outcome)
        self.assertEqual(ctl.current_multiplier, 1.5)
        self.assertEqual(ctl.history, [1.5])

    def test_outcome_is_immutable(self):
        ctl = self._ctl(1.5)
        ctl.start_round(10, 2.0)
        _play(ctl)
        with self.assertRaises(Exception):
            ctl.outcome.payout = 100.0

    def test_history_most_recent_first_capped(self):
        crashes = [1.1, 1.2, 1.3, 1.4, 1.5, 1.6, 1.7]
        ctl = self._ctl(*crashes)
        for i, crash in enumerate(crashes, 1):
            self.assertTrue(ctl.start_round(1, 12.0))
            _play(ctl)
            expected = list(reversed(crashes[:i]))[:5]
            self.assertEqual(ctl.history, expected)
        self.assertEqual(ctl.history, [1.7, 1.6, 1.5, 1.4, 1.3])

    def test_history_length_is_configurable(self):
        ctl = self._ctl(1.1, 1.2, 1.3, history_length=2)
        for _ in range(3):
            ctl.start_round(1, 12.0)
            _play(ctl)
        self.assertEqual(ctl.history, [1.3, 1.2])

    def test_start_after_end_clears_outcome(self):
        ctl = self._ctl(1.5, 5.0)
        ctl.start_round(10, 2.0)
        _play(ctl)
        self.assertIsNotNone(ctl.outcome)
        self.assertTrue(ctl.start_round(10, 2.0))
        self.assertIsNone(ctl.outcome)
        self.assertEqual(ctl.current_multiplier, 1.0)
        self.assertEqual(ctl.phase, RoundPhase.RUNNING)

    def test_reset_idempotent(self):
        ctl = self._ctl(1.5)
        ctl.reset()
        ctl.reset()
        self.assertEqual(ctl.phase, RoundPhase.IDLE)
        self.assertEqual(ctl.current_multiplier, 1.0)
        self.assertIsNone(ctl.outcome)

    def test_reset_after_round_keeps_history(self):
        ctl = self._ctl(1.5)
        ctl.start_round(10, 2.0)
        _play(ctl)
        ctl.reset()
        self.assertEqual(ctl.phase, RoundPhase.IDLE)
        self.assertIsNone(ctl.outcome)
        self.assertEqual(ctl.current_multiplier, 1.0)
        self.assertEqual(ctl.history, [1.5])

    def test_reset_mid_round_abandons_it(self):
        ctl = self._ctl(5.0)
        ctl.start_round(10, 2.0)
        ctl.tick(0.0)
        ctl.tick(0.5)
        ctl.reset()
        ctl.tick(10.0)
        self.assertEqual(ctl.phase, RoundPhase.IDLE)
        self.assertIsNone(ctl.outcome)
        self.assertEqual(ctl.history, [])

    def test_snapshot_hides_crash_while_running(self):
        ctl = self._ctl(4.2)
        ctl.start_round(10, 2.0)
        ctl.tick(0.0)
        d = ctl.snapshot().to_dict()
        self.assertEqual(d["phase"], "running")
        self.assertIsNone(d["outcome"])
        self.assertNotIn(4.2, d.values())
        json.dumps(d)

    def test_listeners_receive_every_update(self):
        ctl = self._ctl(5.0)
        seen = []
        unsubscribe = ctl.subscribe(seen.append)
        ctl.start_round(10, 2.0)
        ctl.tick(0.0)
        ctl.tick(0.5)
        ctl.tick(1.3)
        phases = [s.phase for s in seen]
        self.assertEqual(phases, [RoundPhase.RUNNING, RoundPhase.RUNNING,
                                  RoundPhase.RUNNING, RoundPhase.ENDED])
        self.assertEqual(seen[-1].outcome.status, OutcomeStatus.WIN)
        self.assertEqual(seen[-1].history, (5.0,))

        unsubscribe()
        ctl.reset()
        self.assertEqual(len(seen), 4)

    def test_can_start_mirrors_start_round(self):
        ctl = self._ctl(5.0, starting_balance=50)
        self.assertTrue(ctl.can_start(10, 2.0))
        self.assertFalse(ctl.can_start(60, 2.0))
        self.assertFalse(ctl.can_start(10, 1.0))
        ctl.start_round(10, 2.0)
        self.assertFalse(ctl.can_start(10, 2.0))

    def test_build_controller_seeded(self):
        a = build_controller(seed=11)
        b = build_controller(seed=11)
        for ctl in (a, b):
            ctl.start_round(1, 1.01)
            _play(ctl)
        self.assertEqual(a.history, b.history)


# ============================================================
# Frame Scheduling
# ============================================================

class TestFrameScheduling(unittest.TestCase):

    def test_frames_requested_during_dispatch_run_next_frame(self):
        sched = ManualFrameScheduler()
        calls = []

        def cb(ts):
            calls.append(ts)
            if len(calls) < 3:
                sched.request_frame(cb)

        sched.request_frame(cb)
        self.assertEqual(sched.advance(1.0), 1)
        self.assertEqual(sched.advance(2.0), 1)
        self.assertEqual(sched.advance(3.0), 1)
        self.assertEqual(sched.advance(4.0), 0)
        self.assertEqual(calls, [1.0, 2.0, 3.0])

    def test_cancelled_frame_never_fires(self):
        sched = ManualFrameScheduler()
        calls = []
        handle = sched.request_frame(calls.append)
        handle.cancel()
        self.assertFalse(sched.has_pending)
        sched.advance(1.0)
        self.assertEqual(calls, [])

    def test_controller_runs_round_on_frames(self):
        sched = ManualFrameScheduler()
        ctl = RoundController(generator=FixedCrash(1.5), scheduler=sched)
        ctl.start_round(10, 2.0)
        t = 0.0
        while sched.has_pending:
            sched.advance(t)
            t += 1 / 60
        self.assertEqual(ctl.phase, RoundPhase.ENDED)
        self.assertEqual(ctl.current_multiplier, 1.5)
        self.assertFalse(sched.has_pending)

    def test_frame_rate_does_not_change_round(self):
        results = []
        for frames in (10, 10_000):
            sched = ManualFrameScheduler()
            ctl = RoundController(generator=FixedCrash(3.47), scheduler=sched)
            ctl.start_round(10, 3.46)
            span = 4.0
            for i in range(frames + 1):
                sched.advance(span * i / frames)
            results.append((ctl.outcome, ctl.current_multiplier))
        self.assertEqual(results[0], results[1])
        self.assertEqual(results[0][0].status, OutcomeStatus.WIN)

    def test_reset_cancels_pending_frame(self):
        sched = ManualFrameScheduler()
        ctl = RoundController(generator=FixedCrash(5.0), scheduler=sched)
        ctl.start_round(10, 2.0)
        sched.advance(0.0)
        ctl.reset()
        self.assertFalse(sched.has_pending)
        sched.advance(5.0)
        self.assertEqual(ctl.phase, RoundPhase.IDLE)
        self.assertIsNone(ctl.outcome)

    def test_stale_frame_callback_cannot_touch_new_round(self):
        sched = ManualFrameScheduler()
        ctl = RoundController(generator=FixedCrash(5.0, 5.0), scheduler=sched)
        ctl.start_round(10, 2.0)
        stale = ctl._frame
        ctl.reset()
        ctl.start_round(10, 2.0)

        stale.callback(100.0)     # an already-scheduled frame firing late
        self.assertIsNone(ctl._active.start_timestamp)
        self.assertEqual(ctl.current_multiplier, 1.0)

        sched.advance(0.0)
        sched.advance(2.0)
        self.assertEqual(ctl.outcome.status, OutcomeStatus.WIN)

    def test_raising_listener_does_not_strand_running_round(self):
        sched = ManualFrameScheduler()
        ctl = RoundController(generator=FixedCrash(1.5), scheduler=sched)
        ctl.start_round(10, 2.0)
        raised = []

        def flaky(snap):
            if not raised:
                raised.append(snap)
                raise RuntimeError("listener failed")

        ctl.subscribe(flaky)
        with self.assertRaises(RuntimeError):
            sched.advance(0.0)
        self.assertEqual(ctl.phase, RoundPhase.RUNNING)
        self.assertEqual(sched.pending_frames, 1)

        for i in range(1, 200):
            sched.advance(i * 0.05)
        self.assertEqual(ctl.phase, RoundPhase.ENDED)
        self.assertEqual(ctl.current_multiplier, 1.5)
        self.assertEqual(ctl.history, [1.5])
        self.assertFalse(sched.has_pending)

    def test_restart_from_listener_requests_single_frame(self):
        sched = ManualFrameScheduler()
        ctl = RoundController(generator=FixedCrash(1.5, 5.0), scheduler=sched)
        restarted = []

        def restart_on_end(snap):
            if snap.phase == RoundPhase.ENDED and not restarted:
                restarted.append(ctl.start_round(10, 2.0))

        ctl.subscribe(restart_on_end)
        ctl.start_round(10, 2.0)
        sched.advance(0.0)
        sched.advance(1.0)
        self.assertEqual(restarted, [True])
        self.assertEqual(ctl.phase, RoundPhase.RUNNING)
        self.assertEqual(sched.pending_frames, 1)

        sched.advance(2.0)
        sched.advance(4.0)
        self.assertEqual(ctl.outcome.status, OutcomeStatus.WIN)
        self.assertEqual(ctl.history, [5.0, 1.5])
        self.assertEqual(sched.pending_frames, 0)

    def test_close_stops_frames_and_listeners(self):
        sched = ManualFrameScheduler()
        ctl = RoundController(generator=FixedCrash(5.0), scheduler=sched)
        seen = []
        ctl.subscribe(seen.append)
        ctl.start_round(10, 2.0)
        ctl.close()
        sched.advance(0.0)
        self.assertEqual(len(seen), 1)
        self.assertFalse(sched.has_pending)

    def test_realtime_scheduler_with_fake_clock(self):
        now = [0.0]
        sched = RealtimeFrameScheduler(fps=50, clock=lambda: now[0],
                                       sleep=lambda s: now.__setitem__(0, now[0] + s))
        ctl = RoundController(generator=FixedCrash(1.5), scheduler=sched)
        ctl.start_round(10, 2.0)
        frames = sched.run()
        self.assertEqual(ctl.phase, RoundPhase.ENDED)
        self.assertEqual(ctl.current_multiplier, 1.5)
        # 0.625s at 50 FPS, first frame only captures the start
        self.assertGreaterEqual(frames, 31)
        self.assertLessEqual(frames, 33)

    def test_realtime_scheduler_rejects_bad_fps(self):
        with self.assertRaises(ValueError):
            RealtimeFrameScheduler(fps=0)


# ============================================================
# Wallet
# ============================================================

class TestWallet(unittest.TestCase):

    def _make_outcome(self, status, payout=None):
        return Outcome(status=status, crash_value=1.5, bet_amount=10.0,
                       target_multiplier=2.0, payout=payout)

    def test_settle_win_and_loss(self):
        w = Wallet(100)
        self.assertEqual(w.settle(self._make_outcome(OutcomeStatus.WIN, 20.0)), 110.0)
        self.assertEqual(w.settle(self._make_outcome(OutcomeStatus.LOSS)), 100.0)

    def test_settle_beyond_balance_raises(self):
        w = Wallet(5)
        with self.assertRaises(InsufficientFunds):
            w.settle(self._make_outcome(OutcomeStatus.LOSS))
        self.assertEqual(w.balance, 5)

    def test_negative_balance_rejected(self):
        with self.assertRaises(ValueError):
            Wallet(-1)

    def test_controller_with_balance(self):
        ctl = RoundController(config=EngineConfig(starting_balance=100),
                              generator=FixedCrash(5.0, 1.5))
        self.assertFalse(ctl.start_round(150, 2.0))
        ctl.start_round(10, 2.0)
        _play(ctl)
        self.assertEqual(ctl.balance, 110.0)
        ctl.start_round(10, 2.0)
        _play(ctl)
        self.assertEqual(ctl.balance, 100.0)
        self.assertEqual(ctl.snapshot().balance, 100.0)


# ============================================================
# Configuration
# ============================================================

class TestConfig(unittest.TestCase):

    def test_defaults(self):
        cfg = EngineConfig()
        self.assertEqual(cfg.growth_rate, 0.8)
        self.assertEqual(cfg.min_target_multiplier, 1.01)
        self.assertEqual(cfg.epsilon, 1e-3)
        self.assertEqual(cfg.history_length, 5)
        self.assertIsNone(cfg.starting_balance)

    def test_invalid_engine_config_rejected(self):
        with self.assertRaises(ValidationError):
            EngineConfig(growth_rate=0)
        with self.assertRaises(ValidationError):
            EngineConfig(history_length=0)

    def test_engine_config_frozen(self):
        cfg = EngineConfig()
        with self.assertRaises(ValidationError):
            cfg.growth_rate = 2.0

    def test_round_config(self):
        rc = RoundConfig(bet_amount=10, target_multiplier=2.5)
        self.assertEqual(rc.potential_payout, 25.0)
        self.assertIsNone(rc.rejection_reason(EngineConfig()))
        self.assertIn("balance", rc.rejection_reason(EngineConfig(), balance=5))

    def test_settings_build_engine_config(self):
        with patch.object(LimboSettings, "GROWTH_RATE", 1.5), \
             patch.object(LimboSettings, "HISTORY_LENGTH", 8):
            cfg = LimboSettings.engine_config()
            self.assertEqual(cfg.growth_rate, 1.5)
            self.assertEqual(cfg.history_length, 8)
            cfg = LimboSettings.engine_config(growth_rate=2.0)
            self.assertEqual(cfg.growth_rate, 2.0)

    def test_explicit_none_override_disables_wallet(self):
        with patch.object(LimboSettings, "STARTING_BALANCE", 250.0):
            self.assertEqual(LimboSettings.engine_config().starting_balance, 250.0)
            cfg = LimboSettings.engine_config(starting_balance=None)
            self.assertIsNone(cfg.starting_balance)
            self.assertIsNone(RoundController(config=cfg).balance)

    def test_cli_without_balance_keeps_env_balance(self):
        from tools.limbo_cli import main
        buf = io.StringIO()
        with patch.object(LimboSettings, "STARTING_BALANCE", 250.0), \
             contextlib.redirect_stdout(buf):
            rc = main(["--dump-config"])
        self.assertEqual(rc, 0)
        self.assertEqual(json.loads(buf.getvalue())["starting_balance"], 250.0)


# ============================================================
# CLI
# ============================================================

class TestCli(unittest.TestCase):

    def test_dump_config(self):
        from tools.limbo_cli import main
        buf = io.StringIO()
        with contextlib.redirect_stdout(buf):
            rc = main(["--growth-rate", "1.2", "--dump-config"])
        self.assertEqual(rc, 0)
        self.assertEqual(json.loads(buf.getvalue())["growth_rate"], 1.2)

    def test_play_short_round(self):
        from tools.limbo_cli import main
        with contextlib.redirect_stdout(io.StringIO()):
            rc = main(["--balance", "100", "play", "--bet", "1", "--target", "1.01",
                       "--seed", "3", "--fps", "500"])
        self.assertEqual(rc, 0)

    def test_play_refuses_invalid_bet(self):
        from tools.limbo_cli import main
        with contextlib.redirect_stdout(io.StringIO()):
            rc = main(["play", "--bet", "0"])
        self.assertEqual(rc, 1)


# ============================================================
# Main
# ============================================================

if __name__ == "__main__":
    import logging
    logging.disable(logging.WARNING)

    unittest.main(verbosity=2)
