#!/usr/bin/env python3
"""
LIMBO ENGINE - Command Line Driver

Usage:
    python -m tools.limbo_cli play --bet 10 --target 2
    python -m tools.limbo_cli play --bet 5 --target 3.5 --rounds 5 --seed 7
    python -m tools.limbo_cli simulate --target 2 --rounds 200000
    python -m tools.limbo_cli --dump-config
"""

import argparse
import logging
import random
import sys

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from config.settings import LimboSettings
from sim_engine.limbo import CrashGenerator, RealtimeFrameScheduler, RoundController
from tools.limbo_montecarlo import MonteCarloValidator

logger = logging.getLogger("limbo.cli")
console = Console()


def _configure_logging(verbose: bool) -> None:
    root = logging.getLogger("limbo")
    if not root.handlers:
        _h = logging.StreamHandler()
        _h.setFormatter(logging.Formatter("[%(asctime)s] %(levelname)s %(message)s", datefmt="%H:%M:%S"))
        root.addHandler(_h)
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)


def _history_table(history: list[float]) -> Table:
    table = Table(title="Recent Crashes", show_header=False)
    table.add_column("crash", justify="right")
    for i, crash in enumerate(history):
        style = "bold red" if i == 0 else "dim"
        table.add_row(f"[{style}]{crash:.2f}×[/{style}]")
    return table


def play(args, config) -> int:
    seed = args.seed if args.seed is not None else LimboSettings.seed()
    scheduler = RealtimeFrameScheduler(fps=args.fps)
    ctl = RoundController(
        config=config,
        generator=CrashGenerator(random.Random(seed)),
        scheduler=scheduler,
    )

    console.print(Panel(
        f"Bet: ${args.bet:.2f}\n"
        f"Target: {args.target:.2f}×\n"
        f"Potential Win: ${args.bet * args.target:.2f}\n"
        f"Growth: {config.growth_rate}×/s  |  {args.fps} FPS"
        + (f"\nBalance: ${ctl.balance:.2f}" if ctl.balance is not None else ""),
        title="🎯 Limbo", border_style="cyan",
    ))

    try:
        for n in range(1, args.rounds + 1):
            if not ctl.start_round(args.bet, args.target):
                console.print("[red]❌ Cannot place bet with these inputs.[/red]")
                return 1

            with console.status("1.00×") as status:
                unsubscribe = ctl.subscribe(
                    lambda snap: status.update(f"[yellow]{snap.current_multiplier:.2f}×[/yellow]"))
                scheduler.run()
                unsubscribe()

            outcome = ctl.outcome
            if outcome.is_win:
                body = (f"[bold green]🎉 You Win![/bold green]\n"
                        f"Final: {ctl.current_multiplier:.2f}×  Payout: ${outcome.payout:.2f}\n"
                        f"[dim]Crashed at {outcome.crash_value:.2f}× (after your cashout)[/dim]")
                border = "green"
            else:
                body = (f"[bold red]💥 Crashed![/bold red]\n"
                        f"Crashed at {outcome.crash_value:.2f}×")
                border = "red"
            if ctl.balance is not None:
                body += f"\nBalance: ${ctl.balance:.2f}"
            console.print(Panel(body, title=f"Round {n}", border_style=border))
    finally:
        ctl.close()

    logger.info(f"session finished: {args.rounds} round(s), history={ctl.history}")
    console.print(_history_table(ctl.history))
    return 0


def simulate(args, config) -> int:
    mc = MonteCarloValidator(config=config, tolerance=args.tolerance,
                             seed=args.seed if args.seed is not None else 42)
    result = mc.validate_target(args.target, n_rounds=args.rounds)
    if args.json:
        print(result.to_json())
    else:
        console.print(result.summary())
    return 0 if result.passed else 1


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Limbo round engine")
    parser.add_argument("--growth-rate", type=float, default=None)
    parser.add_argument("--balance", type=float, default=None, help="Enable a wallet with this balance")
    parser.add_argument("--dump-config", action="store_true")
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command")

    p_play = sub.add_parser("play", help="Play rounds in real time")
    p_play.add_argument("--bet", type=float, default=10.0)
    p_play.add_argument("--target", type=float, default=2.0)
    p_play.add_argument("--rounds", type=int, default=1)
    p_play.add_argument("--fps", type=int, default=LimboSettings.FPS)
    p_play.add_argument("--seed", type=int, default=None)

    p_sim = sub.add_parser("simulate", help="Monte Carlo validation at a fixed target")
    p_sim.add_argument("--target", type=float, default=2.0)
    p_sim.add_argument("--rounds", type=int, default=200_000)
    p_sim.add_argument("--tolerance", type=float, default=0.005)
    p_sim.add_argument("--seed", type=int, default=None)
    p_sim.add_argument("--json", action="store_true")

    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    overrides = {}
    if args.growth_rate is not None:
        overrides["growth_rate"] = args.growth_rate
    if args.balance is not None:
        overrides["starting_balance"] = args.balance
    config = LimboSettings.engine_config(**overrides)
    if args.dump_config:
        print(config.model_dump_json(indent=2))
        return 0

    if args.command == "play":
        return play(args, config)
    if args.command == "simulate":
        return simulate(args, config)
    parser.print_help()
    return 2


if __name__ == "__main__":
    sys.exit(main())
