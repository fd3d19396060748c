"""Entry point: ``python -m src``.

Supports two modes:
  - ``python -m src``            → Launch FastAPI server over a live arena
  - ``python -m src cli``        → Headless arena run
"""

from __future__ import annotations

import argparse
import json
import logging

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Combat Decision Core")
    sub = parser.add_subparsers(dest="command")

    # --- Server mode (default) ---
    srv = sub.add_parser("serve", help="Start the FastAPI server over a live arena (default)")
    srv.add_argument("--host", type=str, default="127.0.0.1")
    srv.add_argument("--port", type=int, default=8000)
    srv.add_argument("--seed", type=int, default=42)
    srv.add_argument("--monsters", type=int, default=5)
    srv.add_argument("--log-level", type=str, default="INFO", choices=["DEBUG", "INFO", "WARNING"])

    # --- Headless CLI mode ---
    cli = sub.add_parser("cli", help="Run a headless arena simulation")
    cli.add_argument("--seed", type=int, default=42)
    cli.add_argument("--steps", type=int, default=600)
    cli.add_argument("--monsters", type=int, default=5)
    cli.add_argument("--patterns", type=str, default=None, help="JSON file persisting learned patterns")
    cli.add_argument("--log-level", type=str, default="INFO", choices=["DEBUG", "INFO", "WARNING"])

    return parser


def _run_server(args: argparse.Namespace) -> None:
    import uvicorn

    from src.api.app import create_app
    from src.config import CombatConfig

    config = CombatConfig(
        arena_seed=args.seed,
        arena_monsters=args.monsters,
        log_level=args.log_level,
    )
    app = create_app(config)
    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level.lower())


def _run_cli(args: argparse.Namespace) -> None:
    from src.config import CombatConfig
    from src.engine.combat_core import CombatCore
    from src.systems.arena import Arena
    from src.utils.logging import setup_logging

    config = CombatConfig(
        arena_seed=args.seed,
        arena_monsters=args.monsters,
        pattern_store_path=args.patterns,
        log_level=args.log_level,
    )
    setup_logging(config.log_level)

    arena = Arena(config)
    core = CombatCore(arena, config, clock=arena.clock)
    arena.attach(core)
    core.start()

    logger.info("=== Arena run started (seed=%d, monsters=%d) ===", config.arena_seed, arena.population)
    for step in range(1, args.steps + 1):
        arena.step()
        if step % 100 == 0:
            summary = core.scenario.summary()
            logger.info(
                "Step %d: %d alive, scenario=%s, kills=%d",
                step, len(arena.alive()), summary["scenario"], arena.stats.kills,
            )
    core.stop()

    logger.info("=== Arena run finished at %dms ===", arena.time_ms)
    logger.info("Arena: %s", json.dumps(arena.summary()))
    logger.info("Session: %s", json.dumps(core.session_stats()))
    logger.info("Feedback: %s", json.dumps(core.feedback.summary()))
    if config.pattern_store_path:
        logger.info("Learned %d patterns, saved to %s", len(core.patterns), config.pattern_store_path)


def main() -> None:
    parser = _build_parser()
    args = parser.parse_args()

    # Default to serve mode if no subcommand given
    if args.command is None or args.command == "serve":
        if args.command is None:
            # Re-parse with serve defaults
            args = parser.parse_args(["serve"])
        _run_server(args)
    elif args.command == "cli":
        _run_cli(args)


if __name__ == "__main__":
    main()
