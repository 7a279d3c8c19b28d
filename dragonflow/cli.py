"""
Dragonflow CLI - Command-line interface for the engine.

Usage:
    dragonflow new [--seed N]              Print a new game snapshot
    dragonflow replay <actions_file>       Replay a JSON list of actions
    dragonflow serve [--host H --port P]   Run the HTTP/WebSocket API
"""

import argparse
import json
import logging
import os
import random
import sys

logger = logging.getLogger(__name__)


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Dragonflow - Elemental dragon card game engine",
        prog="dragonflow",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("DRAGONFLOW_LOG_LEVEL", "INFO"),
        help="Logging level (default: DRAGONFLOW_LOG_LEVEL or INFO)",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # New command
    new_parser = subparsers.add_parser("new", help="Print a freshly shuffled game")
    new_parser.add_argument("--seed", type=int, help="Shuffle seed")

    # Replay command
    replay_parser = subparsers.add_parser("replay", help="Apply a JSON list of actions")
    replay_parser.add_argument("actions_file", help="Path to JSON action list")
    replay_parser.add_argument("--seed", type=int, help="Shuffle seed")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the API server")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    if args.command == "new":
        cmd_new(args)
    elif args.command == "replay":
        cmd_replay(args)
    elif args.command == "serve":
        cmd_serve(args)
    else:
        parser.print_help()
        sys.exit(1)


def cmd_new(args):
    """Print a new game snapshot."""
    from .engine_core import create_game, state_to_dict

    state = create_game(rng=random.Random(args.seed))
    print(json.dumps(state_to_dict(state), indent=2))


def cmd_replay(args):
    """Create a game and apply actions from a file, one by one."""
    from .engine_core import Action, Reducer, create_game, state_to_dict

    try:
        with open(args.actions_file, "r", encoding="utf-8") as f:
            raw_actions = json.load(f)
    except FileNotFoundError:
        print(f"Error: File not found: {args.actions_file}")
        sys.exit(1)
    except json.JSONDecodeError as e:
        print(f"Error: Invalid JSON in {args.actions_file}: {e}")
        sys.exit(1)

    if not isinstance(raw_actions, list):
        print("Error: Expected a JSON list of actions")
        sys.exit(1)

    rng = random.Random(args.seed)
    state = create_game(rng=rng)
    reducer = Reducer(rng=rng)

    for index, raw in enumerate(raw_actions):
        try:
            action = Action.from_dict(raw)
        except (KeyError, ValueError) as e:
            print(f"[{index}] invalid action {raw!r}: {e}")
            sys.exit(1)

        result = reducer.apply(state, action)
        if result.new_state is not None:
            state = result.new_state

        if result.success:
            print(f"[{index}] {action.action_type.value}: ok")
        elif result.voided:
            print(f"[{index}] {action.action_type.value}: voided ({result.error_code.value})")
        else:
            print(f"[{index}] {action.action_type.value}: rejected ({result.error_code.value}) {result.error}")
        for change in result.state_changes:
            print(f"      - {change}")

        if state.is_over:
            print(f"Winner: {state.winner.value}")
            break

    print(json.dumps(state_to_dict(state), indent=2))


def cmd_serve(args):
    """Run the API with uvicorn."""
    try:
        import uvicorn
    except ImportError:
        print("Error: uvicorn not installed. Install with: pip install fastapi uvicorn")
        sys.exit(1)

    from .api.app import create_app

    logger.info("Serving Dragonflow API on %s:%d", args.host, args.port)
    uvicorn.run(create_app(), host=args.host, port=args.port)


if __name__ == "__main__":
    main()
