#!/usr/bin/env python3
"""
focusroute CLI - Unified command-line interface

Usage:
    focusroute route              Run one turn (hook mode, reads stdin)
    focusroute status             Show configuration and current attention
    focusroute history [--last N] Show attention history
    focusroute reset              Zero all attention scores
    focusroute version            Show version information
"""

import argparse
import sys


def cmd_route(args):
    """Run one routing turn on stdin."""
    from focusroute.router import main as router_main
    router_main()


def cmd_status(args):
    """Show current status and configuration."""
    from focusroute.config import load_keyword_config, resolve_docs_root
    from focusroute.content import ContentResolver
    from focusroute.selector import build_context_output
    from focusroute.state import get_state_file, load_state
    from focusroute.telemetry_lib import estimate_tokens
    from focusroute.router import load_router_config
    from focusroute.tiers import Tier

    print("focusroute Status")
    print("=" * 50)

    docs_root = resolve_docs_root()
    fragments = load_keyword_config(docs_root=docs_root)
    config = load_router_config()
    print(f"Docs root: {docs_root}")
    print(f"Keywords: {fragments.source or 'auto-extracted / default'}")
    print(f"  Fragments: {len(fragments.fragment_ids())}, Pinned: {len(fragments.pinned)}")
    print(f"Limits: HOT={config.max_hot_files} WARM={config.max_warm_files} "
          f"CHARS={config.max_total_chars:,}")

    state_file = get_state_file()
    state = load_state(state_file, fragments.fragment_ids())
    print(f"State: {state_file} (turn {state.turn_count}, phase {state.current_phase})")

    ranked = sorted(state.scores.items(), key=lambda item: (-item[1], item[0]))
    for fragment_id, score in ranked[:args.top]:
        print(f"  {str(config.tier(score)):<4} {score:.2f}  {fragment_id}")

    output, stats = build_context_output(state, ContentResolver(docs_root), config)
    cold = sum(1 for s in state.scores.values() if config.tier(s) is Tier.COLD)
    print(f"Next injection: {stats.hot} hot, {stats.warm} warm, {cold} cold, "
          f"{stats.total_chars:,} chars (~{estimate_tokens(output):,} tokens)")


def cmd_history(args):
    """Show attention history."""
    from focusroute.history import show_history
    show_history(args)


def cmd_reset(args):
    """Zero every score in the active state file."""
    from focusroute.state import get_state_file, load_state, reset_scores, save_state

    state_file = get_state_file()
    state = save_state(state_file, reset_scores(load_state(state_file)))
    print(f"Reset {len(state.scores)} scores in {state_file}")


def cmd_version(args):
    """Show version information."""
    from focusroute import __version__
    print(f"focusroute version {__version__}")


def main(argv: list[str] = None):
    """Main CLI entry point."""
    from focusroute.history import build_parser as build_history_parser

    parser = argparse.ArgumentParser(
        prog="focusroute",
        description="Attention-based working memory for coding assistant context",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  echo '{"prompt": "fix the api"}' | focusroute route
  focusroute status            Check configuration and scores
  focusroute history --stats   Summary of recent turns
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("route", help="Run one routing turn (reads stdin)")

    status_parser = subparsers.add_parser("status", help="Show current status and configuration")
    status_parser.add_argument("--top", type=int, default=10, help="Fragments to list")

    history_parser = subparsers.add_parser("history", help="Show attention history")
    build_history_parser(history_parser)

    subparsers.add_parser("reset", help="Zero all attention scores")
    subparsers.add_parser("version", help="Show version information")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    commands = {
        "route": cmd_route,
        "status": cmd_status,
        "history": cmd_history,
        "reset": cmd_reset,
        "version": cmd_version,
    }

    handler = commands.get(args.command)
    try:
        handler(args)
    except KeyboardInterrupt:
        print("\nAborted.")
        sys.exit(1)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
