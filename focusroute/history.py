#!/usr/bin/env python3
"""
focusroute.history — Transition recording and turn history viewer

Recording side (called once per turn by the router):
  compute_transitions()   tier changes between two state snapshots
  build_history_entry()   one immutable record per turn
  append_history()        append-only JSONL write, never fails the turn

Viewer side (log lines are read back into HistoryEntry):
  focusroute history                     # Last 20 turns
  focusroute history --since 2h          # Last 2 hours
  focusroute history --file api          # Filter by fragment pattern
  focusroute history --instance A        # Filter by instance
  focusroute history --transitions       # Show only turns with tier changes
  focusroute history --stats             # Show summary statistics
  focusroute history --format json       # Output raw JSON
"""

import argparse
import json
import re
from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from pathlib import Path

from focusroute.config import RouterConfig
from focusroute.state import AttentionState
from focusroute.telemetry_lib import (
    HISTORY_FILE,
    atomic_jsonl_append,
    get_instance_id,
    log,
    rotate_jsonl,
    windows_utf8_io,
)
from focusroute.tiers import Tier

MAX_PROMPT_KEYWORDS = 8
HISTORY_KEEP_LINES = 1000
ROTATE_EVERY_TURNS = 100

_STOP_WORDS = frozenset({
    "the", "a", "an", "is", "are", "to", "for", "and", "or", "in",
    "on", "it", "this", "that", "with", "of",
})


# ============================================================================
# RECORDING
# ============================================================================

@dataclass(frozen=True)
class Transitions:
    to_hot: list = field(default_factory=list)
    to_warm: list = field(default_factory=list)
    to_cold: list = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.to_hot or self.to_warm or self.to_cold)

    def by_tier(self) -> dict:
        return {Tier.HOT: self.to_hot, Tier.WARM: self.to_warm, Tier.COLD: self.to_cold}

    @classmethod
    def from_dict(cls, data: dict) -> "Transitions":
        return cls(
            to_hot=_id_list(data.get("to_hot")),
            to_warm=_id_list(data.get("to_warm")),
            to_cold=_id_list(data.get("to_cold")),
        )


@dataclass(frozen=True)
class HistoryEntry:
    """One turn of attention history, as written to the JSONL log."""
    turn: int
    timestamp: str
    instance_id: str
    prompt_keywords: list
    activated: list
    hot: list
    warm: list
    cold_count: int
    transitions: Transitions
    total_chars: int

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "HistoryEntry":
        """
        Rebuild an entry from one JSONL record.

        Fields missing from older records take empty defaults. Raises
        ValueError when the record has no usable timestamp or bad types.
        """
        if not isinstance(data, dict):
            raise ValueError(f"history record is {type(data).__name__}, not an object")
        try:
            timestamp = str(data["timestamp"])
            datetime.fromisoformat(timestamp)
            transitions = data.get("transitions") or {}
            if not isinstance(transitions, dict):
                raise TypeError("transitions must be an object")
            return cls(
                turn=int(data.get("turn", 0)),
                timestamp=timestamp,
                instance_id=str(data.get("instance_id", "default")),
                prompt_keywords=_id_list(data.get("prompt_keywords")),
                activated=_id_list(data.get("activated")),
                hot=_id_list(data.get("hot")),
                warm=_id_list(data.get("warm")),
                cold_count=int(data.get("cold_count", 0)),
                transitions=Transitions.from_dict(transitions),
                total_chars=int(data.get("total_chars", 0)),
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"unusable history record: {e}") from e

    @property
    def when(self) -> datetime:
        return datetime.fromisoformat(self.timestamp)

    @property
    def fragments(self) -> set[str]:
        """Every fragment this turn touched: HOT, WARM or activated."""
        return set(self.hot) | set(self.warm) | set(self.activated)

    def tiers(self) -> dict:
        return {Tier.HOT: self.hot, Tier.WARM: self.warm}


def _id_list(value) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise TypeError(f"expected a list, got {type(value).__name__}")
    return [str(v) for v in value]


def compute_transitions(prev_state: AttentionState, curr_state: AttentionState,
                        config: RouterConfig = None) -> Transitions:
    """
    Fragments whose tier changed, bucketed by their current tier.

    A fragment absent from prev_state counts as 0.0 (COLD) there.
    """
    config = config or RouterConfig()
    buckets = {Tier.HOT: [], Tier.WARM: [], Tier.COLD: []}

    for path in sorted(curr_state.scores):
        curr_tier = config.tier(curr_state.scores[path])
        prev_tier = config.tier(prev_state.score(path))
        if curr_tier != prev_tier:
            buckets[curr_tier].append(path)

    return Transitions(to_hot=buckets[Tier.HOT], to_warm=buckets[Tier.WARM], to_cold=buckets[Tier.COLD])


def extract_prompt_keywords(prompt: str, limit: int = MAX_PROMPT_KEYWORDS) -> list[str]:
    """First few significant words of the prompt."""
    words = [w.lower() for w in prompt.split() if len(w) > 2 and w.lower() not in _STOP_WORDS]
    return words[:limit]


def build_history_entry(prev_state: AttentionState, state: AttentionState, activated: set[str],
                        prompt: str, cold_count: int, total_chars: int,
                        config: RouterConfig = None) -> HistoryEntry:
    config = config or RouterConfig()
    return HistoryEntry(
        turn=state.turn_count,
        timestamp=datetime.now().isoformat(),
        instance_id=get_instance_id(),
        prompt_keywords=extract_prompt_keywords(prompt),
        activated=sorted(activated),
        hot=sorted(p for p, s in state.scores.items() if config.tier(s) is Tier.HOT),
        warm=sorted(p for p, s in state.scores.items() if config.tier(s) is Tier.WARM),
        cold_count=cold_count,
        transitions=compute_transitions(prev_state, state, config),
        total_chars=total_chars,
    )


def append_history(entry: HistoryEntry, history_file: Path = None) -> bool:
    """Append entry to the history log. Errors are logged, never raised."""
    history_file = history_file or HISTORY_FILE
    try:
        atomic_jsonl_append(history_file, entry.to_dict())
        return True
    except (OSError, TypeError, ValueError) as e:
        log(f"History write failed: {e}", warn=True)
        return False


def rotate_history(turn_count: int, history_file: Path = None) -> None:
    """Trim the history log every ROTATE_EVERY_TURNS turns."""
    if turn_count and turn_count % ROTATE_EVERY_TURNS == 0:
        rotate_jsonl(history_file or HISTORY_FILE, HISTORY_KEEP_LINES)


# ============================================================================
# VIEWER
# ============================================================================

_DURATION_UNITS = {"m": "minutes", "h": "hours", "d": "days"}
CHANGELOG_WARM_LIMIT = 5
STATS_TOP = 5


def parse_duration(text: str) -> timedelta:
    """'30m', '2h', '1d' -> timedelta. Doubles as an argparse type."""
    match = re.fullmatch(r"\s*(\d+)\s*([mhd])\s*", text.lower())
    if not match:
        raise argparse.ArgumentTypeError(f"invalid duration {text!r} (expected e.g. 30m, 2h, 1d)")
    return timedelta(**{_DURATION_UNITS[match.group(2)]: int(match.group(1))})


def read_history(history_file: Path = None):
    """Yield HistoryEntry records from the log, skipping lines that don't parse."""
    history_file = history_file or HISTORY_FILE
    if not history_file.exists():
        return

    skipped = 0
    with open(history_file, encoding="utf-8", errors="replace") as f:
        for line in f:
            if not line.strip():
                continue
            try:
                yield HistoryEntry.from_dict(json.loads(line))
            except ValueError:
                skipped += 1
    if skipped:
        log(f"Skipped {skipped} unreadable history lines in {history_file}")


def load_history(
    since: timedelta = None,
    instance: str = None,
    file_pattern: str = None,
    transitions_only: bool = False,
    history_file: Path = None,
) -> list[HistoryEntry]:
    """History entries matching every given filter, oldest first."""
    checks = []
    if since:
        cutoff = datetime.now() - since
        checks.append(lambda e: e.when >= cutoff)
    if instance:
        checks.append(lambda e: e.instance_id == instance)
    if file_pattern:
        needle = file_pattern.lower()
        checks.append(lambda e: any(needle in fid.lower() for fid in e.fragments))
    if transitions_only:
        checks.append(lambda e: bool(e.transitions))

    return [e for e in read_history(history_file) if all(check(e) for check in checks)]


def format_stats(entries: list[HistoryEntry]) -> str:
    """Residency and transition counts per tier over the given entries."""
    if not entries:
        return "No entries to analyze."

    first, last = entries[0].when, entries[-1].when
    lines = [
        f"Attention statistics: {len(entries)} turns, "
        f"{first:%Y-%m-%d %H:%M} .. {last:%Y-%m-%d %H:%M}",
    ]

    instances = Counter(e.instance_id for e in entries)
    if len(instances) > 1:
        lines.append("  instances: " + ", ".join(f"{k}={v}" for k, v in sorted(instances.items())))

    avg_chars = sum(e.total_chars for e in entries) / len(entries)
    avg_activated = sum(len(e.activated) for e in entries) / len(entries)
    changed = sum(1 for e in entries if e.transitions)
    lines.append(f"  avg context: {avg_chars:,.0f} chars/turn, {avg_activated:.1f} activated/turn")
    lines.append(f"  turns with tier changes: {changed}")

    residency = {Tier.HOT: Counter(), Tier.WARM: Counter()}
    moves = {tier: Counter() for tier in Tier}
    for entry in entries:
        for tier, ids in entry.tiers().items():
            residency[tier].update(ids)
        for tier, ids in entry.transitions.by_tier().items():
            moves[tier].update(ids)

    lines.append("")
    lines.append("Turns spent in tier:")
    for tier, counter in residency.items():
        for fid, count in counter.most_common(STATS_TOP):
            lines.append(f"  {str(tier):<4} {count:4d}  {fid}")

    if any(moves.values()):
        lines.append("")
        lines.append("Moves into tier:")
        for tier, counter in moves.items():
            for fid, count in counter.most_common(STATS_TOP):
                lines.append(f"  -> {str(tier):<4} {count:4d}  {fid}")

    return "\n".join(lines)


def _format_entry(entry: HistoryEntry) -> list[str]:
    query = " ".join(entry.prompt_keywords[:5])
    lines = [f"{entry.when:%H:%M:%S}  turn {entry.turn}  [{entry.instance_id}]  {query}".rstrip()]

    for tier, ids in entry.tiers().items():
        if not ids:
            continue
        shown = ids if tier is Tier.HOT else ids[:CHANGELOG_WARM_LIMIT]
        extra = len(ids) - len(shown)
        lines.append(f"    {str(tier):<4}  {', '.join(shown)}" + (f" (+{extra} more)" if extra else ""))

    for tier, ids in entry.transitions.by_tier().items():
        if ids:
            lines.append(f"    -> {str(tier)}: {', '.join(ids)}")
    return lines


def format_changelog(entries: list[HistoryEntry]) -> str:
    """One block per turn, grouped under a date line."""
    lines = []
    current_day = None
    for entry in entries:
        day = entry.when.date()
        if day != current_day:
            if lines:
                lines.append("")
            lines.append(f"== {day.isoformat()} ==")
            current_day = day
        lines.extend(_format_entry(entry))
    return "\n".join(lines)


def build_parser(parser: argparse.ArgumentParser = None) -> argparse.ArgumentParser:
    parser = parser or argparse.ArgumentParser(
        prog="focusroute history",
        description="Show per-turn attention history",
    )
    parser.add_argument("--since", type=parse_duration, help="Time window (e.g., 2h, 30m, 1d)")
    parser.add_argument("--last", type=int, default=20, help="Last N entries (default: 20)")
    parser.add_argument("--instance", type=str, help="Filter by instance ID")
    parser.add_argument("--file", type=str, help="Filter by fragment pattern")
    parser.add_argument("--transitions", action="store_true", help="Show only turns with tier changes")
    parser.add_argument("--stats", action="store_true", help="Show summary statistics")
    parser.add_argument("--format", choices=["text", "json"], default="text", help="Output format")
    return parser


def show_history(args, history_file: Path = None) -> None:
    history_file = history_file or HISTORY_FILE
    entries = load_history(
        since=args.since,
        instance=args.instance,
        file_pattern=args.file,
        transitions_only=args.transitions,
        history_file=history_file,
    )

    # --since replaces --last
    if not args.since:
        entries = entries[-args.last:]

    if not entries:
        print(f"No history entries found in {history_file}")
        return

    if args.stats:
        print(format_stats(entries))
    elif args.format == "json":
        print(json.dumps([e.to_dict() for e in entries], indent=2))
    else:
        print(format_changelog(entries))
        print(f"\n[{len(entries)} entries]")


def main(argv: list[str] = None):
    windows_utf8_io()
    show_history(build_parser().parse_args(argv))


if __name__ == "__main__":
    main()
