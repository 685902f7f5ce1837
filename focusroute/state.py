#!/usr/bin/env python3
"""
focusroute.state — Score Store

The attention state is a plain value: fragment id -> score in [0, 1],
plus a turn counter, the phase marker owned by the phase classifier,
and the time of the last save. The engine never mutates an instance;
every update returns a new AttentionState. Loading and saving happen
only at the edges of a turn.

On-disk layout (one JSON document):

    {"scores": {"docs/api.md": 0.42, ...},
     "turn_count": 17,
     "current_phase": 0,
     "last_update": "2026-01-01T12:00:00"}
"""

import json
import math
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path

from focusroute.errors import PersistenceFailure
from focusroute.telemetry_lib import ATTN_STATE_GLOBAL, log

# Task-tracking docs are picked up automatically when they appear
TASK_DIR_NAMES = ("tasks", "todo")
TASK_FILE_PREFIXES = ("todo", "tasks", "task-")


def clamp_score(value) -> float:
    """Coerce to float within [0, 1]. NaN and garbage become 0.0."""
    try:
        score = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(score):
        return 0.0
    return max(0.0, min(1.0, score))


@dataclass(frozen=True)
class AttentionState:
    """Immutable snapshot of the score store."""
    scores: dict = field(default_factory=dict)
    turn_count: int = 0
    current_phase: int = 0
    last_update: str = ""

    @classmethod
    def fresh(cls, fragment_ids: Iterable[str] = ()) -> "AttentionState":
        """Zero score for every known fragment."""
        return cls(
            scores={fid: 0.0 for fid in fragment_ids},
            last_update=datetime.now().isoformat(),
        )

    @classmethod
    def from_dict(cls, data: dict) -> "AttentionState":
        """Parse a persisted document. Raises ValueError when it is unusable."""
        if not isinstance(data, dict):
            raise ValueError("state document must be an object")
        scores = data.get("scores", {})
        if not isinstance(scores, dict):
            raise ValueError("'scores' must be an object")
        turn_count = int(data.get("turn_count", 0))
        if turn_count < 0:
            raise ValueError("'turn_count' must be non-negative")
        return cls(
            scores={str(k): clamp_score(v) for k, v in scores.items()},
            turn_count=turn_count,
            current_phase=int(data.get("current_phase", 0)),
            last_update=str(data.get("last_update", "")),
        )

    def to_dict(self) -> dict:
        return {
            "scores": dict(self.scores),
            "turn_count": self.turn_count,
            "current_phase": self.current_phase,
            "last_update": self.last_update,
        }

    def score(self, fragment_id: str) -> float:
        return self.scores.get(fragment_id, 0.0)

    def with_scores(self, scores: dict, **changes) -> "AttentionState":
        return replace(self, scores=dict(scores), **changes)


# ============================================================================
# STATE FILE
# ============================================================================

def get_state_file(cwd: Path = None, global_state: Path = None) -> Path:
    """Project-local .claude/attn_state.json if .claude/ exists, else global."""
    cwd = cwd or Path.cwd()
    project_claude = cwd / ".claude"
    if project_claude.is_dir():
        return project_claude / "attn_state.json"
    return global_state or ATTN_STATE_GLOBAL


def load_state(state_file: Path, fragment_ids: Iterable[str] = ()) -> AttentionState:
    """
    Load attention state, adding any fragments it does not know yet.

    A missing, unreadable or malformed file yields a fresh zero-score state.
    """
    fragment_ids = list(fragment_ids)
    if state_file.exists():
        try:
            data = json.loads(state_file.read_text(encoding="utf-8"))
            return ensure_fragments(AttentionState.from_dict(data), fragment_ids)
        except (OSError, ValueError, TypeError) as e:
            log(f"State file {state_file} unusable ({e}), starting fresh", warn=True)
    return AttentionState.fresh(fragment_ids)


def save_state(state_file: Path, state: AttentionState) -> AttentionState:
    """Persist state, stamping last_update. Raises PersistenceFailure."""
    stamped = replace(state, last_update=datetime.now().isoformat())
    try:
        state_file.parent.mkdir(parents=True, exist_ok=True)
        state_file.write_text(json.dumps(stamped.to_dict(), indent=2), encoding="utf-8")
    except OSError as e:
        raise PersistenceFailure(f"Could not write {state_file}: {e}") from e
    return stamped


def reset_scores(state: AttentionState) -> AttentionState:
    """Zero every score and the turn counter, keeping the known fragments."""
    return state.with_scores({fid: 0.0 for fid in state.scores}, turn_count=0)


# ============================================================================
# FRAGMENT DISCOVERY
# ============================================================================

def ensure_fragments(state: AttentionState, fragment_ids: Iterable[str]) -> AttentionState:
    """Add unknown fragments at 0.0. Existing scores are left alone."""
    missing = [fid for fid in fragment_ids if fid not in state.scores]
    if not missing:
        return state
    scores = dict(state.scores)
    for fid in missing:
        scores[fid] = 0.0
    return state.with_scores(scores)


def discover_task_files(docs_root: Path) -> list[str]:
    """Markdown task-tracking files under docs_root, as fragment ids."""
    found = []
    for md_file in sorted(docs_root.rglob("*.md")):
        rel = md_file.relative_to(docs_root)
        in_task_dir = any(part.lower() in TASK_DIR_NAMES for part in rel.parts[:-1])
        if in_task_dir or md_file.name.lower().startswith(TASK_FILE_PREFIXES):
            found.append(rel.as_posix())
    return found
