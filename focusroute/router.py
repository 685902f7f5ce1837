#!/usr/bin/env python3
"""
focusroute.router — Per-turn hook entry point

Hook: UserPromptSubmit
Input: JSON from stdin {"prompt": "..."} (raw text accepted as fallback)
Output: Tiered context to stdout, diagnostics to stderr

One invocation handles exactly one prompt:

  prompt → attention update → tier + budgeted selection
         → history entry → state saved → output printed

Only a missing docs root / keyword configuration stops a turn. Every other
failure degrades to absent / zero / COLD plus a log line.
"""

import json
import re
import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from focusroute.attention import AttentionEngine
from focusroute.config import (
    NOTIFICATION_SHORT_PROMPT_THRESHOLD,
    FragmentConfig,
    RouterConfig,
    load_keyword_config,
    resolve_docs_root,
)
from focusroute.content import ContentResolver
from focusroute.errors import ConfigurationMissing, PersistenceFailure
from focusroute.history import (
    HistoryEntry,
    append_history,
    build_history_entry,
    rotate_history,
)
from focusroute.selector import SelectionStats, build_context_output
from focusroute.state import (
    AttentionState,
    discover_task_files,
    get_state_file,
    load_state,
    save_state,
)
from focusroute.telemetry_lib import (
    append_injection_log,
    estimate_tokens_from_chars,
    load_project_overrides,
    log,
    windows_utf8_io,
)


@dataclass
class TurnResult:
    output: str
    stats: SelectionStats
    state: AttentionState
    activated: set
    entry: HistoryEntry

    @property
    def has_context(self) -> bool:
        return self.stats.hot > 0 or self.stats.warm > 0


# ============================================================================
# INPUT
# ============================================================================

def read_stdin(stdin) -> str:
    """Whole of stdin as text. Undecodable bytes become U+FFFD."""
    buffer = getattr(stdin, "buffer", None)
    if buffer is not None:
        return buffer.read().decode("utf-8", errors="replace")
    return stdin.read()


def parse_prompt(raw: str) -> str:
    """Prompt from a {"prompt": ...} record, or the raw text itself."""
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        return raw
    if isinstance(data, dict):
        prompt = data.get("prompt", "")
        return prompt if isinstance(prompt, str) else ""
    return raw


def strip_notifications(prompt: str) -> tuple[str, bool]:
    """
    Strip <task-notification> and <system-reminder> XML from prompt.
    Returns (cleaned_prompt, was_notification).
    """
    cleaned, task_count = re.subn(r'<task-notification>.*?</task-notification>', '', prompt, flags=re.DOTALL)
    cleaned, reminder_count = re.subn(r'<system-reminder>.*?</system-reminder>', '', cleaned, flags=re.DOTALL)
    return cleaned.strip(), (task_count + reminder_count) > 0


def load_router_config(prompt: str = "", was_notification: bool = False,
                       overrides_file: Path = None) -> RouterConfig:
    """Defaults, then auto-tuned overrides, then the notification clamp."""
    config = RouterConfig().with_overrides(load_project_overrides(overrides_file))
    if was_notification and len(prompt) < NOTIFICATION_SHORT_PROMPT_THRESHOLD:
        config = config.clamped_for_notification()
    return config


# ============================================================================
# TURN
# ============================================================================

def run_turn(prompt: str, docs_root: Path, fragments: FragmentConfig,
             config: RouterConfig = None, state_file: Path = None,
             history_file: Path = None) -> TurnResult:
    """
    Process one prompt end to end.

    The state file is read once at the start and written once at the end.
    Write failures are logged; the in-memory result is still returned.
    """
    config = config or RouterConfig()
    state_file = state_file or get_state_file()
    resolver = ContentResolver(docs_root)

    known = fragments.fragment_ids() + discover_task_files(resolver.docs_root)
    prev_state = load_state(state_file, known)

    state, activated = AttentionEngine(fragments, config).update(prev_state, prompt)
    output, stats = build_context_output(state, resolver, config)

    entry = build_history_entry(prev_state, state, activated, prompt,
                                cold_count=stats.cold, total_chars=len(output), config=config)
    append_history(entry, history_file)

    try:
        state = save_state(state_file, state)
    except PersistenceFailure as e:
        log(str(e), warn=True)

    rotate_history(state.turn_count, history_file)
    return TurnResult(output=output, stats=stats, state=state, activated=activated, entry=entry)


def format_log_line(result: TurnResult, was_notification: bool) -> str:
    stats = result.stats
    return (f"[{datetime.now().isoformat()[:19]}] T{result.state.turn_count} "
            f"H={stats.hot} W={stats.warm} C={stats.cold} D={stats.dropped} "
            f"chars={len(result.output)} "
            f"tok~{estimate_tokens_from_chars(len(result.output), 'markdown')} "
            f"notif={was_notification} "
            f"activated={','.join(sorted(result.activated)) or 'none'}")


def main(stdin=None) -> int:
    """
    Hook entry point. Reads stdin, prints tiered context to stdout.

    Always returns 0: a broken turn emits nothing rather than blocking
    the user's prompt.
    """
    windows_utf8_io()
    stdin = stdin or sys.stdin
    try:
        raw = read_stdin(stdin) if stdin else ""
    except (OSError, UnicodeDecodeError) as e:
        log(f"Could not read prompt, no context injected: {e}", warn=True)
        return 0

    prompt = parse_prompt(raw)
    if not prompt.strip():
        return 0

    prompt, was_notification = strip_notifications(prompt)
    if not prompt:
        # Pure notification with no user text
        return 0

    try:
        config = load_router_config(prompt, was_notification)
        docs_root = resolve_docs_root()
        fragments = load_keyword_config(docs_root=docs_root)
        result = run_turn(prompt, docs_root, fragments, config)
    except ConfigurationMissing as e:
        log(f"Configuration missing, no context injected:{e}", warn=True)
        return 0
    except Exception as e:
        log(f"Turn failed, no context injected: {e!r}", warn=True)
        return 0

    append_injection_log(format_log_line(result, was_notification))

    if result.has_context:
        print(result.output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
