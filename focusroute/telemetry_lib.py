#!/usr/bin/env python3
"""
focusroute.telemetry_lib — Shared paths and I/O helpers.

Provides file locations, the stderr log helper, JSONL append/rotation,
instance and project identification, and token estimation used by the
other focusroute modules.
"""
import hashlib
import json
import os
import subprocess
import sys
from pathlib import Path

import tiktoken

# ============================================================================
# CONSTANTS
# ============================================================================

LOG_PREFIX = "[focusroute]"

CLAUDE_HOME = Path.home() / ".claude"
TELEMETRY_DIR = CLAUDE_HOME / "telemetry"
ROUTER_OVERRIDES_FILE = TELEMETRY_DIR / "router_overrides.json"
HISTORY_FILE = CLAUDE_HOME / "attention_history.jsonl"
INJECTION_LOG_FILE = CLAUDE_HOME / "context_injection.log"
ATTN_STATE_GLOBAL = CLAUDE_HOME / "attn_state.json"

INSTANCE_ENV = "CLAUDE_INSTANCE"
DOCS_ROOT_ENV = "CONTEXT_DOCS_ROOT"

# Debug log rotation
LOG_MAX_SIZE_BYTES = 50_000
LOG_KEEP_SIZE_BYTES = 25_000


# ============================================================================
# WINDOWS ENCODING FIX
# ============================================================================

def windows_utf8_io():
    """Switch stdout/stderr to UTF-8 on Windows (cp1252 can't print box-drawing chars)."""
    if sys.platform != "win32":
        return
    for stream in (sys.stdout, sys.stderr):
        if hasattr(stream, "reconfigure") and (stream.encoding or "").lower() != "utf-8":
            stream.reconfigure(encoding="utf-8", errors="replace")


# ============================================================================
# LOGGING
# ============================================================================

def log(message: str, warn: bool = False) -> None:
    """Write a diagnostic line to stderr. Never touches stdout."""
    tag = "WARN:" if warn else ""
    print(f"{LOG_PREFIX} {tag}{message}", file=sys.stderr)


def append_injection_log(line: str, log_file: Path = None) -> None:
    """Append a one-liner to the debug log, trimming it when it grows too big."""
    log_file = log_file or INJECTION_LOG_FILE
    try:
        if log_file.exists() and log_file.stat().st_size > LOG_MAX_SIZE_BYTES:
            content = log_file.read_text(encoding='utf-8', errors='replace')
            log_file.write_text(content[-LOG_KEEP_SIZE_BYTES:], encoding='utf-8')

        log_file.parent.mkdir(parents=True, exist_ok=True)
        with open(log_file, "a", encoding='utf-8') as f:
            f.write(line.rstrip("\n") + "\n")
    except OSError as e:
        log(f"Debug log write failed: {e}", warn=True)


# ============================================================================
# PROJECT / INSTANCE DETECTION
# ============================================================================

def get_project() -> str:
    """Get canonical project root, handling git worktrees.

    Uses `git rev-parse --git-common-dir` to resolve worktrees to their
    shared root. Falls back to CWD for non-git projects.
    """
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--git-common-dir"],
            capture_output=True, text=True, timeout=2
        )
        if result.returncode == 0:
            common_git = Path(result.stdout.strip())
            if common_git.is_absolute():
                return str(common_git.parent).lower().replace("\\", "/")
            return str((Path.cwd() / common_git).resolve().parent).lower().replace("\\", "/")
    except (subprocess.TimeoutExpired, FileNotFoundError, OSError):
        pass
    return str(Path.cwd()).lower().replace("\\", "/")


def project_overrides_key() -> str:
    """Short hash of project path for keying per-project overrides."""
    return hashlib.md5(get_project().encode()).hexdigest()[:8]


def get_instance_id() -> str:
    """Instance label used to namespace history entries (not scores)."""
    return os.environ.get(INSTANCE_ENV) or "default"


# ============================================================================
# JSONL I/O
# ============================================================================

def atomic_jsonl_append(path: Path, record: dict):
    """Append a JSON record to a JSONL file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    line = json.dumps(record, default=str) + "\n"
    with open(path, "a", encoding="utf-8") as f:
        f.write(line)


def rotate_jsonl(path: Path, max_lines: int = 500):
    """Keep only the last max_lines entries in a JSONL file."""
    if not path.exists():
        return
    try:
        with open(path, encoding='utf-8', errors='replace') as f:
            lines = f.readlines()
        if len(lines) > max_lines:
            with open(path, 'w', encoding='utf-8') as f:
                f.writelines(lines[-max_lines:])
    except OSError as e:
        log(f"Rotation of {path} failed: {e}", warn=True)


# ============================================================================
# ROUTER OVERRIDES (per-project aware)
# ============================================================================

def load_router_overrides(path: Path = None) -> dict:
    """Load auto-tuned router parameter overrides."""
    path = path or ROUTER_OVERRIDES_FILE
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8", errors="replace"))
    except (OSError, json.JSONDecodeError) as e:
        log(f"Failed to load {path}: {e}", warn=True)
        return {}
    return data if isinstance(data, dict) else {}


def load_project_overrides(path: Path = None) -> dict:
    """Merged override params: global defaults with project-specific on top."""
    raw = load_router_overrides(path)
    if not raw:
        return {}
    global_params = raw.get("global", raw.get("overrides", {}))
    proj_params = raw.get("projects", {}).get(project_overrides_key(), {})
    merged = dict(global_params)
    merged.update(proj_params)
    return merged


# ============================================================================
# TOKEN ESTIMATION
# ============================================================================

_enc = None


def _encoding():
    global _enc
    if _enc is None:
        _enc = tiktoken.get_encoding("cl100k_base")
    return _enc


def estimate_tokens(text: str) -> int:
    """BPE token count of text (cl100k_base)."""
    if not text:
        return 0
    return len(_encoding().encode(text))


def estimate_tokens_from_chars(chars: int, content_type: str = "mixed") -> int:
    """
    Quick token estimate from character count when text isn't available.

    content_type: "code" (2.5), "prose" (4.0), "markdown" (3.0), "mixed" (3.3)
    """
    ratios = {"code": 2.5, "prose": 4.0, "markdown": 3.0, "mixed": 3.3}
    ratio = ratios.get(content_type, 3.3)
    return max(0, int(chars / ratio))
