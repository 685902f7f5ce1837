#!/usr/bin/env python3
"""
focusroute.config — Router parameters and fragment configuration.

Two kinds of configuration feed the attention engine:

  RouterConfig    numeric knobs (thresholds, decay rates, boosts, limits)
  FragmentConfig  which fragments exist, what activates them, what they
                  co-activate, and which are pinned (from keywords.json)

Both are validated when built. Anything unusable raises ConfigurationMissing
so bad values never reach the scoring math.
"""

import json
import os
import re
from dataclasses import dataclass, field, replace
from pathlib import Path

from focusroute.errors import ConfigurationMissing
from focusroute.telemetry_lib import CLAUDE_HOME, DOCS_ROOT_ENV, log
from focusroute.tiers import HOT_THRESHOLD, WARM_THRESHOLD, Tier, get_tier

# ============================================================================
# DEFAULTS
# ============================================================================

# Decay rates per category prefix. Higher = slower decay (more persistent).
DEFAULT_DECAY_RATES = {
    "systems/": 0.85,       # Hardware is stable, decay slow
    "modules/": 0.70,       # Code changes more frequently
    "integrations/": 0.80,  # APIs semi-stable
    "docs/": 0.75,          # Documentation medium decay
    "default": 0.70,
}

# Notification-mixed prompts get a much smaller injection
NOTIFICATION_SHORT_PROMPT_THRESHOLD = 200
NOTIFICATION_MAX_HOT_FILES = 1
NOTIFICATION_MAX_WARM_FILES = 2
NOTIFICATION_MAX_CHARS = 5000

KEYWORD_CONFIG_NAME = "keywords.json"

# Words that never make useful auto-extracted keywords
_STOP_WORDS = frozenset({
    "the", "and", "for", "with", "this", "that", "from", "into", "about",
    "what", "when", "where", "which", "there", "here", "have", "will",
    "should", "would", "could", "also", "then", "than", "them", "they",
    "your", "notes", "overview", "introduction", "summary", "todo",
})


@dataclass(frozen=True)
class RouterConfig:
    """
    Numeric parameters of the attention engine.

    Thresholds:
      hot_threshold       score >= this is HOT (full content)
      warm_threshold      score >= this is WARM (header only), else COLD

    Dynamics:
      decay_rates         category prefix -> multiplicative decay per turn,
                          must contain "default"
      keyword_boost       score set on direct keyword activation
      coactivation_boost  additive boost for one-hop co-activated fragments
      pinned_floor_boost  pinned fragments never drop below
                          warm_threshold + pinned_floor_boost
      short_keyword_length  keywords this short need word boundaries
                          (0 = plain substring matching)

    Limits:
      max_hot_files, max_warm_files, warm_header_lines, max_total_chars
    """
    hot_threshold: float = HOT_THRESHOLD
    warm_threshold: float = WARM_THRESHOLD
    decay_rates: dict = field(default_factory=lambda: dict(DEFAULT_DECAY_RATES))
    keyword_boost: float = 1.0
    coactivation_boost: float = 0.35
    pinned_floor_boost: float = 0.1
    short_keyword_length: int = 0
    max_hot_files: int = 4
    max_warm_files: int = 8
    warm_header_lines: int = 25
    max_total_chars: int = 25000

    def __post_init__(self):
        if not 0.0 <= self.warm_threshold < self.hot_threshold <= 1.0:
            raise ConfigurationMissing(
                f"Invalid thresholds: warm={self.warm_threshold} hot={self.hot_threshold}"
            )
        if "default" not in self.decay_rates:
            raise ConfigurationMissing("decay_rates must define a 'default' rate")
        for prefix, rate in self.decay_rates.items():
            if not isinstance(rate, (int, float)) or not 0.0 <= rate <= 1.0:
                raise ConfigurationMissing(f"Invalid decay rate for {prefix!r}: {rate!r}")
        for name in ("keyword_boost", "coactivation_boost", "pinned_floor_boost"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigurationMissing(f"{name} must be within [0, 1], got {value}")
        for name in ("max_hot_files", "max_warm_files", "warm_header_lines", "max_total_chars"):
            if getattr(self, name) < 0:
                raise ConfigurationMissing(f"{name} must be non-negative")

    @property
    def pinned_floor(self) -> float:
        return min(1.0, self.warm_threshold + self.pinned_floor_boost)

    def tier(self, score: float) -> Tier:
        return get_tier(score, self.hot_threshold, self.warm_threshold)

    def decay_rate(self, fragment_id: str) -> float:
        """First matching category prefix wins, else the default rate."""
        for prefix, rate in self.decay_rates.items():
            if prefix != "default" and fragment_id.startswith(prefix):
                return rate
        return self.decay_rates["default"]

    def with_overrides(self, params: dict) -> "RouterConfig":
        """Apply auto-tuned overrides (router_overrides.json naming)."""
        changes = {}
        try:
            if "MAX_HOT_FILES" in params:
                changes["max_hot_files"] = int(params["MAX_HOT_FILES"])
            if "MAX_WARM_FILES" in params:
                changes["max_warm_files"] = int(params["MAX_WARM_FILES"])
            if "MAX_TOTAL_CHARS" in params:
                changes["max_total_chars"] = int(params["MAX_TOTAL_CHARS"])
            if "COACTIVATION_BOOST" in params:
                changes["coactivation_boost"] = float(params["COACTIVATION_BOOST"])
            if "DECAY_RATES.default" in params:
                rates = dict(self.decay_rates)
                rates["default"] = float(params["DECAY_RATES.default"])
                changes["decay_rates"] = rates
        except (TypeError, ValueError) as e:
            raise ConfigurationMissing(f"Invalid router override: {e}") from e
        if not changes:
            return self
        return replace(self, **changes)

    def clamped_for_notification(self) -> "RouterConfig":
        """Tighter limits for prompts that were mostly a system notification."""
        return replace(
            self,
            max_hot_files=min(self.max_hot_files, NOTIFICATION_MAX_HOT_FILES),
            max_warm_files=min(self.max_warm_files, NOTIFICATION_MAX_WARM_FILES),
            max_total_chars=min(self.max_total_chars, NOTIFICATION_MAX_CHARS),
        )


@dataclass(frozen=True)
class FragmentConfig:
    """Static fragment relations loaded from keywords.json."""
    keywords: dict = field(default_factory=dict)       # id -> [trigger substrings]
    co_activation: dict = field(default_factory=dict)  # id -> [boosted ids]
    pinned: tuple = ()
    source: Path | None = None

    @classmethod
    def from_dict(cls, data: dict, source: Path = None) -> "FragmentConfig":
        """Validate a parsed keywords.json document."""
        if not isinstance(data, dict):
            raise ConfigurationMissing(f"{source}: top level must be an object")

        keywords = data.get("keywords", {})
        co_activation = data.get("co_activation", {})
        pinned = data.get("pinned", [])

        if not isinstance(keywords, dict):
            raise ConfigurationMissing(f"{source}: 'keywords' must map fragment ids to lists")
        if not isinstance(co_activation, dict):
            raise ConfigurationMissing(f"{source}: 'co_activation' must map fragment ids to lists")
        if not isinstance(pinned, list):
            raise ConfigurationMissing(f"{source}: 'pinned' must be a list")

        return cls(
            keywords={str(k): _string_list(v, source, k) for k, v in keywords.items()},
            co_activation={str(k): _string_list(v, source, k) for k, v in co_activation.items()},
            pinned=tuple(str(p) for p in pinned),
            source=source,
        )

    def fragment_ids(self) -> list[str]:
        """Every id mentioned anywhere in the config, in first-seen order."""
        seen = dict.fromkeys(self.keywords)
        for source, targets in self.co_activation.items():
            seen.setdefault(source)
            for target in targets:
                seen.setdefault(target)
        for pinned in self.pinned:
            seen.setdefault(pinned)
        return list(seen)


def _string_list(value, source, key) -> list[str]:
    if not isinstance(value, list):
        raise ConfigurationMissing(f"{source}: entry for {key!r} must be a list")
    return [str(v) for v in value if str(v)]


# ============================================================================
# DOCS ROOT RESOLUTION
# ============================================================================

_REMEDIATION = (
    "\n"
    "─────────────────────────────────────────────────────────\n"
    "  No .claude/ directory with documentation found.\n"
    "\n"
    "  Create .claude/ in your project root and add .md files:\n"
    "    mkdir -p .claude/\n"
    "    echo '# My Project' > .claude/README.md\n"
    "\n"
    "  Or set explicit path:\n"
    f"    export {DOCS_ROOT_ENV}=/path/to/docs\n"
    "\n"
    "  Priority order:\n"
    f"    1. {DOCS_ROOT_ENV} environment variable\n"
    "    2. Project-local .claude/ (current directory)\n"
    "    3. Global ~/.claude/ (home directory)\n"
    "─────────────────────────────────────────────────────────\n"
)


def _has_markdown(path: Path) -> bool:
    return any(path.glob("**/*.md"))


def resolve_docs_root(cwd: Path = None, home: Path = None) -> Path:
    """
    Resolve documentation root.

    Priority:
    1. CONTEXT_DOCS_ROOT environment variable (explicit override)
    2. Project-local .claude/ directory (if it holds .md files)
    3. Global ~/.claude/ directory

    Raises ConfigurationMissing with a remediation hint if none is usable.
    """
    cwd = cwd or Path.cwd()
    home = home or CLAUDE_HOME

    if env_root := os.getenv(DOCS_ROOT_ENV):
        env_path = Path(env_root).expanduser().resolve()
        if env_path.is_dir():
            log(f"Using {DOCS_ROOT_ENV}: {env_path}")
            return env_path
        log(f"{DOCS_ROOT_ENV} set but not found: {env_path}", warn=True)

    project_claude = cwd / ".claude"
    if project_claude.is_dir():
        if _has_markdown(project_claude):
            log(f"Using project-local .claude: {project_claude}")
            return project_claude
        log(f"Project .claude/ exists but has no .md files: {project_claude}", warn=True)

    if home.is_dir():
        if _has_markdown(home):
            log(f"Using global ~/.claude: {home}")
            return home
        log("Global ~/.claude/ exists but has no .md files", warn=True)

    raise ConfigurationMissing(_REMEDIATION)


# ============================================================================
# KEYWORD CONFIG LOADING
# ============================================================================

def keyword_config_paths(cwd: Path = None, home: Path = None) -> list[Path]:
    """Project-local keywords.json first, then global."""
    cwd = cwd or Path.cwd()
    home = home or CLAUDE_HOME
    return [cwd / ".claude" / KEYWORD_CONFIG_NAME, home / KEYWORD_CONFIG_NAME]


def load_keyword_config(paths: list[Path] = None, docs_root: Path = None) -> FragmentConfig:
    """
    Load keywords, co-activation and pinned ids from the first usable
    keywords.json.

    Unparseable JSON is skipped with a warning. A file that parses but has
    the wrong shape raises ConfigurationMissing. With no file at all, keywords
    are auto-extracted from docs_root, or the empty default is used.
    """
    for config_path in paths if paths is not None else keyword_config_paths():
        if not config_path.exists():
            continue
        try:
            data = json.loads(config_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            log(f"Failed to load {config_path}: {e}", warn=True)
            continue
        config = FragmentConfig.from_dict(data, source=config_path)
        log(f"Loaded keywords from {config_path}")
        return config

    if docs_root is not None:
        auto_kw = auto_extract_keywords(docs_root)
        if auto_kw:
            log(f"Auto-extracted keywords from {len(auto_kw)} files (no {KEYWORD_CONFIG_NAME})")
            return FragmentConfig(keywords=auto_kw)

    log(f"No {KEYWORD_CONFIG_NAME} found, routing has no keyword rules.", warn=True)
    return FragmentConfig()


def auto_extract_keywords(docs_root: Path) -> dict[str, list[str]]:
    """
    Build a keyword map from markdown files when no keywords.json exists.

    Uses file and directory names, headings, bold text and backtick terms.
    """
    keywords = {}
    for md_file in sorted(docs_root.rglob("*.md")):
        if md_file.name == "CLAUDE.md":
            continue
        rel = md_file.relative_to(docs_root).as_posix()

        parts = []
        stem = md_file.stem.lower().replace("-", " ").replace("_", " ")
        parts.extend(p for p in stem.split() if len(p) > 2)
        if md_file.parent != docs_root and len(md_file.parent.name) > 2:
            parts.append(md_file.parent.name.lower())

        try:
            content = md_file.read_text(encoding="utf-8", errors="replace")
        except OSError:
            content = ""

        for line in content.split("\n"):
            stripped = line.strip()
            if stripped.startswith("#"):
                heading = stripped.lstrip("#").strip().lower()
                words = heading.replace("-", " ").replace("_", " ").split()
                parts.extend(w for w in words if len(w) > 3 and w not in _STOP_WORDS)
            for match in re.findall(r'\*\*([^*]+)\*\*', stripped):
                words = match.lower().replace("-", " ").replace("_", " ").split()
                parts.extend(w for w in words if len(w) > 3 and w not in _STOP_WORDS)

        backtick = re.findall(r'`([a-zA-Z][a-zA-Z0-9_-]{3,})`', content)
        parts.extend(b.lower() for b in backtick[:20])

        unique = list(dict.fromkeys(parts))
        if unique:
            keywords[rel] = unique
    return keywords
