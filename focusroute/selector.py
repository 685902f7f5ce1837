#!/usr/bin/env python3
"""
focusroute.selector — Budgeted Selector

Walks fragments best-score-first (ties by id) and fills the output under
MAX_TOTAL_CHARS:

  HOT  + free HOT slot   full content; if it does not fit, try as WARM
  WARM + free WARM slot  bounded header (HOT with no HOT slot left lands here)
  anything else          COLD, counted only

The budget bounds everything after the banner: each emitted block, label
line included, plus the blank-line separator in front of it. The banner
itself is not charged.
"""

from dataclasses import dataclass, field

from focusroute.config import RouterConfig
from focusroute.content import ContentResolver
from focusroute.errors import ContentNotFound
from focusroute.state import AttentionState
from focusroute.telemetry_lib import log
from focusroute.tiers import Tier

BLOCK_SEPARATOR = "\n\n"


@dataclass
class SelectionStats:
    """
    Counts for one selection pass.

    hot + warm + cold equals the number of fragments in the store.
    dropped and not_found are subsets of cold: fragments that had a
    HOT/WARM score but no block because nothing fit the remaining budget,
    or because their content could not be resolved.
    """
    hot: int = 0
    warm: int = 0
    cold: int = 0
    dropped: int = 0
    not_found: int = 0
    total_chars: int = 0
    hot_ids: list = field(default_factory=list)
    warm_ids: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "hot": self.hot,
            "warm": self.warm,
            "cold": self.cold,
            "dropped": self.dropped,
            "not_found": self.not_found,
            "total_chars": self.total_chars,
            "hot_ids": list(self.hot_ids),
            "warm_ids": list(self.warm_ids),
        }


def rank_fragments(state: AttentionState) -> list[tuple[str, float]]:
    """Score descending, fragment id ascending."""
    return sorted(state.scores.items(), key=lambda item: (-item[1], item[0]))


def format_block(tier: Tier, fragment_id: str, score: float, body: str) -> str:
    return f"─── [{tier}] {fragment_id} (score: {score:.2f}) ───\n{body}"


def _cost(block: str) -> int:
    """Budget charge for a block: its text plus the separator before it."""
    return len(BLOCK_SEPARATOR) + len(block)


def format_banner(turn_count: int, stats: SelectionStats, max_total_chars: int) -> str:
    """Status box (joined with \\n so it stays compact)."""
    turn_label = f"Turn {turn_count}"
    tier_line = f"Hot: {stats.hot}  Warm: {stats.warm}  Cold: {stats.cold}"
    chars_line = f"Chars: {stats.total_chars:,} / {max_total_chars:,}"
    header_w = max(len(turn_label), len(tier_line), len(chars_line)) + 4
    return "\n".join([
        f"┌─ {turn_label} {'─' * (header_w - len(turn_label) - 3)}┐",
        f"│ {tier_line:<{header_w - 2}} │",
        f"│ {chars_line:<{header_w - 2}} │",
        f"└{'─' * header_w}┘",
    ])


def build_context_output(state: AttentionState, resolver: ContentResolver,
                         config: RouterConfig = None) -> tuple[str, SelectionStats]:
    """
    Build tiered context output respecting slot and character limits.

    Returns (output_string, stats).
    """
    config = config or RouterConfig()
    stats = SelectionStats()
    hot_blocks = []
    warm_blocks = []
    remaining = config.max_total_chars

    for fragment_id, score in rank_fragments(state):
        tier = config.tier(score)
        over_budget = False

        try:
            if tier is Tier.HOT and len(hot_blocks) < config.max_hot_files:
                block = format_block(Tier.HOT, fragment_id, score, resolver.full_content(fragment_id))
                if _cost(block) <= remaining:
                    hot_blocks.append(block)
                    stats.hot_ids.append(fragment_id)
                    remaining -= _cost(block)
                    continue
                # Too big for what's left: fall through to a header
                over_budget = True

            if tier is not Tier.COLD and len(warm_blocks) < config.max_warm_files:
                header = resolver.header(fragment_id, config.warm_header_lines)
                block = format_block(Tier.WARM, fragment_id, score, header)
                if _cost(block) <= remaining:
                    warm_blocks.append(block)
                    stats.warm_ids.append(fragment_id)
                    remaining -= _cost(block)
                    continue
                over_budget = True
        except ContentNotFound as e:
            log(f"Content unavailable, treating as COLD: {e}")
            stats.not_found += 1
        else:
            if over_budget:
                stats.dropped += 1

        stats.cold += 1

    stats.hot = len(hot_blocks)
    stats.warm = len(warm_blocks)
    stats.total_chars = config.max_total_chars - remaining

    output_parts = [format_banner(state.turn_count, stats, config.max_total_chars)]
    # HOT before WARM regardless of relative score
    output_parts.extend(hot_blocks)
    output_parts.extend(warm_blocks)
    return BLOCK_SEPARATOR.join(output_parts), stats
