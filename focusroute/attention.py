#!/usr/bin/env python3
"""
focusroute.attention — Decay/Activation Engine

One call per turn. Steps run in a fixed order and each sees the effects
of the ones before it:

  1. Decay          every score *= decay rate of its category
  2. Activation     keyword hit in the prompt -> score = keyword_boost
  3. Co-activation  direct successors of activated fragments get
                    +coactivation_boost (one hop, capped at 1.0)
  4. Pinned floor   pinned fragments never fall below the WARM floor
  5. Turn counter   turn_count += 1

Decay runs first so a same-turn activation is never decayed.
"""

import re

import networkx as nx

from focusroute.config import FragmentConfig, RouterConfig
from focusroute.state import AttentionState, clamp_score
from focusroute.telemetry_lib import log


# ============================================================================
# CO-ACTIVATION GRAPH
# ============================================================================

def build_coactivation_graph(co_activation: dict[str, list[str]]) -> nx.DiGraph:
    """Directed graph: an edge A -> B means activating A boosts B."""
    graph = nx.DiGraph()
    for source, targets in co_activation.items():
        graph.add_node(source)
        for target in targets:
            if target != source:
                graph.add_edge(source, target)
    return graph


# ============================================================================
# KEYWORD MATCHING
# ============================================================================

def compile_keywords(keywords: dict[str, list[str]], short_keyword_length: int = 0) -> dict[str, re.Pattern]:
    """
    One case-insensitive alternation regex per fragment.

    Keywords no longer than short_keyword_length are wrapped in word
    boundaries; everything else is a plain substring match.
    """
    compiled = {}
    for fragment_id, kw_list in keywords.items():
        patterns = []
        for kw in kw_list:
            if not kw:
                continue
            escaped = re.escape(kw)
            if len(kw) <= short_keyword_length:
                patterns.append(r'\b' + escaped + r'\b')
            else:
                patterns.append(escaped)
        if patterns:
            compiled[fragment_id] = re.compile('|'.join(patterns), re.IGNORECASE)
    return compiled


class AttentionEngine:
    """Applies one turn of attention dynamics to an AttentionState."""

    def __init__(self, fragments: FragmentConfig, config: RouterConfig = None):
        self.fragments = fragments
        self.config = config or RouterConfig()
        self.graph = build_coactivation_graph(fragments.co_activation)
        self._compiled = compile_keywords(fragments.keywords, self.config.short_keyword_length)

    def match_keywords(self, prompt: str) -> set[str]:
        """Fragment ids whose keywords occur in the prompt."""
        return {fid for fid, pattern in self._compiled.items() if pattern.search(prompt)}

    def update(self, state: AttentionState, prompt: str) -> tuple[AttentionState, set[str]]:
        """
        Run decay, activation, co-activation and pinned floor.

        Returns the new state and the set of directly activated fragments.
        The input state is left untouched.
        """
        config = self.config
        scores = dict(state.scores)

        # Phase 1: decay
        for fid in scores:
            scores[fid] = clamp_score(scores[fid] * config.decay_rate(fid))

        # Phase 2: keyword activation (absolute set)
        activated = set()
        for fid in self.match_keywords(prompt or ""):
            if fid in scores:
                scores[fid] = config.keyword_boost
                activated.add(fid)
            else:
                log(f"Keyword match for unknown fragment {fid}, skipped")

        # Phase 3: one-hop co-activation, after all activations are resolved
        for source in sorted(activated):
            if source not in self.graph:
                continue
            for target in self.graph.successors(source):
                if target not in scores:
                    log(f"Co-activation target {target} (from {source}) not in store, skipped")
                    continue
                scores[target] = min(1.0, scores[target] + config.coactivation_boost)

        # Phase 4: pinned floor
        for pinned in self.fragments.pinned:
            if pinned not in scores:
                log(f"Pinned fragment {pinned} not in store, skipped")
                continue
            scores[pinned] = max(scores[pinned], config.pinned_floor)

        scores = {fid: clamp_score(s) for fid, s in scores.items()}
        return state.with_scores(scores, turn_count=state.turn_count + 1), activated


def update_attention(state: AttentionState, prompt: str, fragments: FragmentConfig,
                     config: RouterConfig = None) -> tuple[AttentionState, set[str]]:
    """Functional wrapper around AttentionEngine.update."""
    return AttentionEngine(fragments, config).update(state, prompt)
