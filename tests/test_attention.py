"""Decay/activation engine tests."""

import random

import pytest

from focusroute.attention import AttentionEngine, build_coactivation_graph, update_attention
from focusroute.config import FragmentConfig, RouterConfig
from focusroute.state import AttentionState
from focusroute.tiers import Tier


class TestScenarios:

    def test_keyword_activation_and_coactivation(self):
        """Empty store, keyword for doc/a.md, co-activation a -> b."""
        fragments = FragmentConfig(
            keywords={"doc/a.md": ["alpha"]},
            co_activation={"doc/a.md": ["doc/b.md"]},
        )
        state = AttentionState.fresh(fragments.fragment_ids())

        new_state, activated = update_attention(state, "Tell me about ALPHA please", fragments)

        assert new_state.scores["doc/a.md"] == 1.0
        assert activated == {"doc/a.md"}
        assert new_state.scores["doc/b.md"] == pytest.approx(0.35)

    def test_three_turns_of_decay(self):
        fragments = FragmentConfig(keywords={"notes/x.md": ["xylophone"]})
        state = AttentionState(scores={"notes/x.md": 0.9})
        engine = AttentionEngine(fragments)

        for _ in range(3):
            state, activated = engine.update(state, "nothing relevant")
            assert not activated

        assert state.scores["notes/x.md"] == pytest.approx(0.3087)
        assert engine.config.tier(state.scores["notes/x.md"]) is Tier.WARM
        assert state.turn_count == 3


class TestDecay:

    @pytest.mark.parametrize("fragment_id,rate", [
        ("systems/cpu.md", 0.85),
        ("modules/io.md", 0.70),
        ("integrations/s3.md", 0.80),
        ("docs/guide.md", 0.75),
        ("misc/other.md", 0.70),
    ])
    def test_decay_is_geometric(self, fragment_id, rate):
        engine = AttentionEngine(FragmentConfig())
        state = AttentionState(scores={fragment_id: 0.6})
        for _ in range(5):
            state, _ = engine.update(state, "")
        assert state.scores[fragment_id] == pytest.approx(0.6 * rate ** 5)

    def test_activation_not_decayed_same_turn(self, fragments, zero_state):
        state, _ = update_attention(zero_state, "the api is slow", fragments)
        assert state.scores["modules/api.md"] == 1.0

    def test_input_state_not_mutated(self, fragments, zero_state):
        before = dict(zero_state.scores)
        new_state, _ = update_attention(zero_state, "api", fragments)
        assert zero_state.scores == before
        assert zero_state.turn_count == 0
        assert new_state is not zero_state


class TestActivation:

    def test_case_insensitive_substring(self, fragments, zero_state):
        _, activated = update_attention(zero_state, "Check the Route Handler code", fragments)
        assert "modules/api.md" in activated

    def test_substring_inside_word_matches_by_default(self, fragments, zero_state):
        _, activated = update_attention(zero_state, "rapid response", fragments)
        assert "modules/api.md" in activated

    def test_short_keywords_need_word_boundaries_when_enabled(self, fragments, zero_state):
        config = RouterConfig(short_keyword_length=4)
        _, activated = update_attention(zero_state, "rapid response", fragments, config)
        assert "modules/api.md" not in activated
        _, activated = update_attention(zero_state, "the api broke", fragments, config)
        assert "modules/api.md" in activated

    def test_keyword_for_unknown_fragment_is_ignored(self):
        fragments = FragmentConfig(keywords={"ghost.md": ["ghost"]})
        state = AttentionState(scores={"real.md": 0.5})
        new_state, activated = update_attention(state, "ghost", fragments)
        assert activated == set()
        assert "ghost.md" not in new_state.scores


class TestCoActivation:

    def test_one_hop_only(self):
        fragments = FragmentConfig(
            keywords={"a.md": ["alpha"]},
            co_activation={"a.md": ["b.md"], "b.md": ["c.md"]},
        )
        state = AttentionState.fresh(fragments.fragment_ids())
        new_state, _ = update_attention(state, "alpha", fragments)
        assert new_state.scores["b.md"] == pytest.approx(0.35)
        assert new_state.scores["c.md"] == 0.0

    def test_boost_is_capped(self):
        fragments = FragmentConfig(
            keywords={"a.md": ["alpha"], "b.md": ["beta"]},
            co_activation={"a.md": ["c.md"], "b.md": ["c.md"]},
        )
        state = AttentionState(scores={"a.md": 0.0, "b.md": 0.0, "c.md": 0.5 / 0.7})
        new_state, _ = update_attention(state, "alpha beta", fragments)
        assert new_state.scores["c.md"] == 1.0

    def test_missing_target_is_skipped(self, capsys):
        fragments = FragmentConfig(
            keywords={"a.md": ["alpha"]},
            co_activation={"a.md": ["missing.md"]},
        )
        state = AttentionState(scores={"a.md": 0.0})
        new_state, _ = update_attention(state, "alpha", fragments)
        assert "missing.md" not in new_state.scores
        assert "missing.md" in capsys.readouterr().err

    def test_graph_is_directed(self):
        graph = build_coactivation_graph({"a.md": ["b.md"]})
        assert list(graph.successors("a.md")) == ["b.md"]
        assert list(graph.successors("b.md")) == []

    def test_directly_activated_target_stays_at_one(self):
        fragments = FragmentConfig(
            keywords={"a.md": ["alpha"], "b.md": ["beta"]},
            co_activation={"a.md": ["b.md"]},
        )
        state = AttentionState.fresh(fragments.fragment_ids())
        new_state, activated = update_attention(state, "alpha beta", fragments)
        assert activated == {"a.md", "b.md"}
        assert new_state.scores["b.md"] == 1.0


class TestPinned:

    def test_pinned_never_cold(self, fragments, zero_state, config):
        engine = AttentionEngine(fragments, config)
        state = zero_state
        for _ in range(20):
            state, _ = engine.update(state, "unrelated chatter")
            assert config.tier(state.scores["docs/readme.md"]) is not Tier.COLD
        assert state.scores["docs/readme.md"] == pytest.approx(0.35)

    def test_pinned_and_activated_ends_at_one(self, fragments, zero_state):
        state, _ = update_attention(zero_state, "install steps", fragments)
        assert state.scores["docs/readme.md"] == 1.0

    def test_unknown_pinned_is_ignored(self):
        fragments = FragmentConfig(pinned=("nowhere.md",))
        state = AttentionState(scores={"a.md": 0.5})
        new_state, _ = update_attention(state, "", fragments)
        assert set(new_state.scores) == {"a.md"}


class TestInvariants:

    def test_scores_stay_in_unit_interval(self, fragments):
        rng = random.Random(7)
        words = ["api", "schema", "sensor", "install", "noise", "endpoint", ""]
        engine = AttentionEngine(fragments, RouterConfig(coactivation_boost=1.0))
        state = AttentionState(scores={fid: rng.random() for fid in fragments.fragment_ids()})
        for _ in range(200):
            prompt = " ".join(rng.choice(words) for _ in range(3))
            state, _ = engine.update(state, prompt)
            assert all(0.0 <= s <= 1.0 for s in state.scores.values())

    def test_out_of_range_input_is_clamped(self):
        state = AttentionState(scores={"a.md": 5.0, "b.md": -2.0})
        new_state, _ = update_attention(state, "", FragmentConfig())
        assert new_state.scores == {"a.md": 1.0, "b.md": 0.0}
