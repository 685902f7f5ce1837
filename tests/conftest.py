"""Pytest configuration and fixtures for focusroute tests."""

import json

import pytest

from focusroute.config import FragmentConfig, RouterConfig
from focusroute.content import ContentResolver
from focusroute.state import AttentionState


@pytest.fixture(autouse=True)
def isolated_files(tmp_path, monkeypatch):
    """Keep every default file location inside tmp_path."""
    home = tmp_path / "home" / ".claude"
    monkeypatch.setattr("focusroute.telemetry_lib.HISTORY_FILE", home / "attention_history.jsonl")
    monkeypatch.setattr("focusroute.history.HISTORY_FILE", home / "attention_history.jsonl")
    monkeypatch.setattr("focusroute.telemetry_lib.INJECTION_LOG_FILE", home / "context_injection.log")
    monkeypatch.setattr("focusroute.telemetry_lib.ROUTER_OVERRIDES_FILE", home / "telemetry" / "router_overrides.json")
    monkeypatch.setattr("focusroute.state.ATTN_STATE_GLOBAL", home / "attn_state.json")
    monkeypatch.setattr("focusroute.config.CLAUDE_HOME", home)
    monkeypatch.delenv("CONTEXT_DOCS_ROOT", raising=False)
    monkeypatch.delenv("CLAUDE_INSTANCE", raising=False)
    return home


@pytest.fixture
def sample_keywords_json():
    """Sample keywords.json content."""
    return {
        "keywords": {
            "modules/api.md": ["api", "endpoint", "route handler"],
            "modules/models.md": ["database", "schema"],
            "docs/readme.md": ["documentation", "install"],
            "systems/hardware.md": ["sensor", "firmware"],
        },
        "co_activation": {
            "modules/api.md": ["modules/models.md"],
        },
        "pinned": ["docs/readme.md"],
    }


@pytest.fixture
def fragments(sample_keywords_json):
    return FragmentConfig.from_dict(sample_keywords_json)


@pytest.fixture
def config():
    return RouterConfig()


@pytest.fixture
def docs_root(tmp_path):
    """A .claude/ docs tree with one file per configured fragment."""
    root = tmp_path / "project" / ".claude"
    (root / "modules").mkdir(parents=True)
    (root / "docs").mkdir()
    (root / "systems").mkdir()

    (root / "modules" / "api.md").write_text("# API\n\nRoutes and handlers.\n" + "endpoint line\n" * 40)
    (root / "modules" / "models.md").write_text("# Models\n\nDatabase schema.\n")
    (root / "docs" / "readme.md").write_text("# Readme\n\nHow to install.\n")
    (root / "systems" / "hardware.md").write_text("# Hardware\n\nSensors.\n")
    return root


@pytest.fixture
def keywords_file(docs_root, sample_keywords_json):
    path = docs_root / "keywords.json"
    path.write_text(json.dumps(sample_keywords_json))
    return path


@pytest.fixture
def resolver(docs_root):
    return ContentResolver(docs_root)


@pytest.fixture
def zero_state(fragments):
    return AttentionState.fresh(fragments.fragment_ids())
