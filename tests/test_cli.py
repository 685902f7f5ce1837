"""CLI tests."""

import json

import pytest

from focusroute import cli


class TestCLI:

    def test_commands_exist(self):
        for cmd in ["cmd_route", "cmd_status", "cmd_history", "cmd_reset", "cmd_version"]:
            assert hasattr(cli, cmd), f"Missing command: {cmd}"

    def test_version(self, capsys):
        from focusroute import __version__
        cli.main(["version"])
        assert __version__ in capsys.readouterr().out

    def test_no_command_prints_help(self, capsys):
        with pytest.raises(SystemExit) as exc:
            cli.main([])
        assert exc.value.code == 0
        assert "focusroute" in capsys.readouterr().out

    def test_history_stats(self, isolated_files, capsys):
        history_file = isolated_files / "attention_history.jsonl"
        history_file.parent.mkdir(parents=True)
        history_file.write_text(json.dumps({
            "turn": 1, "timestamp": "2026-01-01T10:00:00", "instance_id": "default",
            "hot": ["a.md"], "warm": [], "activated": ["a.md"],
            "transitions": {"to_hot": ["a.md"], "to_warm": [], "to_cold": []},
            "total_chars": 50,
        }) + "\n")

        cli.main(["history", "--stats"])

        assert "Attention statistics: 1 turns" in capsys.readouterr().out

    def test_reset(self, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        state_file = tmp_path / ".claude" / "attn_state.json"
        state_file.parent.mkdir()
        state_file.write_text(json.dumps({"scores": {"a.md": 0.9}, "turn_count": 4}))

        cli.main(["reset"])

        data = json.loads(state_file.read_text())
        assert data["scores"] == {"a.md": 0.0}
        assert data["turn_count"] == 0
        assert "Reset 1 scores" in capsys.readouterr().out

    def test_status(self, docs_root, keywords_file, monkeypatch, capsys):
        monkeypatch.chdir(docs_root.parent)
        # Keep the tokenizer out of the test
        monkeypatch.setattr("focusroute.telemetry_lib.estimate_tokens", lambda text: len(text) // 4)
        (docs_root / "attn_state.json").write_text(json.dumps({
            "scores": {"modules/api.md": 1.0, "modules/models.md": 0.5},
            "turn_count": 3,
        }))

        cli.main(["status"])

        out = capsys.readouterr().out
        assert f"Docs root: {docs_root.resolve()}" in out
        assert "Fragments: 4, Pinned: 1" in out
        assert "(turn 3, phase 0)" in out
        assert "  HOT  1.00  modules/api.md" in out
        assert "  WARM 0.50  modules/models.md" in out
        assert "Next injection: 1 hot, 1 warm, 2 cold" in out
