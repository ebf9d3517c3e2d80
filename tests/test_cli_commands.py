#!/usr/bin/env python3
# SPDX-License-Identifier: MIT
"""
Test suite for the CLI Command pattern implementation.

Hook commands are driven in-process with a fake stdin; the `claude` binary is
replaced by a small shell script configured through claudeHandoff.claudeCommand.
"""

import io
import json
import sys
from abc import ABC
from argparse import Namespace

import pytest

from claude_handoff.models import HandoffArtifact, ResetKind, Trigger
from claude_handoff.state_store import StateStore


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def run_hook(monkeypatch, capsys):
    """Run a hook command with a JSON payload; returns (exit_code, stdout)."""

    def _run(name: str, payload) -> tuple:
        from claude_handoff.commands import dispatch_command

        raw = payload if isinstance(payload, str) else json.dumps(payload)
        monkeypatch.setattr(sys, "stdin", io.StringIO(raw))
        code = dispatch_command(Namespace(command=name))
        return code, capsys.readouterr().out

    return _run


posix_only = pytest.mark.skipif(sys.platform == "win32", reason="fake claude is a shell script")


# =============================================================================
# Command Pattern Structure Tests
# =============================================================================


class TestCommandPatternStructure:
    def test_command_is_abstract_base_class(self):
        from claude_handoff.commands import Command
        assert issubclass(Command, ABC)
        with pytest.raises(TypeError, match="abstract"):
            Command()

    @pytest.mark.parametrize("name", [
        "pre-compact", "prompt-submit", "session-start", "status", "discard", "parse", "config",
    ])
    def test_registered(self, name):
        from claude_handoff.commands import COMMAND_REGISTRY, Command
        assert issubclass(COMMAND_REGISTRY[name], Command)

    def test_unknown_command(self, capsys):
        from claude_handoff.commands import dispatch_command

        assert dispatch_command(Namespace(command="nope")) == 1
        assert "Unknown command: nope" in capsys.readouterr().err


# =============================================================================
# Hook Commands
# =============================================================================


class TestPreCompactCommand:
    def test_no_marker(self, run_hook, project):
        code, out = run_hook("pre-compact", {
            "session_id": "abc", "trigger": "manual", "custom_instructions": "", "cwd": str(project),
        })

        assert code == 0
        assert json.loads(out) == {"continue": True, "suppressOutput": True}

    @pytest.mark.parametrize("raw", ["", "garbage", "[]"])
    def test_bad_payload_fails_open(self, run_hook, raw):
        code, out = run_hook("pre-compact", raw)

        assert code == 0
        assert json.loads(out)["continue"] is True

    @posix_only
    def test_handoff_saved(self, run_hook, project, fake_claude, write_settings, session_id, handoff_text):
        write_settings(claudeCommand=str(fake_claude))

        code, out = run_hook("pre-compact", {
            "session_id": session_id,
            "trigger": "manual",
            "custom_instructions": "handoff: implement OAuth",
            "cwd": str(project),
        })

        assert code == 0
        assert json.loads(out) == {"continue": True, "suppressOutput": True}
        artifact = StateStore(project).read()
        assert artifact.content == handoff_text
        assert artifact.goal == "implement OAuth"
        args = (fake_claude.parent / "args.txt").read_text().splitlines()
        assert args[:6] == ["--resume", session_id, "--fork-session", "--model", "haiku", "--print"]
        assert (fake_claude.parent / "env.txt").read_text() == "1"

    def test_missing_claude_binary(self, run_hook, project, write_settings, tmp_path):
        write_settings(claudeCommand=str(tmp_path / "no-such-claude"))

        code, out = run_hook("pre-compact", {
            "session_id": "abc", "trigger": "auto", "custom_instructions": "handoff: x", "cwd": str(project),
        })

        assert code == 0
        assert json.loads(out)["continue"] is True
        assert not StateStore(project).exists()


class TestPromptSubmitCommand:
    def test_ordinary_prompt_is_silent(self, run_hook, project):
        code, out = run_hook("prompt-submit", {"session_id": "abc", "prompt": "hello", "cwd": str(project)})

        assert code == 0
        assert out == ""

    def test_plain_clear(self, run_hook, project):
        code, out = run_hook("prompt-submit", {"session_id": "abc", "prompt": "/clear", "cwd": str(project)})

        assert code == 0
        assert json.loads(out) == {"continue": True, "suppressOutput": False}

    @posix_only
    def test_clear_handoff(self, run_hook, project, fake_claude, write_settings, session_id):
        write_settings(claudeCommand=str(fake_claude))

        code, out = run_hook("prompt-submit", {
            "session_id": session_id, "prompt": "/clear handoff: continue OAuth", "cwd": str(project),
        })

        assert code == 0
        assert json.loads(out)["systemMessage"].endswith("/clear will start with: continue OAuth")
        assert StateStore(project).read().reset_kind is ResetKind.CLEAR


class TestSessionStartCommand:
    def test_injects(self, run_hook, project, session_id, new_session_id, handoff_text):
        StateStore(project).write(HandoffArtifact(session_id, "goal", handoff_text, Trigger.MANUAL))

        code, out = run_hook("session-start", {
            "session_id": new_session_id, "source": "compact", "cwd": str(project),
        })

        assert code == 0
        output = json.loads(out)["hookSpecificOutput"]
        assert output["hookEventName"] == "SessionStart"
        assert handoff_text in output["additionalContext"]
        assert not StateStore(project).exists()

    def test_nothing_pending_prints_nothing(self, run_hook, project):
        code, out = run_hook("session-start", {"session_id": "x", "source": "compact", "cwd": str(project)})

        assert code == 0
        assert out == ""

    def test_in_progress_prints_nothing(self, run_hook, project, session_id, monkeypatch):
        StateStore(project).write(HandoffArtifact(session_id, "goal", "content"))
        monkeypatch.setenv("HANDOFF_IN_PROGRESS", "1")

        code, out = run_hook("session-start", {"session_id": "x", "source": "compact", "cwd": str(project)})

        assert code == 0
        assert out == ""
        assert StateStore(project).exists()


# =============================================================================
# Fail-open under a hostile environment
# =============================================================================


HOOK_PAYLOADS = {
    "pre-compact": {"session_id": "abc", "trigger": "manual", "custom_instructions": "handoff: x"},
    "prompt-submit": {"session_id": "abc", "prompt": "/clear handoff: x"},
    "session-start": {"session_id": "abc", "source": "compact"},
}


class TestHookFailOpen:
    @pytest.mark.parametrize("name", sorted(HOOK_PAYLOADS))
    def test_non_utf8_settings(self, run_hook, name, project, settings_file, tmp_path, monkeypatch):
        settings_file.parent.mkdir(parents=True, exist_ok=True)
        settings_file.write_bytes(b'{"claudeHandoff": {"model": "\xff\xfe"}}')
        # Settings fall back to defaults; keep the default `claude` off PATH
        monkeypatch.setenv("PATH", str(tmp_path / "empty-bin"))
        payload = dict(HOOK_PAYLOADS[name], cwd=str(project))

        code, _ = run_hook(name, payload)

        assert code == 0

    @pytest.mark.parametrize("name", sorted(HOOK_PAYLOADS))
    def test_broken_logger_does_not_fail_hook(self, run_hook, name, project, monkeypatch):
        import claude_handoff.commands as commands

        def broken_logger():
            raise RuntimeError("logger unavailable")

        def broken_handle(self, *args, **kwargs):
            raise RuntimeError("handler failed")

        monkeypatch.setattr(commands, "get_logger", broken_logger)
        monkeypatch.setattr(commands.PreResetHandler, "handle", broken_handle)
        monkeypatch.setattr(commands.PostResetHandler, "handle", broken_handle)
        payload = dict(HOOK_PAYLOADS[name], cwd=str(project))

        code, out = run_hook(name, payload)

        assert code == 0
        if name != "session-start":
            assert json.loads(out)["continue"] is True

    @posix_only
    def test_ascii_stdout_on_clear(self, project, fake_claude, write_settings, session_id, monkeypatch):
        from claude_handoff.commands import dispatch_command
        write_settings(claudeCommand=str(fake_claude))
        raw = io.BytesIO()
        stdout = io.TextIOWrapper(raw, encoding="ascii")
        monkeypatch.setattr(sys, "stdin", io.StringIO(json.dumps({
            "session_id": session_id, "prompt": "/clear handoff: continue OAuth", "cwd": str(project),
        })))
        monkeypatch.setattr(sys, "stdout", stdout)

        code = dispatch_command(Namespace(command="prompt-submit"))

        stdout.flush()
        assert code == 0
        assert json.loads(raw.getvalue().decode("ascii"))["systemMessage"].startswith("✓")
        assert StateStore(project).exists()


# =============================================================================
# Maintenance Commands
# =============================================================================


class TestStatusCommand:
    def test_nothing_pending(self, project, capsys):
        from claude_handoff.commands import StatusCommand

        assert StatusCommand().execute(Namespace(cwd=str(project), output_json=False)) == 0
        assert capsys.readouterr().out.startswith("No pending handoff")

    def test_pending_json(self, project, capsys, session_id):
        from claude_handoff.commands import StatusCommand
        StateStore(project).write(HandoffArtifact(session_id, "ship it", "content"))

        StatusCommand().execute(Namespace(cwd=str(project), output_json=True))

        data = json.loads(capsys.readouterr().out)
        assert data["pending"] is True
        assert data["malformed"] is False
        assert data["artifact"]["goal"] == "ship it"

    def test_malformed(self, project, capsys):
        from claude_handoff.commands import StatusCommand
        store = StateStore(project)
        store.state_dir.mkdir(parents=True)
        store.path.write_text("{")

        StatusCommand().execute(Namespace(cwd=str(project), output_json=False))

        assert "unreadable" in capsys.readouterr().out


class TestDiscardCommand:
    def test_discard(self, project, capsys, session_id):
        from claude_handoff.commands import DiscardCommand
        StateStore(project).write(HandoffArtifact(session_id, "", "content"))

        assert DiscardCommand().execute(Namespace(cwd=str(project))) == 0
        assert "Discarded" in capsys.readouterr().out
        assert not StateStore(project).exists()

    def test_nothing_to_discard(self, project, capsys):
        from claude_handoff.commands import DiscardCommand

        assert DiscardCommand().execute(Namespace(cwd=str(project))) == 0
        assert capsys.readouterr().out.strip() == "No pending handoff"


class TestParseCommand:
    def test_json(self, capsys):
        from claude_handoff.commands import ParseCommand

        ParseCommand().execute(Namespace(text="handoff-file: docs", output_json=True))

        assert json.loads(capsys.readouterr().out) == {
            "triggers": True, "persistToFile": True, "goal": "docs",
        }

    def test_text(self, capsys):
        from claude_handoff.commands import ParseCommand

        ParseCommand().execute(Namespace(text="hello", output_json=False))

        assert capsys.readouterr().out.strip() == "No handoff requested"


class TestConfigCommand:
    def test_string(self, write_settings, capsys):
        from claude_handoff.commands import ConfigCommand
        write_settings(model="sonnet")

        ConfigCommand().execute(Namespace(key="claudeHandoff.model", default="", type="string"))

        assert capsys.readouterr().out.strip() == "sonnet"

    def test_bool_default(self, capsys):
        from claude_handoff.commands import ConfigCommand

        ConfigCommand().execute(Namespace(key="claudeHandoff.enabled", default="true", type="bool"))

        assert capsys.readouterr().out.strip() == "true"

    def test_bad_int_default(self, capsys):
        from claude_handoff.commands import ConfigCommand

        code = ConfigCommand().execute(Namespace(key="claudeHandoff.x", default="many", type="int"))

        assert code == 1
        assert "integer" in capsys.readouterr().err


# =============================================================================
# Argument parsing
# =============================================================================


class TestMain:
    def test_version(self, capsys):
        from claude_handoff._version import __version__
        from claude_handoff.cli import main

        with pytest.raises(SystemExit) as exc:
            main(["--version"])

        assert exc.value.code == 0
        assert __version__ in capsys.readouterr().out

    def test_no_command_prints_help(self, capsys):
        from claude_handoff.cli import main

        with pytest.raises(SystemExit) as exc:
            main([])

        assert exc.value.code == 1
        assert "usage" in capsys.readouterr().out.lower()

    def test_parse_through_main(self, capsys):
        from claude_handoff.cli import main

        with pytest.raises(SystemExit) as exc:
            main(["parse", "handoff: ship it", "--json"])

        assert exc.value.code == 0
        assert json.loads(capsys.readouterr().out)["goal"] == "ship it"

    def test_status_cwd_option(self, project, capsys):
        from claude_handoff.cli import main

        with pytest.raises(SystemExit):
            main(["status", "--cwd", str(project), "--json"])

        data = json.loads(capsys.readouterr().out)
        assert data["path"] == str(project / ".git" / "handoff-pending" / "handoff-context.json")
