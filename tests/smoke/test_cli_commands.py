"""
Smoke Tests for CLI Commands.

These tests verify that CLI commands run without errors and produce output.
They don't validate correctness deeply - just that commands work end to end
against a throwaway SQLite database with no content generator configured.

Usage:
    pytest tests/smoke/test_cli_commands.py -v
    pytest tests/smoke/test_cli_commands.py -v -m smoke
"""

import json
import os
import subprocess
import sys
from pathlib import Path

import pytest

# Mark all tests in this module as smoke tests
pytestmark = pytest.mark.smoke

# Project root
PROJECT_ROOT = Path(__file__).parent.parent.parent

QUIZ = {
    "subject": "Physics",
    "questions": [
        {
            "id": "q1",
            "type": "mcq",
            "question": "Unit of force?",
            "options": ["newton", "joule", "watt"],
            "correctAnswer": "newton",
            "topic": "Dynamics",
        },
        {
            "id": "q2",
            "type": "mcq",
            "question": "Unit of energy?",
            "options": ["newton", "joule", "watt"],
            "correctAnswer": "joule",
            "topic": "Energy",
        },
        {
            "id": "q3",
            "type": "short_answer",
            "question": "Velocity is displacement over what?",
            "correctAnswer": "time",
            "topic": "Kinematics",
        },
    ],
}


@pytest.fixture
def cli_env(tmp_path):
    """Environment pointing the CLI at a temp database, offline, with no dwell."""
    env = dict(os.environ)
    env.update(
        {
            "DATABASE_URL": f"sqlite:///{tmp_path / 'profile.db'}",
            "GENERATOR_API_KEY": "",
            "NOTES_DWELL_SECONDS": "0",
            "FLASHCARD_DWELL_SECONDS": "0",
            "LOG_LEVEL": "WARNING",
            "LOG_FILE": "",
            "COLUMNS": "200",
            "PYTHONPATH": str(PROJECT_ROOT),
        }
    )
    return env


@pytest.fixture
def quiz_file(tmp_path):
    path = tmp_path / "physics.json"
    path.write_text(json.dumps(QUIZ), encoding="utf-8")
    return path


def run_cli_command(command: str, env: dict, stdin: str = "", timeout: int = 30) -> tuple[int, str, str]:
    """
    Run a CLI command and return exit code, stdout, stderr.

    Args:
        command: The command to run (after 'python -m mastery_loop')
        env: Process environment
        stdin: Text fed to interactive prompts
        timeout: Maximum time to wait

    Returns:
        Tuple of (exit_code, stdout, stderr)
    """
    full_command = f'"{sys.executable}" -m mastery_loop {command}'

    result = subprocess.run(
        full_command,
        shell=True,
        cwd=PROJECT_ROOT,
        env=env,
        input=stdin,
        capture_output=True,
        text=True,
        timeout=timeout,
    )

    return result.returncode, result.stdout, result.stderr


class TestCLIHelp:
    """Test that help commands work."""

    def test_main_help(self, cli_env):
        """Main help should list every command."""
        code, stdout, stderr = run_cli_command("--help", cli_env)

        assert code == 0, f"Help failed: {stderr}"
        for command in ("run", "profile", "weak", "compose", "init-db"):
            assert command in stdout

    def test_run_help(self, cli_env):
        code, stdout, stderr = run_cli_command("run --help", cli_env)

        assert code == 0, f"Help failed: {stderr}"
        assert "--user" in stdout


class TestProfileCommands:
    """Profile inspection on an empty database."""

    def test_init_db(self, cli_env):
        code, stdout, stderr = run_cli_command("init-db", cli_env)

        assert code == 0, f"init-db failed: {stderr}"
        assert "Database initialized" in stdout

    def test_empty_profile(self, cli_env):
        code, stdout, stderr = run_cli_command("profile --user nobody", cli_env)

        assert code == 0, f"profile failed: {stderr}"
        assert "No topics recorded" in stdout

    def test_no_weak_topics(self, cli_env):
        code, stdout, stderr = run_cli_command("weak --user nobody", cli_env)

        assert code == 0, f"weak failed: {stderr}"
        assert "No weak topics" in stdout


class TestRunLoop:
    """Interactive loop driven through stdin."""

    def test_pass_first_attempt(self, cli_env, quiz_file):
        # q1 and q2 right, q3 wrong: 67% passes
        code, stdout, stderr = run_cli_command(
            f'run "{quiz_file}" --user alice', cli_env, stdin="A\nB\nspeed\n"
        )

        assert code == 0, f"run failed: {stderr}"
        assert "Mastered after 1 attempt(s)" in stdout

        code, stdout, _ = run_cli_command("weak --user alice", cli_env)
        assert code == 0
        assert "Kinematics" in stdout
        assert "Energy" not in stdout

        code, stdout, _ = run_cli_command("profile --user alice", cli_env)
        assert code == 0
        for topic in ("Dynamics", "Energy", "Kinematics"):
            assert topic in stdout

    def test_fail_then_pass(self, cli_env, quiz_file):
        code, stdout, stderr = run_cli_command(
            f'run "{quiz_file}" --user bob',
            cli_env,
            stdin="C\nC\nspeed\nA\nB\ntime\n",
        )

        assert code == 0, f"run failed: {stderr}"
        assert "Remediation notes" in stdout
        assert "Flashcards" in stdout
        assert "Mastered after 2 attempt(s)" in stdout

    def test_invalid_question_file(self, cli_env, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("{not json", encoding="utf-8")

        code, stdout, _ = run_cli_command(f'run "{bad}" --user alice', cli_env)

        assert code == 1
        assert "Cannot read" in stdout


class TestCompose:
    """Quiz planning."""

    def test_compose_targets_weak_topics(self, cli_env, quiz_file):
        run_cli_command(f'run "{quiz_file}" --user carol', cli_env, stdin="A\nB\nspeed\n")

        code, stdout, stderr = run_cli_command(
            "compose --user carol --subject Physics --count 5", cli_env
        )

        assert code == 0, f"compose failed: {stderr}"
        # Kinematics is the only weak topic; 40% of 5 slots are tagged with it
        slot_rows = [line for line in stdout.splitlines() if "q1" in line or "q2" in line or "q3" in line]
        assert sum("Kinematics" in line for line in slot_rows) == 2
        assert stdout.count("Kinematics") == 2

    def test_compose_output_requires_generator(self, cli_env, tmp_path):
        code, stdout, _ = run_cli_command(
            f'compose --user carol --subject Physics --output "{tmp_path / "quiz.json"}"', cli_env
        )

        assert code == 1
        assert "GENERATOR_API_KEY" in stdout
