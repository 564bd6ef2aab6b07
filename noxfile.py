"""Nox sessions for Vista Player development tasks."""

from __future__ import annotations

from pathlib import Path

import sys
import nox


ROOT = Path(__file__).parent
PACKAGE = "src/vista_player"
CI_ENV = "VISTA_PLAYER_CI"

nox.options.error_on_missing_interpreters = False


def _has_mypy_config() -> bool:
    pyproject = ROOT / "pyproject.toml"
    if pyproject.is_file():
        return "[tool.mypy]" in pyproject.read_text(encoding="utf-8")
    return (ROOT / "mypy.ini").is_file()


@nox.session
def lint(session: nox.Session) -> None:
    """Run ruff linting and formatting checks."""
    session.install("ruff")
    session.run("ruff", "check", ".")
    session.run("ruff", "format", "--check", ".")


@nox.session(name="lint-fix")
def lint_fix(session: nox.Session) -> None:
    """Apply ruff fixes and formatting."""
    session.install("ruff")
    session.run("ruff", "check", "--fix", ".")
    session.run("ruff", "format", ".")


@nox.session
def tests(session: nox.Session) -> None:
    """Run pytest without the tests that need a real libvlc."""
    session.install("-e", ".[dev]")
    session.run("pytest", "-q", env={CI_ENV: "1"})


@nox.session(name="tests-vlc")
def tests_vlc(session: nox.Session) -> None:
    """Run only the tests that talk to an installed libvlc."""
    session.install("-e", ".[dev]")
    session.run("pytest", "-q", "-m", "vlc")


@nox.session
def typecheck(session: nox.Session) -> None:
    """Run mypy when a config is present."""
    if not _has_mypy_config():
        session.skip("mypy config not found")
    session.install("-e", ".[dev]")
    session.run("mypy", PACKAGE)


@nox.session
def build(session: nox.Session) -> None:
    """Build sdist and wheel artifacts."""
    session.install("build")
    session.run("python", "-m", "build")


@nox.session
def coverage(session: nox.Session) -> None:
    """Run coverage reporting."""
    session.install("-e", ".[dev]")
    session.run(
        "coverage", "run", "--source=vista_player", "-m", "pytest", env={CI_ENV: "1"}
    )
    session.run("coverage", "report", "--fail-under=80", "-m")


# --------------------------------------------------
#                  LOCAL DEV TESTING
# --------------------------------------------------


@nox.session(name="lint-dev", venv_backend="none")
def lint_dev(session: nox.Session) -> None:
    """Fast local lint using active venv."""
    session.run("python", "-m", "ruff", "check", ".", external=True)
    session.run("python", "-m", "ruff", "format", "--check", ".", external=True)


@nox.session(name="tests-dev", venv_backend="none")
def tests_dev(session: nox.Session) -> None:
    """Fast local pytest using active venv."""
    session.run("python", "-m", "pytest", "-q", external=True)


@nox.session(name="typecheck-dev", venv_backend="none")
def typecheck_dev(session: nox.Session) -> None:
    """Fast local mypy using active venv."""
    if not _has_mypy_config():
        session.skip("mypy config not found")
    session.run("python", "-m", "mypy", PACKAGE, external=True)


@nox.session(name="local-dev", venv_backend="none")
def local_dev(session: nox.Session) -> None:
    """Run the fast local dev checks (lint, typecheck, tests)."""
    session.run(
        sys.executable,
        "-m",
        "nox",
        "-s",
        "lint-dev",
        "typecheck-dev",
        "tests-dev",
        external=True,
    )
