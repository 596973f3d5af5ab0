"""Tests for the environment preflight checks."""

import pytest

from tagme import preflight


@pytest.fixture(autouse=True)
def no_skip(monkeypatch):
    monkeypatch.delenv("TAGME_SKIP_PREFLIGHT", raising=False)


def test_skip_env(monkeypatch):
    monkeypatch.setenv("TAGME_SKIP_PREFLIGHT", "1")
    monkeypatch.setattr(preflight, "MIN_SQLITE_VERSION", (99, 0, 0))
    result = preflight.run_preflight()
    assert result.ok
    assert "skipped" in result.message


def test_install_time_checks_pass():
    result = preflight.run_preflight(require_display=False, check_deps=False)
    assert result == preflight.PreflightResult(True, "Preflight OK")


def test_old_sqlite_fails(monkeypatch):
    monkeypatch.setattr(preflight, "MIN_SQLITE_VERSION", (99, 0, 0))
    result = preflight.run_preflight(require_display=False, check_deps=False)
    assert not result.ok
    assert "SQLite 99.0.0" in result.message


def test_display_required(monkeypatch):
    monkeypatch.delenv("DISPLAY", raising=False)
    monkeypatch.delenv("WAYLAND_DISPLAY", raising=False)
    result = preflight.run_preflight(require_display=True, check_deps=False)
    assert not result.ok
    assert "graphical session" in result.message


def test_wayland_display_is_enough(monkeypatch):
    monkeypatch.delenv("DISPLAY", raising=False)
    monkeypatch.setenv("WAYLAND_DISPLAY", "wayland-0")
    assert preflight.run_preflight(require_display=True, check_deps=False).ok


def test_missing_deps_reported(monkeypatch):
    monkeypatch.setattr(preflight, "_check_python_deps", lambda: "Missing GTK")
    result = preflight.run_preflight(require_display=False, check_deps=True)
    assert result == preflight.PreflightResult(False, "Missing GTK")


def test_or_die_exits(monkeypatch, capsys):
    monkeypatch.setattr(preflight, "MIN_SQLITE_VERSION", (99, 0, 0))
    with pytest.raises(SystemExit) as excinfo:
        preflight.run_preflight_or_die(require_display=False, check_deps=False)
    assert excinfo.value.code == 1
    assert "preflight check failed" in capsys.readouterr().err
