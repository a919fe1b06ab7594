"""Tests for the mia command-line interface."""

import pytest
from click.testing import CliRunner

from mia.cli import main
from mia.config import get_settings
from mia.session.state import Session


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("MIA_DATA_DIR", str(tmp_path))
    if hasattr(get_settings, "_instance"):
        delattr(get_settings, "_instance")
    yield tmp_path
    if hasattr(get_settings, "_instance"):
        delattr(get_settings, "_instance")


def _seed(data_dir):
    session = Session.from_settings(get_settings())
    session.ensure_dirs()
    session.turns.append("hola", "positivo", "alegría", "¡Hola! Qué gusto.")
    return session


def test_history_empty(data_dir):
    result = CliRunner().invoke(main, ["history"])
    assert result.exit_code == 0
    assert "No conversation history" in result.output


def test_history_lists_turns(data_dir):
    _seed(data_dir)
    result = CliRunner().invoke(main, ["history"])
    assert result.exit_code == 0
    assert "hola" in result.output
    assert "alegría" in result.output


def test_reset_clears_history(data_dir):
    session = _seed(data_dir)
    result = CliRunner().invoke(main, ["reset", "--reason", "cli-test"])
    assert result.exit_code == 0
    assert "Session cleared" in result.output
    assert session.turns.count() == 0
