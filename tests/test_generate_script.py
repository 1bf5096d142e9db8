"""
Tests for the generate CLI argument parsing.
"""

import runpy
from pathlib import Path
from unittest.mock import patch

import pytest

from app.config import settings

SCRIPT = Path(__file__).parent.parent / "scripts" / "generate.py"


@pytest.fixture
def parse_args():
    return runpy.run_path(str(SCRIPT))["parse_args"]


class TestParseArgs:
    """Tests for CLI defaults."""

    def test_interval_defaults_to_configured_poll_interval(self, parse_args) -> None:
        args = parse_args(["a red fox"])

        assert args.interval == settings.status_poll_interval_seconds

    def test_interval_follows_settings(self) -> None:
        with patch.object(settings, "status_poll_interval_seconds", 7.5):
            args = runpy.run_path(str(SCRIPT))["parse_args"](["a red fox"])

        assert args.interval == 7.5

    def test_explicit_interval_wins(self, parse_args) -> None:
        args = parse_args(["a red fox", "--interval", "0.5", "--type", "video"])

        assert args.interval == 0.5
        assert args.type == "video"
