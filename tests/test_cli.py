"""Tests for the command-line interface (no browser needed)."""

import sys
from argparse import Namespace

import pytest

from fakes import json_response
from settlewright.capture import CapturedPair, build_response, capture_request
from settlewright.cli import main, print_capture, resolve_timeout
from settlewright.config import Settings


class TestCli:
    def test_no_command_prints_help(self, monkeypatch, capsys):
        monkeypatch.setattr(sys, "argv", ["settlewright"])
        with pytest.raises(SystemExit) as exc_info:
            main()
        assert exc_info.value.code == 1
        assert "capture" in capsys.readouterr().out

    def test_capture_requires_pattern(self, monkeypatch):
        monkeypatch.setattr(sys, "argv", ["settlewright", "capture", "http://localhost:8888"])
        with pytest.raises(SystemExit) as exc_info:
            main()
        assert exc_info.value.code == 2

    def test_print_capture(self, capsys):
        response = json_response(
            "https://app.test/update-user-info?source=cli",
            {"success": True},
            method="POST",
            request_body={"user_id": 21331},
        )
        pair = CapturedPair(
            request=capture_request(response.request),
            response=build_response(response, {"success": True}),
        )
        print_capture(pair)

        out = capsys.readouterr().out
        assert "POST https://app.test/update-user-info?source=cli" in out
        assert '"source": "cli"' in out
        assert '"user_id": 21331' in out
        assert "-> 200 OK" in out
        assert '"success": true' in out

    def test_explicit_zero_timeout_kept(self):
        settings = Settings(capture_timeout_ms=5000)
        assert resolve_timeout(Namespace(timeout=0), settings) == 0
        assert resolve_timeout(Namespace(timeout=250), settings) == 250
        assert resolve_timeout(Namespace(timeout=None), settings) == 5000
