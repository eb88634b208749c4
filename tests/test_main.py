"""Tests for main.py: launcher argument parsing and environment hand-off."""
import os
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

pytest.importorskip("uvicorn")

from main import build_parser, export_settings  # noqa: E402


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    # Registered via setenv so teardown also undoes export_settings.
    for name in ("APP_SEED_PATH", "APP_DATA_SOURCE", "APP_FIRESTORE_PROJECT",
                 "APP_HOST", "APP_PORT"):
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


class TestParser:
    def test_defaults(self):
        args = build_parser().parse_args([])
        assert args.host == "127.0.0.1"
        assert args.port == 8000
        assert args.seed is None
        assert not args.firestore

    def test_port_from_env(self, monkeypatch):
        monkeypatch.setenv("APP_PORT", "9100")
        assert build_parser().parse_args([]).port == 9100

    def test_seed_is_path(self):
        args = build_parser().parse_args(["--seed", "data/seed.json"])
        assert args.seed == Path("data/seed.json")


class TestExportSettings:
    def test_firestore_flags(self):
        export_settings(build_parser().parse_args(["--firestore", "--project", "herds"]))
        assert os.environ["APP_DATA_SOURCE"] == "firestore"
        assert os.environ["APP_FIRESTORE_PROJECT"] == "herds"
        assert "APP_SEED_PATH" not in os.environ

    def test_seed_path(self):
        export_settings(build_parser().parse_args(["--seed", "seed.json"]))
        assert os.environ["APP_SEED_PATH"] == "seed.json"
