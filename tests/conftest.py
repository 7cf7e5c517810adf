from __future__ import annotations

import json
import shutil
import sys
from collections.abc import Iterator
from pathlib import Path
from typing import Any
from uuid import uuid4

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from maturityindex.config import Settings  # noqa: E402
from maturityindex.model_loader import parse_model  # noqa: E402
from maturityindex.models import Model  # noqa: E402

LINEAR_SCORES = {"Pre-crawl": 0, "Crawl": 5, "Walk": 10, "Run": 15, "Fly": 20}


def _tmp_path_fixture() -> Iterator[Path]:
    """Provide per-test temporary directory path inside the workspace.

    Overrides pytest's builtin ``tmp_path`` so temporary files live under
    ``.tmp_pytest/`` in the project directory.
    """
    base = ROOT / ".tmp_pytest"
    base.mkdir(parents=True, exist_ok=True)
    path = base / str(uuid4())
    path.mkdir(parents=True, exist_ok=False)
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)
        try:
            next(base.iterdir())
        except StopIteration:
            base.rmdir()
        except FileNotFoundError:
            pass


tmp_path = pytest.fixture(name="tmp_path")(_tmp_path_fixture)


def question(text: str, lens: str | None = "Process", scores: dict[str, Any] | None = None) -> dict[str, Any]:
    """Raw question dict with linear 0/5/10/15/20 weights by default."""
    raw: dict[str, Any] = {
        "text": text,
        "options": {grade: f"{text} at {grade}" for grade in LINEAR_SCORES},
        "scores": dict(LINEAR_SCORES) if scores is None else scores,
    }
    if lens is not None:
        raw["lens"] = lens
    return raw


def raw_model() -> dict[str, Any]:
    return {
        "version": "2.0",
        "capabilities": [
            {
                "key": "allocation",
                "name": "Allocation",
                "report_group": "Inform",
                "questions": [question("Q0", "Process"), question("Q1", "Metrics")],
            },
            {
                "key": "forecasting",
                "name": "Forecasting",
                "report_group": "Operate",
                "questions": [
                    question("F0", "Knowledge"),
                    question("F1", "Knowledge"),
                    question("F2", None),
                    question("F3", "Automation"),
                ],
            },
            {"key": "empty", "name": "Empty", "report_group": "Inform", "questions": []},
        ],
    }


@pytest.fixture
def model() -> Model:
    return parse_model(raw_model())


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(data_dir=tmp_path / "data", model_path=None, log_level="DEBUG")


@pytest.fixture
def model_file(tmp_path: Path) -> Path:
    path = tmp_path / "model.json"
    path.write_text(json.dumps(raw_model()), encoding="utf-8")
    return path
