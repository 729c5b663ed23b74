from __future__ import annotations

import logging
from pathlib import Path

import pytest

from fake_toolchain import build_fake_toolchain
from zkasm_harness.config import SETTINGS_FILE_ENV, HarnessSettings, load_settings
from zkasm_harness.toolchain import Toolchain

SETTINGS_YAML = """\
paths:
  pil_source: ./pil/main.pil
  cache_file: ./cache/cache-main-pil.json
  counters_report: ./artifacts/inst_counters.json
  logs_root: ./logs
"""


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv(SETTINGS_FILE_ENV, raising=False)
    root_logger = logging.getLogger()
    saved_handlers = list(root_logger.handlers)
    saved_level = root_logger.level
    yield
    for handler in list(root_logger.handlers):
        if handler not in saved_handlers:
            root_logger.removeHandler(handler)
            handler.close()
    root_logger.setLevel(saved_level)


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    (tmp_path / "configs").mkdir()
    (tmp_path / "configs" / "settings.yaml").write_text(SETTINGS_YAML, encoding="utf-8")
    (tmp_path / "pil").mkdir()
    (tmp_path / "pil" / "main.pil").write_text("namespace Main(%N);\n", encoding="utf-8")
    return tmp_path


@pytest.fixture
def settings_file(project_root: Path) -> Path:
    return project_root / "configs" / "settings.yaml"


@pytest.fixture
def settings(settings_file: Path) -> HarnessSettings:
    return load_settings(settings_file)


@pytest.fixture
def toolchain() -> Toolchain:
    return build_fake_toolchain()


@pytest.fixture
def test_dir(project_root: Path) -> Path:
    directory = project_root / "suite"
    directory.mkdir()
    (directory / "b_arith.zkasm").write_text("ADD\nADD\nsub\n", encoding="utf-8")
    (directory / "a_broken.zkasm").write_text("MOV\nINVALID\n", encoding="utf-8")
    (directory / "ignore_slow.zkasm").write_text("ADD\n", encoding="utf-8")
    (directory / "notes.txt").write_text("not a test\n", encoding="utf-8")
    return directory
