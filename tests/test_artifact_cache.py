from __future__ import annotations

import json
import logging
import os
from pathlib import Path

import pytest

from fake_toolchain import CompileFailure, build_fake_toolchain
from zkasm_harness.artifact_cache import ensure_artifact, warm_artifact_cache
from zkasm_harness.config import PilConfig


@pytest.fixture
def source_path(tmp_path: Path) -> Path:
    path = tmp_path / "main.pil"
    path.write_text("namespace Main(%N);\n", encoding="utf-8")
    return path


def test_second_call_reuses_cache_without_compiling(tmp_path: Path, source_path: Path):
    toolchain = build_fake_toolchain()
    cache_file = tmp_path / "cache" / "cache-main-pil.json"
    config = PilConfig()

    first = ensure_artifact(cache_file, source_path, config, toolchain)
    second = ensure_artifact(cache_file, source_path, config, toolchain)

    assert toolchain.constraint_compiler.compile_calls == 1
    assert toolchain.field_builder.calls == 1
    assert first == second
    assert second["N"] == 4096
    assert second["namespaces"] == ["Main", "Global"]


def test_cache_file_is_pretty_printed_and_newline_terminated(tmp_path: Path, source_path: Path):
    toolchain = build_fake_toolchain()
    cache_file = tmp_path / "cache.json"

    artifact = ensure_artifact(cache_file, source_path, PilConfig(), toolchain)

    text = cache_file.read_text(encoding="utf-8")
    assert text.endswith("}\n")
    assert text == json.dumps(artifact, indent=1) + "\n"


def test_existing_cache_is_loaded_as_is(tmp_path: Path, source_path: Path):
    toolchain = build_fake_toolchain()
    cache_file = tmp_path / "cache.json"
    cache_file.write_text(json.dumps({"N": 16, "handmade": True}), encoding="utf-8")

    artifact = ensure_artifact(cache_file, source_path, PilConfig(), toolchain)

    assert artifact == {"N": 16, "handmade": True}
    assert toolchain.constraint_compiler.compile_calls == 0


def test_stale_cache_is_reused_with_warning(tmp_path: Path, source_path: Path, caplog: pytest.LogCaptureFixture):
    toolchain = build_fake_toolchain()
    cache_file = tmp_path / "cache.json"
    cache_file.write_text(json.dumps({"N": 16}), encoding="utf-8")
    old = source_path.stat().st_mtime - 100
    os.utime(cache_file, (old, old))

    with caplog.at_level(logging.WARNING):
        artifact = ensure_artifact(cache_file, source_path, PilConfig(), toolchain)

    assert artifact == {"N": 16}
    assert toolchain.constraint_compiler.compile_calls == 0
    assert "artifact_cache.possibly_stale" in caplog.text


def test_compiler_failure_propagates_and_leaves_no_cache(tmp_path: Path, source_path: Path):
    toolchain = build_fake_toolchain()
    toolchain.constraint_compiler.fail = True
    cache_file = tmp_path / "cache.json"

    with pytest.raises(CompileFailure):
        ensure_artifact(cache_file, source_path, PilConfig(), toolchain)

    assert not cache_file.exists()


def test_warm_artifact_cache_builds_polynomials(tmp_path: Path, source_path: Path):
    toolchain = build_fake_toolchain()
    cache_file = tmp_path / "cache.json"
    config = PilConfig(domain_size=64, namespaces=["Main"])

    cold = warm_artifact_cache(cache_file, source_path, config, toolchain)
    warm = warm_artifact_cache(cache_file, source_path, config, toolchain)

    assert cold.built is True
    assert warm.built is False
    assert cold.polynomials == {"Main": {"N": 64}}
    assert warm.polynomials == cold.polynomials
    assert toolchain.constraint_compiler.seen_configs == [config]
    assert toolchain.constraint_compiler.polynomial_calls == 2
