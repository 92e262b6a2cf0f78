from __future__ import annotations

import logging
import subprocess
from pathlib import Path

import pytest

from sanger_pipeline.config import config_from_mapping


class FakeRunner:
    """Stands in for subprocess.run; records every command it is given.

    ``handlers`` maps a command prefix (tuple of argv items) to a callable
    ``(cmd, kwargs) -> returncode``. Unmatched commands succeed.
    """

    def __init__(self):
        self.calls = []
        self.handlers = {}

    def on(self, *prefix, handler=None, returncode=None):
        if handler is None:
            handler = lambda cmd, kwargs: returncode  # noqa: E731
        self.handlers[tuple(prefix)] = handler

    def commands(self, *prefix):
        return [c for c in self.calls if tuple(c[: len(prefix)]) == prefix]

    def __call__(self, cmd, **kwargs):
        cmd = [str(c) for c in cmd]
        self.calls.append(cmd)
        returncode = 0
        for prefix in sorted(self.handlers, key=len, reverse=True):
            if tuple(cmd[: len(prefix)]) == prefix:
                returncode = self.handlers[prefix](cmd, kwargs) or 0
                break
        if kwargs.get("check") and returncode != 0:
            raise subprocess.CalledProcessError(returncode, cmd, output="", stderr="boom")
        return subprocess.CompletedProcess(cmd, returncode, stdout="", stderr="")


@pytest.fixture(autouse=True)
def reset_pipeline_logger():
    yield
    logger = logging.getLogger("sanger_pipeline")
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


@pytest.fixture
def fake_run(monkeypatch) -> FakeRunner:
    runner = FakeRunner()
    monkeypatch.setattr(subprocess, "run", runner)
    return runner


def volume_host(cmd, container_path):
    """Host side of the ``-v host:container`` option for ``container_path``."""
    for i, item in enumerate(cmd):
        if item == "-v" and cmd[i + 1].endswith(":" + container_path):
            return Path(cmd[i + 1][: -len(container_path) - 1])
    raise AssertionError(f"no volume for {container_path} in {cmd}")


def quarto_writes_html(cmd, kwargs):
    template = cmd[2]
    (Path(kwargs["cwd"]) / (Path(template).stem + ".html")).write_text("<html></html>")
    return 0


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    data = tmp_path / "data"
    traces = data / "traces"
    traces.mkdir(parents=True)
    (data / "edited.ab1").write_bytes(b"ABIF")
    (data / "control.ab1").write_bytes(b"ABIF")
    (data / "batch.xlsx").write_bytes(b"PK")
    (traces / "101_edited.ab1").write_bytes(b"ABIF")
    (tmp_path / "CRISPR_Analysis").mkdir()
    return tmp_path


def make_config(workspace: Path, mode: str = "single", **extra):
    values = {
        "WORKING_DIR": str(workspace),
        "OUTPUT_DIR": "results",
        "ANALYSIS_TYPE": mode,
        "INPUT_AB1": "data/edited.ab1" if mode == "single" else "data/traces",
        "CONTROL_AB1": "data/control.ab1",
        "GUIDE_RNA_SEQUENCE": "AACCAGTTGCAGGCGCCCCA",
        "BATCH_INPUT_FILE": "data/batch.xlsx",
    }
    values.update(extra)
    return config_from_mapping(values, base_dir=workspace)


@pytest.fixture
def config_for(workspace: Path):
    def factory(mode: str = "single", **extra):
        return make_config(workspace, mode, **extra)

    return factory
