from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path

LAUNCHER = Path(__file__).resolve().parent.parent / "run_pipeline.py"


def test_launcher_reads_config_from_callers_directory(tmp_path: Path) -> None:
    (tmp_path / "config.yaml").write_text(
        "working_dir: .\n"
        "output_dir: results\n"
        "analysis_type: nope\n"
    )
    env = dict(os.environ, PYTHONIOENCODING="utf-8")

    result = subprocess.run(
        [sys.executable, str(LAUNCHER), "config.yaml", "--log-file", "x.log"],
        cwd=tmp_path,
        env=env,
        capture_output=True,
        text=True,
        encoding="utf-8",
    )

    assert result.returncode == 2, result.stdout + result.stderr
    assert "Invalid analysis type 'nope'" in result.stdout
    assert (tmp_path / "x.log").is_file()
    assert not (LAUNCHER.parent / "x.log").exists()
