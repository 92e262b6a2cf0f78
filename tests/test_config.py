from __future__ import annotations

from pathlib import Path

import pytest

from sanger_pipeline.config import AnalysisMode, flatten_dict, load_config
from sanger_pipeline.errors import ConfigurationError


def test_yaml_sections_are_flattened() -> None:
    assert flatten_dict({"ice": {"image": "x", "pull": False}, "output_dir": "o"}) == {
        "ICE_IMAGE": "x",
        "ICE_PULL": False,
        "OUTPUT_DIR": "o",
    }


def test_load_yaml_resolves_paths(tmp_path: Path) -> None:
    cfg = tmp_path / "config.yaml"
    cfg.write_text(
        "working_dir: run\n"
        "output_dir: results/\n"
        "analysis_type: Batch\n"
        "input_ab1: traces\n"
        "batch_input_file: /abs/batch.xlsx\n"
        "ice:\n  image: synthego/ice:v2\n  timeout: 30\n"
        "partial_failure:\n  max_fraction: 0.25\n"
    )

    config = load_config(cfg)

    run_dir = (tmp_path / "run").resolve()
    assert config.working_dir == run_dir
    assert config.output_dir == run_dir / "results"
    assert config.outputs_dir == run_dir / "results" / "Outputs"
    assert config.input_ab1 == run_dir / "traces"
    assert config.batch_input_file == Path("/abs/batch.xlsx")
    assert AnalysisMode.parse(config.mode) is AnalysisMode.BATCH
    assert config.ice_image == "synthego/ice:v2"
    assert config.ice_timeout == 30.0
    assert config.ice_pull is True
    assert config.max_failure_fraction == 0.25
    assert config.templates_dir == run_dir / "CRISPR_Analysis"
    assert config.source == cfg


def test_load_legacy_config_txt(tmp_path: Path) -> None:
    cfg = tmp_path / "config.txt"
    cfg.write_text(
        "# old bash config\n"
        "WORKING_DIR=/srv/crispr\n"
        'INPUT_AB1="/srv/crispr/data/edited.ab1"\n'
        "export CONTROL_AB1='/srv/crispr/data/control.ab1'\n"
        "GUIDE_RNA_SEQUENCE=AACCAGTTGCAGGCGCCCCA\n"
        "OUTPUT_DIR=/srv/crispr/out/\n"
        "\n"
        "ANALYSIS_TYPE=single\n"
    )

    config = load_config(cfg)

    assert config.working_dir == Path("/srv/crispr").resolve()
    assert config.input_ab1 == Path("/srv/crispr/data/edited.ab1")
    assert config.control_ab1 == Path("/srv/crispr/data/control.ab1")
    assert config.guide_sequence == "AACCAGTTGCAGGCGCCCCA"
    assert config.output_dir == Path("/srv/crispr/out")
    assert config.mode == "single"
    assert config.batch_input_file is None


def test_overrides_replace_file_values(tmp_path: Path) -> None:
    cfg = tmp_path / "config.txt"
    cfg.write_text("WORKING_DIR=.\nOUTPUT_DIR=out\nANALYSIS_TYPE=single\n")
    config = load_config(cfg, {"ANALYSIS_TYPE": "batch", "ICE_PULL": False, "LOG_FILE": None})
    assert config.mode == "batch"
    assert config.ice_pull is False


def test_missing_keys_are_listed(tmp_path: Path) -> None:
    cfg = tmp_path / "config.yaml"
    cfg.write_text("working_dir: .\n")
    with pytest.raises(ConfigurationError) as ei:
        load_config(cfg)
    assert "OUTPUT_DIR" in str(ei.value)
    assert "ANALYSIS_TYPE" in str(ei.value)


@pytest.mark.parametrize("content", ["- a\n- b\n", "key: [unclosed\n"])
def test_unusable_yaml_is_rejected(tmp_path: Path, content: str) -> None:
    cfg = tmp_path / "config.yaml"
    cfg.write_text(content)
    with pytest.raises(ConfigurationError):
        load_config(cfg)


def test_bad_line_in_config_txt(tmp_path: Path) -> None:
    cfg = tmp_path / "config.txt"
    cfg.write_text("WORKING_DIR=.\nthis is not an assignment\n")
    with pytest.raises(ConfigurationError):
        load_config(cfg)


def test_fraction_out_of_range(tmp_path: Path) -> None:
    cfg = tmp_path / "config.txt"
    cfg.write_text("WORKING_DIR=.\nOUTPUT_DIR=o\nANALYSIS_TYPE=single\nPARTIAL_FAILURE_MAX_FRACTION=2\n")
    with pytest.raises(ConfigurationError):
        load_config(cfg)


def test_mode_parsing() -> None:
    assert AnalysisMode.parse(" SINGLE ") is AnalysisMode.SINGLE
    assert AnalysisMode.parse(AnalysisMode.BATCH) is AnalysisMode.BATCH
    with pytest.raises(ConfigurationError):
        AnalysisMode.parse("")
