"""
config.py

Load the pipeline configuration from config.yaml (or the older shell-style
config.txt) into an immutable PipelineConfig.

Both formats end up as the same flat UPPER_SNAKE keys, e.g.:

    working_dir: /data/run1          ->  WORKING_DIR
    ice:
      image: synthego/ice:latest     ->  ICE_IMAGE
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

import yaml

from .errors import ConfigurationError

REQUIRED_KEYS = ["WORKING_DIR", "OUTPUT_DIR", "ANALYSIS_TYPE"]

DEFAULT_IMAGE = "synthego/ice:latest"
DEFAULT_REPORTS_REPO_DIR = "CRISPR_Analysis"
DEFAULT_REPORTS_BRANCH = "dev"
DEFAULT_SINGLE_TEMPLATE = "test_quarto.qmd"
DEFAULT_BATCH_TEMPLATE = "batch_quarto.qmd"


class AnalysisMode(str, Enum):
    SINGLE = "single"
    BATCH = "batch"

    @classmethod
    def parse(cls, value):
        """Return the mode for ``value`` or raise ConfigurationError."""
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        for mode in cls:
            if mode.value == text:
                return mode
        raise ConfigurationError(
            f"Invalid analysis type '{value}' (expected 'single' or 'batch')"
        )


@dataclass(frozen=True)
class PipelineConfig:
    working_dir: Path
    output_dir: Path
    mode: str
    input_ab1: Optional[Path] = None
    control_ab1: Optional[Path] = None
    guide_sequence: str = ""
    batch_input_file: Optional[Path] = None
    ice_image: str = DEFAULT_IMAGE
    ice_pull: bool = True
    ice_timeout: Optional[float] = None
    reports_repo_dir: Optional[Path] = None
    reports_repo_url: Optional[str] = None
    reports_branch: str = DEFAULT_REPORTS_BRANCH
    reports_sync: bool = False
    single_template: str = DEFAULT_SINGLE_TEMPLATE
    batch_template: str = DEFAULT_BATCH_TEMPLATE
    max_failure_fraction: float = 0.0
    log_file: Optional[str] = None
    source: Optional[Path] = None

    @property
    def outputs_dir(self):
        return self.output_dir / "Outputs"

    @property
    def templates_dir(self):
        return self.reports_repo_dir or (self.working_dir / DEFAULT_REPORTS_REPO_DIR)


def flatten_dict(d, prefix=''):
    """Flatten nested sections into UPPER_SNAKE keys."""
    flattened = {}
    for key, value in d.items():
        new_key = f'{prefix}_{key.upper()}' if prefix else key.upper()
        if isinstance(value, dict):
            flattened.update(flatten_dict(value, new_key))
        else:
            flattened[new_key] = value
    return flattened


def read_shell_config(path):
    """Parse a ``KEY=VALUE`` config.txt as sourced by the old bash pipeline."""
    values = {}
    with open(path, 'r') as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if line.startswith("export "):
                line = line[len("export "):].strip()
            if "=" not in line:
                raise ConfigurationError(f"{path}:{line_num}: expected KEY=VALUE, got '{line}'")
            key, value = line.split("=", 1)
            value = value.strip()
            if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
                value = value[1:-1]
            values[key.strip().upper()] = value
    return values


def read_config_file(path):
    """Return the flat key/value mapping stored in ``path``."""
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"Config file '{path}' not found")

    if path.suffix.lower() in (".yaml", ".yml"):
        try:
            with open(path, 'r') as f:
                config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Could not parse {path}: {e}") from e
        if not isinstance(config, dict):
            raise ConfigurationError(f"{path} must contain a mapping at the top level")
        return flatten_dict(config)

    return read_shell_config(path)


def _as_bool(value, default):
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _as_float(key, value, default):
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{key} must be a number, got '{value}'")


def _resolve(base, value):
    if value is None or str(value).strip() == "":
        return None
    path = Path(str(value)).expanduser()
    if not path.is_absolute():
        path = base / path
    return path


def config_from_mapping(values, base_dir=None, source=None):
    """Build a PipelineConfig from flat UPPER_SNAKE ``values``."""
    missing = [key for key in REQUIRED_KEYS if not str(values.get(key) or "").strip()]
    if missing:
        raise ConfigurationError(
            "Missing required configuration keys: " + ", ".join(missing)
        )

    base_dir = Path(base_dir) if base_dir else Path.cwd()
    working_dir = _resolve(base_dir, values["WORKING_DIR"]).resolve()

    def path_of(key):
        return _resolve(working_dir, values.get(key))

    max_fraction = _as_float(
        "PARTIAL_FAILURE_MAX_FRACTION", values.get("PARTIAL_FAILURE_MAX_FRACTION"), 0.0
    )
    if not 0.0 <= max_fraction <= 1.0:
        raise ConfigurationError("PARTIAL_FAILURE_MAX_FRACTION must be between 0 and 1")

    return PipelineConfig(
        working_dir=working_dir,
        output_dir=path_of("OUTPUT_DIR"),
        mode=str(values["ANALYSIS_TYPE"]).strip(),
        input_ab1=path_of("INPUT_AB1"),
        control_ab1=path_of("CONTROL_AB1"),
        guide_sequence=str(values.get("GUIDE_RNA_SEQUENCE") or "").strip(),
        batch_input_file=path_of("BATCH_INPUT_FILE"),
        ice_image=str(values.get("ICE_IMAGE") or DEFAULT_IMAGE),
        ice_pull=_as_bool(values.get("ICE_PULL"), True),
        ice_timeout=_as_float("ICE_TIMEOUT", values.get("ICE_TIMEOUT"), None),
        reports_repo_dir=path_of("REPORTS_REPO_DIR"),
        reports_repo_url=values.get("REPORTS_REPO_URL") or None,
        reports_branch=str(values.get("REPORTS_BRANCH") or DEFAULT_REPORTS_BRANCH),
        reports_sync=_as_bool(values.get("REPORTS_SYNC"), False),
        single_template=str(values.get("REPORTS_SINGLE_TEMPLATE") or DEFAULT_SINGLE_TEMPLATE),
        batch_template=str(values.get("REPORTS_BATCH_TEMPLATE") or DEFAULT_BATCH_TEMPLATE),
        max_failure_fraction=max_fraction,
        log_file=values.get("LOG_FILE") or None,
        source=Path(source) if source else None,
    )


def load_config(path="config.yaml", overrides=None):
    """Load ``path`` and apply flat-key ``overrides`` (e.g. from the CLI)."""
    path = Path(path)
    values = read_config_file(path)
    if overrides:
        values.update({k.upper(): v for k, v in overrides.items() if v is not None})
    return config_from_mapping(values, base_dir=path.resolve().parent, source=path)
