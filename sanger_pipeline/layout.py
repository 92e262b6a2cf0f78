"""
layout.py

Output directory tree under <output_dir>/Outputs/.

    single:  Outputs/Plots/, Outputs/Results/
    batch:   Outputs/Combined_Reports/  (+ Outputs/<sample>/{Results,Plots}/
             created later by the router)
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .config import AnalysisMode
from .errors import DirectoryCreationFailed

logger = logging.getLogger("sanger_pipeline.layout")

OUTPUTS = "Outputs"
PLOTS = "Plots"
RESULTS = "Results"
COMBINED_REPORTS = "Combined_Reports"


@dataclass(frozen=True)
class OutputTree:
    mode: AnalysisMode
    outputs: Path
    results: Optional[Path] = None
    plots: Optional[Path] = None
    combined_reports: Optional[Path] = None


def make_dir(path):
    """mkdir -p that fails if any component already exists as a file."""
    path = Path(path)
    try:
        path.mkdir(parents=True, exist_ok=True)
    except FileExistsError as e:
        raise DirectoryCreationFailed(path, "a file with that name is in the way") from e
    except OSError as e:
        raise DirectoryCreationFailed(path, e.strerror or str(e)) from e
    return path


def sample_dirs(outputs, sample_id):
    """Create Outputs/<sample_id>/Results and Plots; return the Results path."""
    results = make_dir(Path(outputs) / sample_id / RESULTS)
    make_dir(Path(outputs) / sample_id / PLOTS)
    return results


def ensure_output_tree(mode, output_dir):
    """Create the directory skeleton for ``mode``. Safe to call repeatedly."""
    mode = AnalysisMode.parse(mode)
    outputs = make_dir(Path(output_dir) / OUTPUTS)

    if mode is AnalysisMode.BATCH:
        combined = make_dir(outputs / COMBINED_REPORTS)
        logger.info(f"📂 Batch output tree ready: {combined}")
        return OutputTree(mode=mode, outputs=outputs, combined_reports=combined)

    plots = make_dir(outputs / PLOTS)
    results = make_dir(outputs / RESULTS)
    logger.info(f"📂 Single output tree ready: {outputs}")
    return OutputTree(mode=mode, outputs=outputs, results=results, plots=plots)
