"""
manifest.py

Run manifest for traceability: records run metadata, the config file hash
and summary statistics next to the outputs, plus per-file CSV tables of
what the router moved and which reports were rendered.
"""

import datetime
import getpass
import hashlib
import json
import logging
import platform
import socket

import pandas as pd

from . import __version__
from .config import AnalysisMode
from .errors import ConfigurationError

logger = logging.getLogger("sanger_pipeline.manifest")

MANIFEST_NAME = "run_manifest.json"
ROUTING_TABLE = "routing_summary.csv"
REPORT_TABLE = "report_summary.csv"


def file_hash(path):
    """Generate MD5 hash of a file (first 7 characters for brevity)."""
    with open(path, "rb") as f:
        return hashlib.md5(f.read()).hexdigest()[:7]


def routing_table(report):
    rows = [
        {"file": r.name, "sample_id": r.sample_id, "status": "routed", "detail": str(r.destination)}
        for r in report.routed
    ]
    rows += [{"file": n, "sample_id": "", "status": "skipped", "detail": "excluded"} for n in report.skipped]
    rows += [{"file": n, "sample_id": "", "status": "anomaly", "detail": "directory"} for n in report.anomalies]
    rows += [{"file": e.name, "sample_id": "", "status": "error", "detail": e.reason} for e in report.errors]
    return pd.DataFrame(rows, columns=["file", "sample_id", "status", "detail"])


def report_table(report):
    rows = [{"sample_id": r.sample_id, "status": "rendered", "detail": str(r.path)} for r in report.rendered]
    rows += [{"sample_id": f.sample_id, "status": "failed", "detail": f.reason} for f in report.failures]
    return pd.DataFrame(rows, columns=["sample_id", "status", "detail"])


def _mode_name(mode):
    try:
        return AnalysisMode.parse(mode).value
    except ConfigurationError:
        return str(mode)


def write_manifest(config, outcome, outputs_dir):
    """
    Write run_manifest.json (and the CSV tables) into ``outputs_dir``.

    Args:
        config: PipelineConfig of the run
        outcome: RunOutcome returned by the controller
        outputs_dir: the Outputs/ directory of the run

    Returns the manifest path.
    """
    manifest = {
        "run_id": datetime.datetime.now(datetime.timezone.utc).isoformat().replace('+00:00', 'Z'),
        "sanger_pipeline_version": __version__,
        "analysis_type": _mode_name(config.mode),
        "engine_image": config.ice_image,
        "config_file": str(config.source) if config.source else None,
        "config_hash": file_hash(config.source) if config.source and config.source.is_file() else None,
        "status": outcome.status.value,
        "message": outcome.message,
        "python_version": platform.python_version(),
        "user": getpass.getuser(),
        "hostname": socket.gethostname(),
    }

    if outcome.routing is not None:
        manifest.update({
            "files_routed": len(outcome.routing.routed),
            "files_skipped": len(outcome.routing.skipped),
            "routing_errors": len(outcome.routing.errors),
            "samples_found": len(outcome.routing.samples),
        })
        routing_table(outcome.routing).to_csv(outputs_dir / ROUTING_TABLE, index=False)

    if outcome.rendering is not None:
        manifest.update({
            "reports_rendered": len(outcome.rendering.rendered),
            "reports_failed": len(outcome.rendering.failures),
        })
        report_table(outcome.rendering).to_csv(outputs_dir / REPORT_TABLE, index=False)

    output = outputs_dir / MANIFEST_NAME
    with open(output, "w") as out:
        json.dump(manifest, out, indent=2)

    logger.info(f"📋 Manifest written to: {output}")
    logger.debug(f"   Run ID: {manifest['run_id']}")
    logger.debug(f"   Config hash: {manifest['config_hash']}")
    return output


def read_manifest(manifest_path):
    """Read and return manifest data from a JSON file."""
    with open(manifest_path, "r") as f:
        return json.load(f)
