"""
router.py

Sort the flat batch output of ICE into per-sample folders.

Batch ICE writes everything into Outputs/Combined_Reports/. Each file is
named <sample>.<something>; files sharing the part before the first dot
belong to the same sample and are moved to Outputs/<sample>/Results/.
Aggregate files (ice.results.*) stay in Combined_Reports.

A bad file name or a failed move is recorded and the remaining files are
still processed.
"""

import logging
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from .errors import DirectoryCreationFailed, InvalidSampleName
from .layout import COMBINED_REPORTS, OUTPUTS, PLOTS, RESULTS, sample_dirs

logger = logging.getLogger("sanger_pipeline.router")

SAMPLE_DELIMITER = "."
EXCLUDED_PREFIXES = ("ice.results",)
# Names already used by the Outputs/ layout itself
RESERVED_NAMES = (COMBINED_REPORTS, PLOTS, RESULTS)


def sample_identity(file_name):
    """Return the sample name of a result file (text before the first dot).

    >>> sample_identity("101_A1.report.txt")
    '101_A1'
    """
    if SAMPLE_DELIMITER not in file_name:
        raise InvalidSampleName(file_name)
    token = file_name.split(SAMPLE_DELIMITER, 1)[0]
    if not token or os.sep in token or token in RESERVED_NAMES:
        raise InvalidSampleName(file_name)
    return token


def is_excluded(file_name):
    """True for ICE aggregate files that must stay in Combined_Reports."""
    return file_name.startswith(EXCLUDED_PREFIXES)


@dataclass
class RoutedFile:
    name: str
    sample_id: str
    destination: Path


@dataclass
class RoutingIssue:
    name: str
    reason: str


@dataclass
class RoutingReport:
    routed: List[RoutedFile] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    anomalies: List[str] = field(default_factory=list)
    errors: List[RoutingIssue] = field(default_factory=list)
    samples: List[str] = field(default_factory=list)

    @property
    def attempted(self):
        return len(self.routed) + len(self.errors)

    @property
    def ok(self):
        return not self.errors

    def failure_fraction(self):
        if not self.attempted:
            return 0.0
        return len(self.errors) / self.attempted

    def exceeds(self, max_fraction):
        return bool(self.errors) and self.failure_fraction() > max_fraction

    def summary(self):
        return (f"{len(self.routed)} routed into {len(self.samples)} sample folder(s), "
                f"{len(self.skipped)} skipped, {len(self.anomalies)} anomalies, "
                f"{len(self.errors)} error(s)")


def _inside(path, root):
    try:
        Path(path).resolve().relative_to(Path(root).resolve())
    except ValueError:
        return False
    return True


def route_results(combined_dir, output_dir):
    """Move every per-sample file out of ``combined_dir``. Returns a RoutingReport."""
    # Path() drops trailing slashes, so joins below never produce "//".
    combined_dir = Path(combined_dir)
    outputs = Path(output_dir) / OUTPUTS
    report = RoutingReport()

    for entry in sorted(combined_dir.iterdir()):
        file_name = entry.name

        if entry.is_dir():
            logger.warning(f"⚠️  Unexpected directory in {combined_dir}: {file_name} (left in place)")
            report.anomalies.append(file_name)
            continue

        if is_excluded(file_name):
            logger.info(f"Skipping {file_name}")
            report.skipped.append(file_name)
            continue

        try:
            sample_id = sample_identity(file_name)
        except InvalidSampleName as e:
            logger.error(f"❌ {e}")
            report.errors.append(RoutingIssue(file_name, str(e)))
            continue

        results_dir = outputs / sample_id / RESULTS
        if not _inside(results_dir, outputs):
            reason = f"Destination {results_dir} is outside {outputs}"
            logger.error(f"❌ {reason}")
            report.errors.append(RoutingIssue(file_name, reason))
            continue

        if sample_id not in report.samples:
            try:
                sample_dirs(outputs, sample_id)
            except DirectoryCreationFailed as e:
                logger.error(f"❌ Error creating subdirectory for {sample_id}: {e}")
                report.errors.append(RoutingIssue(file_name, str(e)))
                continue
            report.samples.append(sample_id)
            logger.debug(f"Created sample folder {outputs / sample_id}")

        destination = results_dir / file_name
        try:
            shutil.move(str(entry), str(destination))
        except (OSError, shutil.Error) as e:
            logger.error(f"❌ Error moving {entry} to {results_dir}: {e}")
            report.errors.append(RoutingIssue(file_name, str(e)))
            continue

        logger.debug(f"Moved {file_name} -> {destination}")
        report.routed.append(RoutedFile(file_name, sample_id, destination))

    logger.info(f"Routing: {report.summary()}")
    return report
