"""
reports.py

Render the Quarto analysis reports from the CRISPR_Analysis templates.

    single:  quarto render test_quarto.qmd --to html
             -> Outputs/analysis_report.html
    batch:   quarto render batch_quarto.qmd --to html --execute-param sample_name=<id>
             -> Outputs/<id>/<id>_analysis_report.html   (one per sample folder)
"""

import logging
import os
import re
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from .commands import run_command
from .config import AnalysisMode
from .errors import ReportingFailed

logger = logging.getLogger("sanger_pipeline.reports")

SINGLE_REPORT_NAME = "analysis_report.html"
SAMPLE_DIR_PATTERN = re.compile(r"^[0-9]")


def is_sample_dir(name):
    """Sample folders are the Outputs/ subfolders whose name starts with a digit."""
    # TODO: letter-led sample ids are silently ignored here; switch to the
    # router's list of samples once batch manifests carry explicit ids.
    return bool(SAMPLE_DIR_PATTERN.match(name))


def discover_sample_dirs(outputs):
    found = []
    for entry in sorted(Path(outputs).iterdir()):
        if not entry.is_dir():
            continue
        if is_sample_dir(entry.name):
            found.append(entry)
        else:
            logger.debug(f"Not a sample folder, skipping: {entry.name}")
    return found


@dataclass
class RenderedReport:
    sample_id: str
    path: Path


@dataclass
class RenderFailure:
    sample_id: str
    reason: str


@dataclass
class RenderReport:
    rendered: List[RenderedReport] = field(default_factory=list)
    failures: List[RenderFailure] = field(default_factory=list)

    @property
    def attempted(self):
        return len(self.rendered) + len(self.failures)

    @property
    def ok(self):
        return not self.failures

    def failure_fraction(self):
        if not self.attempted:
            return 0.0
        return len(self.failures) / self.attempted

    def exceeds(self, max_fraction):
        return bool(self.failures) and self.failure_fraction() > max_fraction

    def summary(self):
        return f"{len(self.rendered)} rendered, {len(self.failures)} failed"


def prepare_templates(config):
    """Make sure the Quarto template checkout exists (and is current if asked)."""
    repo_dir = config.templates_dir

    if not repo_dir.is_dir():
        if not config.reports_repo_url:
            raise ReportingFailed(f"Report template directory {repo_dir} not found")
        logger.info(f"📂 Cloning {config.reports_repo_url}...")
        if not run_command(["git", "clone", config.reports_repo_url, str(repo_dir)],
                           "Cloning report templates", cwd=config.working_dir):
            raise ReportingFailed(f"Could not clone {config.reports_repo_url}")

    if config.reports_sync:
        branch = config.reports_branch
        steps = [
            (["git", "fetch", "--all"], "Fetching report templates"),
            (["git", "reset", "--hard", f"origin/{branch}"], f"Resetting templates to origin/{branch}"),
        ]
        for cmd, description in steps:
            if not run_command(cmd, description, cwd=repo_dir):
                raise ReportingFailed(f"{description} failed")

    return repo_dir


def _quarto_env(config, sample_id=None):
    env = dict(os.environ)
    env["OUTPUT_DIR"] = str(config.output_dir)
    env["ANALYSIS_TYPE"] = AnalysisMode.parse(config.mode).value
    if sample_id:
        env["SAMPLE_NAME"] = sample_id
    return env


def _render(template, repo_dir, destination, config, sample_id=None):
    """Render ``template`` and move the HTML to ``destination``. Returns an error string or None."""
    cmd = ["quarto", "render", template, "--to", "html"]
    if sample_id:
        cmd.extend(["--execute-param", f"sample_name={sample_id}"])

    label = sample_id or "single analysis"
    if not run_command(cmd, f"Rendering report for {label}", cwd=repo_dir,
                       env=_quarto_env(config, sample_id)):
        return f"quarto render {template} failed"

    rendered = repo_dir / f"{Path(template).stem}.html"
    if not rendered.is_file():
        return f"quarto did not produce {rendered.name}"
    try:
        shutil.move(str(rendered), str(destination))
    except (OSError, shutil.Error) as e:
        return f"could not move {rendered.name} to {destination}: {e}"
    return None


def render_single(config):
    repo_dir = prepare_templates(config)
    destination = config.outputs_dir / SINGLE_REPORT_NAME
    logger.info("Processing single analysis...")

    error = _render(config.single_template, repo_dir, destination, config)
    if error:
        report = RenderReport(failures=[RenderFailure("single", error)])
        raise ReportingFailed(f"❌ {error}", report)

    logger.info(f"✅ Report written to {destination}")
    return RenderReport(rendered=[RenderedReport("single", destination)])


def render_batch(config):
    """Render one report per sample folder; a failed sample does not stop the rest."""
    repo_dir = prepare_templates(config)
    report = RenderReport()
    logger.info("Processing batch analysis...")

    samples = discover_sample_dirs(config.outputs_dir)
    if not samples:
        logger.warning(f"⚠️  No sample folders found under {config.outputs_dir}")

    for sample_dir in samples:
        sample_id = sample_dir.name
        logger.info(f"Running Quarto for sample: {sample_id}")
        destination = sample_dir / f"{sample_id}_analysis_report.html"
        error = _render(config.batch_template, repo_dir, destination, config, sample_id)
        if error:
            logger.error(f"❌ {sample_id}: {error}")
            report.failures.append(RenderFailure(sample_id, error))
        else:
            report.rendered.append(RenderedReport(sample_id, destination))

    logger.info(f"Reporting: {report.summary()}")
    return report


def render_reports(mode, config):
    if AnalysisMode.parse(mode) is AnalysisMode.SINGLE:
        return render_single(config)
    return render_batch(config)
