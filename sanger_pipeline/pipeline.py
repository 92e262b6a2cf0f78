#!/usr/bin/env python3
"""
Sanger editing-outcome pipeline

Steps, in order:
1. Validate the configuration and input files
2. Create the Outputs/ directory tree
3. Run Synthego ICE in docker (single or batch)
4. Batch only: move ICE results into one folder per sample
5. Render the Quarto report(s)

Usage:
    python -m sanger_pipeline [config.yaml] [options]

Examples:
    python -m sanger_pipeline
    python -m sanger_pipeline config.txt --mode batch
    python -m sanger_pipeline config.yaml --no-pull --log-file run1.log
"""

import argparse
import logging
import sys
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from .config import AnalysisMode, load_config
from .errors import (
    ConfigurationError,
    DirectoryCreationFailed,
    ExternalToolFailed,
    PermissionDenied,
    ReportingFailed,
    RoutingFailed,
)
from .ice_runner import run_ice
from .layout import ensure_output_tree
from .manifest import write_manifest
from .reports import RenderReport, render_reports
from .router import RoutingReport, route_results

logger = logging.getLogger("sanger_pipeline")


class RunStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED_VALIDATION = "failed_validation"
    FAILED_ENVIRONMENT = "failed_environment"
    FAILED_LAYOUT = "failed_layout"
    FAILED_EXTERNAL_TOOL = "failed_external_tool"
    FAILED_ROUTING = "failed_routing"
    FAILED_REPORTING = "failed_reporting"


EXIT_CODES = {
    RunStatus.SUCCEEDED: 0,
    RunStatus.FAILED_VALIDATION: 2,
}


@dataclass
class RunOutcome:
    status: RunStatus
    message: str = ""
    routing: Optional[RoutingReport] = None
    rendering: Optional[RenderReport] = None

    @property
    def ok(self):
        return self.status is RunStatus.SUCCEEDED

    @property
    def exit_code(self):
        return EXIT_CODES.get(self.status, 1)


def setup_logging(log_file=None):
    """Set up logging to both file and console."""
    if log_file is None:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = f"sanger_pipeline_{timestamp}.log"

    # Create logger
    logger = logging.getLogger('sanger_pipeline')
    logger.setLevel(logging.DEBUG)

    # Clear any existing handlers
    logger.handlers.clear()

    # Create formatters
    file_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    console_formatter = logging.Formatter(
        '%(levelname)s - %(message)s'
    )

    # File handler
    file_handler = logging.FileHandler(log_file, mode='w')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(file_formatter)
    logger.addHandler(file_handler)

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(console_formatter)
    logger.addHandler(console_handler)

    return logger, log_file


def validate_inputs(mode, config):
    """Check every input the chosen mode needs before anything is written."""
    if mode is AnalysisMode.SINGLE:
        if config.input_ab1 is None or not config.input_ab1.is_file():
            raise ConfigurationError(f"Specified AB1 file {config.input_ab1} does not exist.")
        if config.control_ab1 is None or not config.control_ab1.is_file():
            raise ConfigurationError(f"Specified control AB1 file {config.control_ab1} does not exist.")
        if not config.guide_sequence:
            raise ConfigurationError("GUIDE_RNA_SEQUENCE is required for single analysis.")
        return

    if config.batch_input_file is None or not config.batch_input_file.is_file():
        raise ConfigurationError(f"Specified batch input file {config.batch_input_file} does not exist.")
    if config.input_ab1 is None or not config.input_ab1.is_dir():
        raise ConfigurationError(f"Specified AB1 directory {config.input_ab1} does not exist.")


def run(config):
    """Run the whole pipeline for ``config`` and return its RunOutcome.

    Fatal errors stop the run at the failing step; nothing already written
    is rolled back. Per-file routing and per-sample rendering errors are
    collected and only fail the run above config.max_failure_fraction.
    """
    routing = None
    rendering = None

    try:
        mode = AnalysisMode.parse(config.mode)
        validate_inputs(mode, config)
        logger.info(f"✅ Pipeline initiated ({mode.value} analysis)")

        tree = ensure_output_tree(mode, config.output_dir)
        run_ice(mode, config, tree)

        if mode is AnalysisMode.BATCH:
            routing = route_results(tree.combined_reports, config.output_dir)
            if routing.exceeds(config.max_failure_fraction):
                raise RoutingFailed(routing)
            if routing.errors:
                logger.warning(f"⚠️  {len(routing.errors)} file(s) could not be routed (below failure threshold)")

        rendering = render_reports(mode, config)
        if rendering.exceeds(config.max_failure_fraction):
            raise ReportingFailed(f"{len(rendering.failures)} report(s) failed to render", rendering)
        if rendering.failures:
            logger.warning(f"⚠️  {len(rendering.failures)} report(s) failed (below failure threshold)")

    except ConfigurationError as e:
        logger.error(f"❌ Error: {e}")
        return RunOutcome(RunStatus.FAILED_VALIDATION, str(e))
    except PermissionDenied as e:
        logger.error(f"❌ Error: {e}")
        return RunOutcome(RunStatus.FAILED_ENVIRONMENT, str(e))
    except DirectoryCreationFailed as e:
        logger.error(f"❌ Error: {e}")
        return RunOutcome(RunStatus.FAILED_LAYOUT, str(e))
    except ExternalToolFailed as e:
        logger.error(f"❌ Error: {e}")
        return RunOutcome(RunStatus.FAILED_EXTERNAL_TOOL, str(e))
    except RoutingFailed as e:
        logger.error(f"❌ Error: {e}")
        return RunOutcome(RunStatus.FAILED_ROUTING, str(e), routing=e.report)
    except ReportingFailed as e:
        logger.error(f"❌ Error: {e}")
        return RunOutcome(RunStatus.FAILED_REPORTING, str(e), routing=routing,
                          rendering=e.report or rendering)

    logger.info("✅ Pipeline execution completed!")
    return RunOutcome(RunStatus.SUCCEEDED, "Pipeline execution completed", routing, rendering)


def print_summary(outcome, elapsed):
    print(f"\n{'='*60}")
    print("PIPELINE SUMMARY")
    print(f"{'='*60}")
    if outcome.routing is not None:
        print(f"📂 Routing: {outcome.routing.summary()}")
        for issue in outcome.routing.errors:
            print(f"   ⚠️  {issue.name}: {issue.reason}")
    if outcome.rendering is not None:
        print(f"📄 Reports: {outcome.rendering.summary()}")
        for failure in outcome.rendering.failures:
            print(f"   ⚠️  {failure.sample_id}: {failure.reason}")
    marker = "✅" if outcome.ok else "❌"
    print(f"{marker} Status: {outcome.status.value} ({elapsed:.1f}s)")
    if outcome.message and not outcome.ok:
        print(f"   {outcome.message}")


def main(argv=None):
    start_time = time.time()

    parser = argparse.ArgumentParser(
        description="Sanger trace editing analysis (Synthego ICE + Quarto reports)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Use ./config.yaml
  python -m sanger_pipeline

  # Old-style config.txt, forcing batch mode
  python -m sanger_pipeline config.txt --mode batch

  # Reuse the local ICE image
  python -m sanger_pipeline config.yaml --no-pull
        """
    )
    parser.add_argument("config", nargs="?", default="config.yaml",
                        help="config.yaml or config.txt (default: config.yaml)")
    parser.add_argument("--mode", choices=[m.value for m in AnalysisMode],
                        help="Override analysis_type from the config file")
    parser.add_argument("--no-pull", action="store_true",
                        help="Do not pull the ICE docker image before running")
    parser.add_argument("--log-file",
                        help="Specify log file name (default: auto-generated with timestamp)")
    args = parser.parse_args(argv)

    overrides = {"ANALYSIS_TYPE": args.mode}
    if args.no_pull:
        overrides["ICE_PULL"] = False

    try:
        config = load_config(args.config, overrides)
    except ConfigurationError as e:
        print(f"❌ Error: {e}")
        return EXIT_CODES[RunStatus.FAILED_VALIDATION]

    try:
        _, log_file = setup_logging(args.log_file or config.log_file)
    except OSError as e:
        print(f"❌ Error: Cannot open log file: {e}")
        return EXIT_CODES[RunStatus.FAILED_VALIDATION]
    logger.info("Starting Sanger editing analysis pipeline")
    logger.info(f"Command line arguments: {sys.argv}")
    logger.info(f"Configuration loaded from {config.source}")
    logger.debug(f"Configuration: {config}")

    try:
        outcome = run(config)
    except KeyboardInterrupt:
        logger.warning("⚠️  Pipeline interrupted by user; outputs may be incomplete. Re-run to recover.")
        return 130

    if config.outputs_dir.is_dir():
        try:
            write_manifest(config, outcome, config.outputs_dir)
        except OSError as e:
            logger.warning(f"⚠️  Could not write manifest: {e}")

    print_summary(outcome, time.time() - start_time)
    print(f"📝 Detailed log saved to: {log_file}")
    return outcome.exit_code


if __name__ == "__main__":
    sys.exit(main())
