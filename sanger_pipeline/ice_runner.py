"""
ice_runner.py

Run Synthego ICE inside its docker image.

Every host directory the engine may read or write is mounted explicitly;
the container sees nothing else.

    single:  control trace dir  -> /control_data   (role: control)
             edited trace dir   -> /edited_data    (role: edited)
             Outputs/Results    -> /output_data    (role: output)

    batch:   raw traces dir     -> /input_data     (role: data)
             manifest dir       -> /batch_data     (role: batch)
             Combined_Reports   -> /output_data    (role: output)
"""

import logging
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Tuple

from .commands import run_command
from .config import AnalysisMode
from .errors import ConfigurationError, ExternalToolFailed, PermissionDenied

logger = logging.getLogger("sanger_pipeline.ice")

CONTAINER_PATHS = {
    "control": "/control_data",
    "edited": "/edited_data",
    "output": "/output_data",
    "data": "/input_data",
    "batch": "/batch_data",
}
ICE_WORKDIR = "/ice"
SINGLE_SCRIPT = "ice_analysis_single.py"
BATCH_SCRIPT = "ice_analysis_batch.py"


@dataclass(frozen=True)
class Binding:
    role: str
    host_path: Path

    @property
    def container_path(self):
        return CONTAINER_PATHS[self.role]

    def volume_arg(self):
        return f"{self.host_path}:{self.container_path}"


@dataclass(frozen=True)
class ExternalInvocation:
    mode: AnalysisMode
    image: str
    bindings: Tuple[Binding, ...]
    script: str
    arguments: Tuple[str, ...] = field(default_factory=tuple)

    def binding(self, role):
        for b in self.bindings:
            if b.role == role:
                return b
        raise KeyError(role)

    def docker_command(self) -> List[str]:
        cmd = ["docker", "run", "--rm", "-i"]
        for b in self.bindings:
            cmd.extend(["-v", b.volume_arg()])
        cmd.extend(["-w", ICE_WORKDIR, self.image, "python", self.script])
        cmd.extend(self.arguments)
        return cmd


def build_invocation(mode, config, tree):
    """Describe the docker call for ``mode`` without running it."""
    mode = AnalysisMode.parse(mode)

    if mode is AnalysisMode.SINGLE:
        if config.input_ab1 is None or config.control_ab1 is None:
            raise ConfigurationError("Single analysis needs both INPUT_AB1 and CONTROL_AB1")
        if not config.guide_sequence:
            raise ConfigurationError("Single analysis needs GUIDE_RNA_SEQUENCE")
        bindings = (
            Binding("control", config.control_ab1.parent),
            Binding("edited", config.input_ab1.parent),
            Binding("output", tree.results),
        )
        edited_name = config.input_ab1.name
        arguments = (
            "--control", f"{CONTAINER_PATHS['control']}/{config.control_ab1.name}",
            "--edited", f"{CONTAINER_PATHS['edited']}/{edited_name}",
            "--target", config.guide_sequence,
            "--out", f"{CONTAINER_PATHS['output']}/{edited_name}",
        )
        return ExternalInvocation(mode, config.ice_image, bindings, SINGLE_SCRIPT, arguments)

    if config.input_ab1 is None or config.batch_input_file is None:
        raise ConfigurationError("Batch analysis needs both INPUT_AB1 and BATCH_INPUT_FILE")
    bindings = (
        Binding("data", config.input_ab1),
        Binding("batch", config.batch_input_file.parent),
        Binding("output", tree.combined_reports),
    )
    arguments = (
        "--in", f"{CONTAINER_PATHS['batch']}/{config.batch_input_file.name}",
        "--data", CONTAINER_PATHS["data"],
        "--out", CONTAINER_PATHS["output"],
    )
    return ExternalInvocation(mode, config.ice_image, bindings, BATCH_SCRIPT, arguments)


def check_docker_permission():
    """Fail fast unless ``docker info`` works for the current user."""
    try:
        result = subprocess.run(["docker", "info"], capture_output=True, text=True)
    except FileNotFoundError as e:
        raise PermissionDenied("docker is not installed or not on PATH") from e
    if result.returncode != 0:
        logger.warning("⚠️  You do not have permission to run Docker without sudo.")
        logger.warning("Add your user to the docker group (recommended) or rerun with sudo.")
        raise PermissionDenied("Cannot run docker as the current user")
    logger.debug("docker info succeeded")


def pull_image(image, cwd=None):
    logger.info(f"Pulling {image} Docker image...")
    if not run_command(["docker", "pull", image], f"Pulling {image}", cwd=cwd):
        raise ExternalToolFailed("pull", f"docker pull {image} failed")


def run_ice(mode, config, tree):
    """Run one ICE analysis for ``mode``. Raises on any failure."""
    mode = AnalysisMode.parse(mode)
    invocation = build_invocation(mode, config, tree)

    check_docker_permission()
    if config.ice_pull:
        pull_image(config.ice_image, cwd=config.working_dir)

    logger.info(f"Running Synthego ICE {mode.value} analysis...")
    ok = run_command(
        invocation.docker_command(),
        f"Synthego ICE {mode.value} analysis",
        cwd=config.working_dir,
        timeout=config.ice_timeout,
    )
    if not ok:
        raise ExternalToolFailed("run", f"Synthego ICE {mode.value} analysis failed")

    logger.info(f"✅ {mode.value.capitalize()} analysis completed. "
                f"Results saved to {invocation.binding('output').host_path}")
    return invocation
