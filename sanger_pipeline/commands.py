"""Run external commands (docker, quarto, git) with logging."""

import logging
import subprocess

logger = logging.getLogger("sanger_pipeline.commands")


def run_command(cmd, description, cwd=None, env=None, timeout=None):
    """Run a command and handle errors.

    Returns True when the command exits with status 0, False otherwise.
    Output is captured and written to the log.
    """
    logger.info(f"Starting step: {description}")
    logger.debug(f"Command: {' '.join(str(c) for c in cmd)}")

    try:
        result = subprocess.run(
            [str(c) for c in cmd],
            check=True,
            capture_output=True,
            text=True,
            cwd=cwd,
            env=env,
            timeout=timeout,
        )
    except subprocess.CalledProcessError as e:
        logger.error(f"Step '{description}' failed with return code {e.returncode}")
        logger.error(f"Command: {' '.join(str(c) for c in cmd)}")
        if e.stderr:
            logger.error(f"Error output: {e.stderr}")
        if e.stdout:
            logger.debug(f"Standard output: {e.stdout}")
        return False
    except subprocess.TimeoutExpired:
        logger.error(f"Step '{description}' timed out after {timeout} seconds")
        return False
    except FileNotFoundError:
        logger.error(f"Step '{description}' failed: '{cmd[0]}' not found on PATH (or missing working directory {cwd})")
        return False

    logger.info(f"Step '{description}' completed successfully")
    if result.stdout:
        logger.debug(f"Command output:\n{result.stdout}")
    if result.stderr:
        logger.warning(f"Command stderr: {result.stderr}")
    return True
