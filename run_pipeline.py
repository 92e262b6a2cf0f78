#!/usr/bin/env python3
"""
Sanger Editing Analysis Pipeline Launcher

Runs the sanger_pipeline package in a child process and passes all
arguments through.

Usage:
    python run_pipeline.py [config.yaml] [options]

Examples:
    python run_pipeline.py
    python run_pipeline.py config.txt --mode single
    python run_pipeline.py config.yaml --no-pull
"""

import os
import sys
import subprocess
from pathlib import Path

def main():
    """Launch the pipeline package with the current interpreter."""
    package_dir = Path(__file__).parent / "sanger_pipeline"

    # Check if the package is next to this script
    if not (package_dir / "pipeline.py").exists():
        print("❌ Error: sanger_pipeline package not found")
        print(f"   Expected: {package_dir}")
        sys.exit(1)

    cmd = [sys.executable, "-m", "sanger_pipeline"] + sys.argv[1:]

    # Stay in the caller's directory so relative config and log paths resolve there
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(
        p for p in [str(package_dir.parent), env.get("PYTHONPATH", "")] if p
    )

    try:
        result = subprocess.run(cmd, check=True, env=env)
        sys.exit(result.returncode)
    except subprocess.CalledProcessError as e:
        sys.exit(e.returncode)
    except KeyboardInterrupt:
        print("\n⚠️  Pipeline interrupted by user")
        sys.exit(130)

if __name__ == "__main__":
    main()
