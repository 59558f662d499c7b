import logging
import os
import platform
import socket
from datetime import datetime
from importlib import metadata
from typing import TYPE_CHECKING, Any

import alphabase
import lxml.etree
import numpy as np
import pandas as pd
import yaml

import peptidehit

# makes sure the progress level is registered
from peptidehit.reporting import reporting  # noqa: F401

# Type stub for extended Logger with progress method
# The progress method is added in reporting.py at module load time
if TYPE_CHECKING:

    class _ExtendedLogger(logging.Logger):
        def progress(self, message: str, *args: Any, **kws: Any) -> None: ...

    logger: _ExtendedLogger = logging.getLogger()  # type: ignore[assignment]
else:
    logger = logging.getLogger()


def print_logo() -> None:
    """Print the peptidehit logo and version."""
    logger.progress("                 _   _    _      _ _   ")
    logger.progress("  _ __  ___ _ __| |_(_)__| |___| |_(_)_")
    logger.progress(" | '_ \\/ -_) '_ \\  _| / _` / -_) ' \\ |  _|")
    logger.progress(" | .__/\\___| .__/\\__|_\\__,_\\___|_||_|_|\\__|")
    logger.progress(" |_|       |_|                            ")
    logger.progress("")
    logger.progress(f"version: {peptidehit.__version__}")


def print_environment() -> None:
    """Log information about the python environment."""

    logger.info(f"hostname: {socket.gethostname()}")
    logger.progress(
        f"os: {platform.system()} {platform.release()} ({platform.machine()})"
    )
    logger.progress(
        f"python: {platform.python_version()} ({platform.python_implementation()})"
    )
    if slurm_job_id := os.environ.get("SLURM_JOB_ID"):
        logger.info(f"slurm_job_id: {slurm_job_id}")

    now = datetime.today().strftime("%Y-%m-%d %H:%M:%S")
    logger.info(f"date: {now}")

    logger.info("================ Core Environment =================")
    logger.info(f"{'alphabase':<15} : {alphabase.__version__}")
    logger.info(f"{'numpy':<15} : {np.__version__}")
    logger.info(f"{'pandas':<15} : {pd.__version__}")
    logger.info(f"{'pyyaml':<15} : {yaml.__version__}")
    logger.info(f"{'lxml':<15} : {lxml.etree.__version__}")
    logger.info("===================================================")

    logger.info("================= Pip Environment =================")
    pip_env = [
        f"{dist.metadata['Name']}=={dist.version}" for dist in metadata.distributions()
    ]
    logger.info(" ".join(pip_env))
    logger.info("===================================================")
