"""Invocation of the external vuln-list-update program."""

import os
from pathlib import Path
from typing import List

from ..errors import ConfigError
from ..infra.logger import log_error, log_info
from .process_control import run_tracked


def check_updater(updater: Path) -> Path:
    """Ensure the updater executable exists and can be run."""
    path = Path(updater)
    if not path.is_file():
        raise ConfigError(f"updater not found: {path}")
    if not os.access(path, os.X_OK):
        raise ConfigError(f"updater is not executable: {path}")
    log_info(f"using updater: {path}")
    return path


def build_command(updater: Path, target_id: str, destination: Path) -> List[str]:
    return [str(updater), "-vuln-list-dir", str(destination), "-target", target_id]


def run_updater(updater: Path, target_id: str, destination: Path) -> int:
    """Run the updater for one target and return its exit status.

    Output is streamed straight to the console; only the status is read.
    """
    command = build_command(updater, target_id, destination)
    log_info(f"running updater: target={target_id} dir={destination}")
    try:
        result = run_tracked(command, cwd=str(Path(updater).parent))
    except OSError as exc:
        log_error(f"updater could not start for {target_id}: {exc}")
        return 127
    return result.returncode
