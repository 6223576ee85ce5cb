import datetime
import os
import shutil
import subprocess
import tempfile
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from vpn_server_setup.config import OPERATION_TIMEOUT, TEMP_PREFIX
from vpn_server_setup.logger import get_logger
from vpn_server_setup.ui import NordColors, console

# Status tracking for each phase of the setup
PHASES: List[str] = [
    "preflight",
    "packages",
    "domain_ssl",
    "nginx",
    "fail2ban",
    "panel",
]

SETUP_STATUS: Dict[str, Dict[str, str]] = {}


def reset_status() -> None:
    SETUP_STATUS.clear()
    for phase in PHASES:
        SETUP_STATUS[phase] = {"status": "pending", "message": ""}


def set_status(task_name: str, status: str, message: str = "") -> None:
    SETUP_STATUS[task_name] = {"status": status, "message": message}


reset_status()


# ----------------------------------------------------------------
# Command Execution Utilities
# ----------------------------------------------------------------
def run_command(
    cmd: List[str],
    capture_output: bool = False,
    text: bool = True,
    check: bool = True,
    timeout: Optional[int] = OPERATION_TIMEOUT,
    env: Optional[Dict[str, str]] = None,
) -> subprocess.CompletedProcess:
    """Run a system command, logging failures before re-raising them."""
    logger = get_logger()
    cmd_str = " ".join(cmd)
    logger.debug(f"Running command: {cmd_str}")
    try:
        result = subprocess.run(
            cmd,
            capture_output=capture_output,
            text=text,
            check=check,
            timeout=timeout,
            env=env,
        )
        if capture_output:
            if result.stdout and result.stdout.strip():
                logger.debug(f"Cmd stdout: {result.stdout.strip()}")
            if result.stderr and result.stderr.strip():
                logger.debug(f"Cmd stderr: {result.stderr.strip()}")
        return result
    except subprocess.TimeoutExpired as e:
        logger.error(f"Command timed out after {timeout} seconds: {cmd_str}")
        raise TimeoutError(f"Command '{cmd_str}' timed out after {timeout} seconds.") from e
    except FileNotFoundError:
        logger.error(f"Command not found: {cmd[0]}. Ensure it is installed and in PATH.")
        raise
    except subprocess.CalledProcessError as e:
        error_msg = f"Command '{cmd_str}' failed with code {e.returncode}."
        if e.stderr:
            error_msg += f"\nStderr: {e.stderr.strip()}"
        logger.error(error_msg)
        raise


def command_exists(cmd: str) -> bool:
    """Check if a command exists in the system path."""
    exists = shutil.which(cmd) is not None
    get_logger().debug(f"Command '{cmd}' found: {exists}")
    return exists


def run_with_progress(
    description: str,
    func: Callable[..., Any],
    *args: Any,
    task_name: Optional[str] = None,
    **kwargs: Any,
) -> Any:
    """Run a function behind a spinner and record its outcome in SETUP_STATUS."""
    if task_name:
        set_status(task_name, "in_progress", f"{description} in progress...")

    with Progress(
        SpinnerColumn(style=f"bold {NordColors.FROST_1}"),
        TextColumn("{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        task_id = progress.add_task(description, total=None)
        start = time.monotonic()
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            elapsed = time.monotonic() - start
            progress.update(task_id, completed=100)
            console.print(f"[error]✗ {description} failed in {elapsed:.2f}s: {escape(str(e))}[/error]")
            if task_name:
                set_status(task_name, "failed", f"Failed after {elapsed:.2f}s: {e}")
            raise

        elapsed = time.monotonic() - start
        progress.update(task_id, completed=100)

    if result is False:
        console.print(f"[error]✗ {description} failed in {elapsed:.2f}s[/error]")
        if task_name:
            set_status(task_name, "failed", f"Failed after {elapsed:.2f}s")
    else:
        console.print(f"[success]✓ {description} completed in {elapsed:.2f}s[/success]")
        if task_name:
            set_status(task_name, "success", f"Completed in {elapsed:.2f}s")
    return result


# ----------------------------------------------------------------
# File Helpers
# ----------------------------------------------------------------
def backup_file(file_path: Union[str, Path]) -> Optional[str]:
    """Create a timestamped copy of a file next to it."""
    logger = get_logger()
    file_path = Path(file_path)
    if not file_path.is_file():
        logger.debug(f"Cannot backup non-existent file: {file_path}")
        return None

    timestamp = datetime.datetime.now().strftime("%Y%m%d%H%M%S")
    backup_path = file_path.with_suffix(file_path.suffix + f".bak.{timestamp}")
    try:
        shutil.copy2(file_path, backup_path)
        logger.debug(f"Backed up {file_path} to {backup_path}")
        return str(backup_path)
    except OSError as e:
        logger.warning(f"Failed to backup {file_path}: {e}")
        return None


def write_file(path: Union[str, Path], content: str) -> Path:
    """Write text to path, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    get_logger().debug(f"Wrote {path} ({len(content)} bytes)")
    return path


def set_owner(path: Union[str, Path], user: str, recursive: bool = False) -> bool:
    """chown a path (optionally recursively) to user:user; unknown users are warned about."""
    logger = get_logger()
    path = Path(path)
    targets = [path]
    if recursive and path.is_dir():
        targets.extend(path.rglob("*"))
    try:
        for target in targets:
            shutil.chown(target, user=user, group=user)
        return True
    except (LookupError, PermissionError) as e:
        logger.warning(f"Could not set owner {user} on {path}: {e}")
        return False


def set_mode(path: Union[str, Path], mode: int, recursive: bool = False) -> None:
    """chmod a path, and everything below it when recursive."""
    path = Path(path)
    os.chmod(path, mode)
    if recursive and path.is_dir():
        for target in path.rglob("*"):
            os.chmod(target, mode)


def cleanup_temp_files() -> None:
    """Remove temporary files created by this tool; registered with atexit."""
    logger = get_logger()
    tmp = Path(tempfile.gettempdir())
    for item in tmp.glob(f"{TEMP_PREFIX}*"):
        try:
            if item.is_file() or item.is_symlink():
                item.unlink()
            else:
                shutil.rmtree(item)
        except OSError as e:
            logger.warning(f"Failed to clean up {item}: {e}")
