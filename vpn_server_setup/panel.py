import os
import tempfile

import requests

from vpn_server_setup.config import TEMP_PREFIX
from vpn_server_setup.commands import run_command
from vpn_server_setup.logger import get_logger


def download_installer(url: str, timeout: int = 60) -> str:
    """Save the installer script to a temporary file and return its path."""
    logger = get_logger()
    logger.info(f"Downloading {url}...")
    response = requests.get(url, timeout=timeout)
    response.raise_for_status()

    fd, path = tempfile.mkstemp(prefix=TEMP_PREFIX, suffix=".sh")
    with os.fdopen(fd, "w") as f:
        f.write(response.text)
    os.chmod(path, 0o700)
    logger.debug(f"Installer saved to {path}")
    return path


def install_panel(url: str) -> None:
    """Fetch and run the 3x-ui installer; it prompts on the terminal, so output is not captured."""
    logger = get_logger()
    logger.info("Installing 3x-ui Panel...")
    script = download_installer(url)
    try:
        run_command(["bash", script], timeout=None)
    finally:
        try:
            os.unlink(script)
        except FileNotFoundError:
            pass
    logger.info("3x-ui installer finished.")
