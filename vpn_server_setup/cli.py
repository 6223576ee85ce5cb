import atexit
import signal
import sys
from typing import Any, Optional

import click
from rich.traceback import install as install_rich_traceback

from vpn_server_setup import APP_NAME, VERSION
from vpn_server_setup.commands import cleanup_temp_files
from vpn_server_setup.config import Config, SetupState
from vpn_server_setup.installer import VpnServerSetup
from vpn_server_setup.logger import get_logger, setup_logger
from vpn_server_setup.network import is_valid_domain, normalize_domain
from vpn_server_setup.ui import clear_screen, print_error, print_warning


def signal_handler(signum: int, frame: Any) -> None:
    logger = get_logger()
    sig = signal.Signals(signum).name
    logger.error(f"Script interrupted by {sig}. Initiating cleanup.")
    cleanup_temp_files()
    sys.exit(130 if signum == signal.SIGINT else 143 if signum == signal.SIGTERM else 128 + signum)


def setup_signal_handlers() -> None:
    for sig in (signal.SIGINT, signal.SIGTERM, signal.SIGHUP):
        signal.signal(sig, signal_handler)


def validate_domain(ctx: click.Context, param: click.Parameter, value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    domain = normalize_domain(value)
    if domain and not is_valid_domain(domain):
        raise click.BadParameter(f"'{value}' is not a valid domain name.")
    return domain


@click.command(name="vpn-server-setup")
@click.option(
    "--domain",
    callback=validate_domain,
    help="Domain to issue a certificate for instead of prompting; empty skips SSL.",
)
@click.option("--email", default=None, help="Contact e-mail for the ACME account.")
@click.option("--skip-panel", is_flag=True, help="Do not run the 3x-ui installer.")
@click.option(
    "--log-file",
    default=Config.LOG_FILE,
    show_default=True,
    type=click.Path(dir_okay=False),
    help="Log file path.",
)
@click.option("--debug", is_flag=True, help="Enable debug logging on the console.")
@click.version_option(VERSION, prog_name=APP_NAME)
def main(
    domain: Optional[str],
    email: Optional[str],
    skip_panel: bool,
    log_file: str,
    debug: bool,
) -> None:
    """Provision nginx, a TLS certificate, fail2ban and 3x-ui for a VPN front end."""
    install_rich_traceback(show_locals=False)
    setup_signal_handlers()
    atexit.register(cleanup_temp_files)
    setup_logger(log_file, debug=debug)

    config = Config(
        LOG_FILE=log_file,
        ACME_EMAIL=email or None,
        INSTALL_PANEL=not skip_panel,
    )
    state = SetupState(domain=domain or "")
    setup = VpnServerSetup(config, state, interactive=domain is None)

    clear_screen()
    try:
        setup.run_all_phases()
    except KeyboardInterrupt:
        print_warning("Setup interrupted by user.")
        setup.cleanup()
        sys.exit(130)
    except Exception as e:
        print_error(f"Fatal error: {e}")
        get_logger().exception(e)
        setup.cleanup()
        sys.exit(1)
