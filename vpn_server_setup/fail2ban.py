from vpn_server_setup.commands import backup_file, run_command, write_file
from vpn_server_setup.config import Config
from vpn_server_setup.logger import get_logger
from vpn_server_setup.templates import render_jail


def configure_fail2ban(config: Config) -> None:
    """Write jail.local for aggressive sshd protection and restart fail2ban."""
    logger = get_logger()
    logger.info("Configuring Fail2Ban...")

    jail_local = config.FAIL2BAN_JAIL
    backup_file(jail_local)
    write_file(jail_local, render_jail())
    logger.debug(f"Fail2ban configuration written to {jail_local}.")

    run_command(["systemctl", "enable", "fail2ban"])
    run_command(["systemctl", "restart", "fail2ban"])
    logger.info("Fail2Ban active.")
