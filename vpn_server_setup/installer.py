import os
import subprocess
import sys
import time
from typing import Optional

import requests

from vpn_server_setup import APP_NAME, VERSION
from vpn_server_setup.certificates import setup_domain_ssl
from vpn_server_setup.commands import (
    SETUP_STATUS,
    cleanup_temp_files,
    reset_status,
    run_with_progress,
    set_status,
)
from vpn_server_setup.config import Config, SetupState
from vpn_server_setup.distro import (
    Distro,
    UnsupportedDistributionError,
    detect_distro,
    install_packages,
)
from vpn_server_setup.fail2ban import configure_fail2ban
from vpn_server_setup.logger import get_logger
from vpn_server_setup.network import get_public_ip, prompt_domain
from vpn_server_setup.nginx import configure_nginx
from vpn_server_setup.panel import install_panel
from vpn_server_setup.ui import (
    NordColors,
    console,
    create_header,
    display_panel,
    print_section,
    print_status_report,
)

# Failures in a soft phase are recorded and the pipeline moves on
PHASE_ERRORS = (
    subprocess.CalledProcessError,
    TimeoutError,
    OSError,
    requests.RequestException,
)


class VpnServerSetup:
    """Runs the provisioning phases in order against one SetupState."""

    def __init__(
        self,
        config: Optional[Config] = None,
        state: Optional[SetupState] = None,
        interactive: bool = True,
    ):
        self.config = config or Config()
        self.state = state or SetupState()
        self.interactive = interactive
        self.distro: Optional[Distro] = None
        self.logger = get_logger()
        self.start_time = time.monotonic()
        reset_status()

    # ----------------------------------------------------------------
    # Phase 0: Preflight Checks
    # ----------------------------------------------------------------
    def check_root(self) -> None:
        """Verify the script is running with root privileges."""
        if os.geteuid() != 0:
            self.logger.error("This script must be run as root.")
            set_status("preflight", "failed", "Not running as root")
            sys.exit(1)
        self.logger.info("Root privileges confirmed.")
        set_status("preflight", "success", "Running as root")

    # ----------------------------------------------------------------
    # Phase 1: OS Detection & Packages
    # ----------------------------------------------------------------
    def phase_packages(self) -> bool:
        print_section("Detecting OS and installing dependencies")
        try:
            self.distro = detect_distro(self.config.OS_RELEASE)
        except UnsupportedDistributionError as e:
            self.logger.error(str(e))
            set_status("packages", "failed", str(e))
            sys.exit(1)
        self.state.os_id = self.distro.id

        try:
            run_with_progress(
                f"Installing packages with {self.distro.install_commands()[0][0]}",
                install_packages,
                self.distro,
                task_name="packages",
            )
            return True
        except PHASE_ERRORS as e:
            self.logger.error(f"Package installation failed: {e}")
            return False

    # ----------------------------------------------------------------
    # Phase 2: Domain & Certificate
    # ----------------------------------------------------------------
    def phase_domain_ssl(self) -> bool:
        print_section("Configuration Setup")
        self.state.public_ip = get_public_ip(self.config.PUBLIC_IP_URLS)
        console.print(
            f"Detected Public IP: [{NordColors.GREEN}]{self.state.public_ip or 'Unknown'}[/]"
        )

        if self.interactive:
            self.state.domain = prompt_domain()

        try:
            ok = run_with_progress(
                "Configuring hostname and SSL certificate",
                setup_domain_ssl,
                self.state,
                self.config,
                self.nginx_user,
                task_name="domain_ssl",
            )
        except PHASE_ERRORS as e:
            self.logger.error(f"Domain setup failed: {e}")
            self.state.skip_ssl = True
            return False

        if not self.state.domain:
            set_status("domain_ssl", "skipped", "No domain provided")
        return ok

    # ----------------------------------------------------------------
    # Phase 3: Nginx
    # ----------------------------------------------------------------
    def phase_nginx(self) -> bool:
        print_section("Nginx")
        try:
            return run_with_progress(
                "Writing nginx configuration",
                configure_nginx,
                self.nginx_user,
                self.state,
                self.config,
                task_name="nginx",
            )
        except PHASE_ERRORS as e:
            self.logger.error(f"Nginx configuration failed: {e}")
            return False

    # ----------------------------------------------------------------
    # Phase 4: Fail2Ban
    # ----------------------------------------------------------------
    def phase_fail2ban(self) -> bool:
        print_section("Fail2Ban")
        try:
            run_with_progress(
                "Configuring fail2ban", configure_fail2ban, self.config, task_name="fail2ban"
            )
            return True
        except PHASE_ERRORS as e:
            self.logger.error(f"Fail2Ban configuration failed: {e}")
            return False

    # ----------------------------------------------------------------
    # Phase 5: 3x-ui Panel
    # ----------------------------------------------------------------
    def phase_panel(self) -> bool:
        if not self.config.INSTALL_PANEL:
            self.logger.info("Skipping 3x-ui panel installation.")
            set_status("panel", "skipped", "Disabled with --skip-panel")
            return True
        print_section("3x-ui Panel")
        # Not wrapped in a spinner: the installer talks to the terminal
        set_status("panel", "in_progress", "Running installer")
        try:
            install_panel(self.config.PANEL_INSTALLER_URL)
        except PHASE_ERRORS as e:
            self.logger.error(f"3x-ui installation failed: {e}")
            set_status("panel", "failed", str(e))
            return False
        set_status("panel", "success", "Installer finished")
        return True

    @property
    def nginx_user(self) -> str:
        return self.distro.nginx_user if self.distro else "nginx"

    # ----------------------------------------------------------------
    # Summary
    # ----------------------------------------------------------------
    def summary_text(self) -> str:
        elapsed = time.monotonic() - self.start_time
        minutes, seconds = divmod(int(elapsed), 60)
        lines = [
            f"[bold {NordColors.GREEN}]INSTALLATION COMPLETE[/]",
            f"Total runtime: {minutes}m {seconds}s",
            "",
        ]
        if not self.state.https_enabled:
            lines.append(
                f"[{NordColors.YELLOW}]HTTPS was not configured; "
                f"nginx serves the decoy page over HTTP only.[/]"
            )
            return "\n".join(lines)

        path = self.config.XRAY_PATH
        port = self.config.XRAY_INTERNAL_PORT
        lines += [
            f"Hostname set to:  [{NordColors.GREEN}]{self.state.domain}[/]",
            f"Web Camouflage:   https://{self.state.domain}",
            f"VLESS Path:       [{NordColors.YELLOW}]{path}[/]",
            f"VLESS Internal:   [{NordColors.YELLOW}]127.0.0.1:{port}[/]",
            "",
            f"[{NordColors.FROST_4}]INSTRUCTIONS FOR 3x-ui:[/]",
            "1. Create a new Inbound",
            "2. Protocol: VLESS",
            f"3. Port: {port}",
            "4. Listen: 127.0.0.1",
            f"5. Transport: WebSocket -> Path: {path}",
            "6. Security: None (Nginx handles SSL on 443)",
        ]
        return "\n".join(lines)

    def print_summary(self) -> None:
        display_panel(self.summary_text(), style=NordColors.GREEN, title=APP_NAME)
        print_status_report(SETUP_STATUS)

    def cleanup(self) -> None:
        self.logger.debug("Performing cleanup before exit...")
        cleanup_temp_files()

    def run_all_phases(self) -> bool:
        """Run every phase; returns True when none of them failed."""
        console.print(create_header())
        self.logger.info(f"Starting {APP_NAME} v{VERSION}")
        self.logger.debug(f"Configuration: {self.config.to_dict()}")

        self.check_root()
        results = [
            self.phase_packages(),
            self.phase_domain_ssl(),
            self.phase_nginx(),
            self.phase_fail2ban(),
            self.phase_panel(),
        ]

        self.print_summary()
        self.cleanup()
        if all(results):
            self.logger.info(f"{APP_NAME} completed successfully.")
        else:
            self.logger.warning(f"{APP_NAME} finished with errors; see the status report.")
        return all(results)
