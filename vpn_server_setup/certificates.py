import subprocess
from typing import List

from vpn_server_setup.commands import command_exists, run_command, write_file
from vpn_server_setup.config import Config, SetupState
from vpn_server_setup.logger import get_logger
from vpn_server_setup.nginx import serve_challenge_site


def set_hostname(domain: str, config: Config) -> None:
    logger = get_logger()
    logger.info(f"Setting system hostname to {domain}...")
    if command_exists("hostnamectl"):
        run_command(["hostnamectl", "set-hostname", domain])
    else:
        write_file(config.HOSTNAME_FILE, f"{domain}\n")
        run_command(["hostname", domain])


def ensure_hosts_entry(domain: str, config: Config) -> bool:
    """Append a loopback entry for the domain; returns True if the file changed."""
    hosts = config.HOSTS_FILE
    content = hosts.read_text() if hosts.exists() else ""
    if domain in content:
        return False
    if content and not content.endswith("\n"):
        content += "\n"
    write_file(hosts, f"{content}127.0.0.1 {domain}\n")
    get_logger().debug(f"Added {domain} to {hosts}")
    return True


def certbot_command(domain: str, config: Config) -> List[str]:
    cmd = [
        "certbot",
        "certonly",
        "--webroot",
        "-w",
        str(config.WEBROOT),
        "--agree-tos",
    ]
    if config.ACME_EMAIL:
        cmd += ["-m", config.ACME_EMAIL]
    else:
        cmd.append("--register-unsafely-without-email")
    cmd += ["--non-interactive", "-d", domain]
    return cmd


def request_certificate(domain: str, config: Config) -> bool:
    logger = get_logger()
    if not command_exists("certbot"):
        logger.error("certbot is not installed.")
        return False
    logger.info(f"Requesting SSL Certificate for {domain}...")
    try:
        result = run_command(
            certbot_command(domain, config),
            capture_output=True,
            check=False,
            timeout=config.TIMEOUT,
        )
    except TimeoutError as e:
        logger.error(str(e))
        return False
    if result.returncode != 0:
        output = (result.stderr or result.stdout or "").strip()
        logger.error(f"certbot exited with code {result.returncode}:\n{output}")
        return False
    return True


def setup_domain_ssl(state: SetupState, config: Config, nginx_user: str) -> bool:
    """
    Configure hostname and certificate for state.domain.

    Sets state.skip_ssl; returns False only when a domain was given and the
    certificate could not be obtained.
    """
    logger = get_logger()
    if not state.domain:
        logger.warning("No domain provided. Skipping SSL, Hostname, and HTTPS setup.")
        state.skip_ssl = True
        return True

    state.skip_ssl = False
    try:
        set_hostname(state.domain, config)
    except (subprocess.CalledProcessError, OSError) as e:
        logger.error(f"Failed to set hostname: {e}")
    ensure_hosts_entry(state.domain, config)

    logger.info("Preparing Nginx for Certbot verification...")
    try:
        serve_challenge_site(config, nginx_user)
    except (subprocess.CalledProcessError, OSError) as e:
        logger.warning(f"Could not prepare nginx for the ACME challenge: {e}")

    if request_certificate(state.domain, config):
        logger.info("Certificate generated successfully.")
        return True

    ip = state.public_ip or "this server"
    logger.error(f"Certbot failed. Please check your DNS records point to {ip}.")
    state.skip_ssl = True
    return False
