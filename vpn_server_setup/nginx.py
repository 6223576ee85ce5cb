import shutil
from pathlib import Path

from vpn_server_setup.commands import (
    command_exists,
    run_command,
    set_mode,
    set_owner,
    write_file,
)
from vpn_server_setup.config import Config, SetupState
from vpn_server_setup.logger import get_logger
from vpn_server_setup.templates import (
    render_decoy_site,
    render_index,
    render_nginx_main,
    render_site,
)


def prepare_webroot(config: Config, nginx_user: str) -> Path:
    webroot = config.WEBROOT
    webroot.mkdir(parents=True, exist_ok=True)
    set_owner(webroot, nginx_user, recursive=True)
    set_mode(webroot, 0o755, recursive=True)
    return webroot


def write_main_config(config: Config, nginx_user: str) -> Path:
    """
    Replace nginx.conf, keeping the previous file as nginx.conf.bak.

    A file that already holds our rendered configuration (written earlier in
    the same run for the ACME challenge) is not moved, so the .bak keeps the
    distribution's original.
    """
    logger = get_logger()
    main_conf = config.nginx_conf
    content = render_nginx_main(nginx_user)
    if main_conf.is_file() and main_conf.read_text() != content:
        backup = main_conf.with_name("nginx.conf.bak")
        shutil.move(str(main_conf), str(backup))
        logger.debug(f"Moved {main_conf} to {backup}")
    config.conf_d.mkdir(parents=True, exist_ok=True)
    return write_file(main_conf, content)


def remove_default_sites(config: Config) -> None:
    logger = get_logger()
    default_conf = config.conf_d / "default.conf"
    if default_conf.exists():
        default_conf.unlink()
        logger.debug(f"Removed {default_conf}")
    if config.sites_enabled.is_dir():
        for entry in config.sites_enabled.iterdir():
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry)
            else:
                entry.unlink()
            logger.debug(f"Removed {entry}")


def validate_config() -> bool:
    """Run `nginx -t`; returns True when nginx is absent so the check never blocks."""
    logger = get_logger()
    if not command_exists("nginx"):
        logger.debug("nginx binary not found; skipping configuration test.")
        return True
    result = run_command(["nginx", "-t"], capture_output=True, check=False)
    if result.returncode != 0:
        logger.error(f"nginx configuration test failed:\n{(result.stderr or '').strip()}")
        return False
    logger.info("nginx configuration test passed.")
    return True


def restart_nginx() -> None:
    run_command(["systemctl", "enable", "nginx"])
    run_command(["systemctl", "restart", "nginx"])


def serve_challenge_site(config: Config, nginx_user: str) -> Path:
    """Serve the webroot over plain HTTP so certbot's webroot challenge can be answered."""
    prepare_webroot(config, nginx_user)
    write_main_config(config, nginx_user)
    remove_default_sites(config)
    site = write_file(config.site_config_path(""), render_decoy_site(config.WEBROOT))
    restart_nginx()
    return site


def configure_nginx(nginx_user: str, state: SetupState, config: Config) -> bool:
    """Write the final nginx configuration for this run and restart the service."""
    logger = get_logger()
    logger.info("Generating Modern Nginx Configuration...")
    logger.info(f"Configuring Nginx to run as user: {nginx_user}")

    prepare_webroot(config, nginx_user)
    write_main_config(config, nginx_user)
    remove_default_sites(config)

    site_path = config.site_config_path(state.domain)
    write_file(site_path, render_site(state, config))
    kind = "HTTPS reverse proxy" if state.https_enabled else "HTTP-only decoy"
    logger.info(f"Wrote {kind} site to {site_path}")

    # The challenge site is only needed until the final site file exists
    challenge_site = config.site_config_path("")
    if challenge_site != site_path and challenge_site.exists():
        challenge_site.unlink()

    index = write_file(config.WEBROOT / "index.html", render_index(state.domain))
    set_owner(index, nginx_user)

    valid = validate_config()
    logger.info("Reloading Nginx...")
    restart_nginx()
    return valid
