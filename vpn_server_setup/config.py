from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

OPERATION_TIMEOUT: int = 300  # 5 minutes default timeout for operations
TEMP_PREFIX: str = "vpn_server_setup_"

# Internal Xray inbound that nginx forwards WebSocket upgrades to
XRAY_INTERNAL_PORT: int = 3000
XRAY_PATH: str = "/vless-stream"

PANEL_INSTALLER_URL: str = (
    "https://raw.githubusercontent.com/mhsanaei/3x-ui/master/install.sh"
)


@dataclass
class Config:
    """Paths and constants used by the VPN server setup."""

    LOG_FILE: str = "/var/log/vpn_server_setup.log"
    OS_RELEASE: Path = field(default_factory=lambda: Path("/etc/os-release"))
    NGINX_DIR: Path = field(default_factory=lambda: Path("/etc/nginx"))
    WEBROOT: Path = field(default_factory=lambda: Path("/var/www/html"))
    LETSENCRYPT_LIVE: Path = field(
        default_factory=lambda: Path("/etc/letsencrypt/live")
    )
    FAIL2BAN_JAIL: Path = field(
        default_factory=lambda: Path("/etc/fail2ban/jail.local")
    )
    HOSTS_FILE: Path = field(default_factory=lambda: Path("/etc/hosts"))
    HOSTNAME_FILE: Path = field(default_factory=lambda: Path("/etc/hostname"))
    XRAY_INTERNAL_PORT: int = XRAY_INTERNAL_PORT
    XRAY_PATH: str = XRAY_PATH
    PUBLIC_IP_URLS: List[str] = field(
        default_factory=lambda: [
            "https://api.ipify.org",
            "https://ifconfig.me/ip",
        ]
    )
    PANEL_INSTALLER_URL: str = PANEL_INSTALLER_URL
    ACME_EMAIL: Optional[str] = None
    INSTALL_PANEL: bool = True
    TIMEOUT: int = OPERATION_TIMEOUT

    @property
    def nginx_conf(self) -> Path:
        return self.NGINX_DIR / "nginx.conf"

    @property
    def conf_d(self) -> Path:
        return self.NGINX_DIR / "conf.d"

    @property
    def sites_enabled(self) -> Path:
        return self.NGINX_DIR / "sites-enabled"

    def site_config_path(self, domain: str) -> Path:
        """Site file for a domain; blank domains share a fixed decoy file."""
        name = domain if domain else "decoy"
        return self.conf_d / f"{name}.conf"

    def certificate_paths(self, domain: str) -> Tuple[Path, Path]:
        live = self.LETSENCRYPT_LIVE / domain
        return live / "fullchain.pem", live / "privkey.pem"

    def to_dict(self) -> Dict[str, Any]:
        """Convert the config to a dictionary."""
        return {
            key: str(value) if isinstance(value, Path) else value
            for key, value in asdict(self).items()
        }


@dataclass
class SetupState:
    """Values discovered during a single run."""

    os_id: str = ""
    domain: str = ""
    skip_ssl: bool = True
    public_ip: Optional[str] = None

    @property
    def https_enabled(self) -> bool:
        return bool(self.domain) and not self.skip_ssl
