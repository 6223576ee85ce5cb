"""
OS detection from /etc/os-release and the package installation that goes with it.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Tuple, Union

from vpn_server_setup.commands import run_command
from vpn_server_setup.logger import get_logger

BASE_PACKAGES: List[str] = [
    "vim",
    "nginx",
    "fail2ban",
    "certbot",
    "python3-certbot-nginx",
    "curl",
    "socat",
    "git",
    "tar",
]

ARCH_PACKAGES: List[str] = [
    "vim",
    "nginx",
    "fail2ban",
    "certbot",
    "certbot-nginx",
    "curl",
    "socat",
    "git",
]

FAMILIES: Dict[str, Tuple[str, ...]] = {
    "debian": ("ubuntu", "debian"),
    "rhel": ("rocky", "almalinux", "centos", "rhel"),
    "arch": ("arch",),
}

NGINX_USERS: Dict[str, str] = {
    "debian": "www-data",
    "rhel": "nginx",
    "arch": "http",
}


class UnsupportedDistributionError(Exception):
    """The running OS cannot be detected or is not supported."""


@dataclass(frozen=True)
class Distro:
    id: str
    family: str
    packages: List[str] = field(default_factory=list)

    @property
    def nginx_user(self) -> str:
        return NGINX_USERS[self.family]

    def install_commands(self) -> List[List[str]]:
        """The package-manager invocations that bring the system up to date and install packages."""
        if self.family == "debian":
            return [
                ["apt-get", "update", "-y"],
                ["apt-get", "install", "-y", *self.packages],
            ]
        if self.family == "rhel":
            return [
                ["dnf", "install", "-y", "epel-release"],
                ["dnf", "update", "-y"],
                ["dnf", "install", "-y", *self.packages],
            ]
        return [
            ["pacman", "-Syu", "--noconfirm"],
            ["pacman", "-S", "--noconfirm", *self.packages],
        ]


def parse_os_release(content: str) -> Dict[str, str]:
    """Parse os-release KEY=value lines into a dict, dropping quotes and comments."""
    data: Dict[str, str] = {}
    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        data[key.strip()] = value.strip().strip('"').strip("'")
    return data


def family_for(os_id: str) -> str:
    """Map an os-release ID to its package family (debian, rhel or arch)."""
    for family, ids in FAMILIES.items():
        if os_id in ids:
            return family
    raise UnsupportedDistributionError(f"Unsupported Distribution: {os_id}")


def detect_distro(os_release: Union[str, Path] = "/etc/os-release") -> Distro:
    """
    Identify the running distribution from os-release.

    Raises UnsupportedDistributionError when the file is missing or the ID
    belongs to no supported family.
    """
    logger = get_logger()
    os_release = Path(os_release)
    if not os_release.is_file():
        raise UnsupportedDistributionError("Cannot detect OS. Exiting.")

    data = parse_os_release(os_release.read_text())
    os_id = data.get("ID", "").lower()
    family = family_for(os_id)
    packages = ARCH_PACKAGES if family == "arch" else BASE_PACKAGES
    logger.info(f"Detected {data.get('PRETTY_NAME', os_id)} ({family} family)")
    return Distro(id=os_id, family=family, packages=list(packages))


def install_packages(distro: Distro) -> None:
    """Install dependencies and enable the nginx and fail2ban services."""
    logger = get_logger()
    env = None
    if distro.family == "debian":
        env = dict(os.environ, DEBIAN_FRONTEND="noninteractive")

    for cmd in distro.install_commands():
        logger.info(f"Running: {' '.join(cmd[:3])}...")
        run_command(cmd, env=env)

    run_command(["systemctl", "enable", "nginx", "fail2ban"])
    run_command(["systemctl", "start", "nginx"])
    logger.info(f"Installed {len(distro.packages)} packages.")
