import subprocess
from pathlib import Path
from typing import Dict, List

import pytest

from vpn_server_setup import certificates, commands, distro, fail2ban, nginx, panel
from vpn_server_setup.config import Config


class FakeRunner:
    """Records commands instead of running them; returncodes keyed by the first two args."""

    def __init__(self) -> None:
        self.calls: List[List[str]] = []
        self.envs: List[Dict[str, str]] = []
        self.returncodes: Dict[tuple, int] = {}

    def __call__(self, cmd, capture_output=False, text=True, check=True, timeout=None, env=None):
        self.calls.append(list(cmd))
        self.envs.append(env)
        code = self.returncodes.get(tuple(cmd[:2]), 0)
        if check and code != 0:
            raise subprocess.CalledProcessError(code, cmd, output="", stderr="boom")
        return subprocess.CompletedProcess(cmd, code, stdout="", stderr="boom" if code else "")

    def programs(self) -> List[str]:
        return [call[0] for call in self.calls]

    def ran(self, *prefix: str) -> bool:
        return any(call[: len(prefix)] == list(prefix) for call in self.calls)


@pytest.fixture
def config(tmp_path: Path) -> Config:
    root = tmp_path / "root"
    root.mkdir()
    return Config(
        LOG_FILE=str(tmp_path / "setup.log"),
        OS_RELEASE=root / "etc" / "os-release",
        NGINX_DIR=root / "etc" / "nginx",
        WEBROOT=root / "var" / "www" / "html",
        LETSENCRYPT_LIVE=root / "etc" / "letsencrypt" / "live",
        FAIL2BAN_JAIL=root / "etc" / "fail2ban" / "jail.local",
        HOSTS_FILE=root / "etc" / "hosts",
        HOSTNAME_FILE=root / "etc" / "hostname",
        PUBLIC_IP_URLS=["https://ip.test/one", "https://ip.test/two"],
        PANEL_INSTALLER_URL="https://panel.test/install.sh",
    )


@pytest.fixture
def runner(monkeypatch: pytest.MonkeyPatch) -> FakeRunner:
    fake = FakeRunner()
    for module in (commands, distro, nginx, certificates, fail2ban, panel):
        monkeypatch.setattr(module, "run_command", fake)
    return fake


@pytest.fixture
def no_binaries(monkeypatch: pytest.MonkeyPatch) -> None:
    """Pretend none of nginx, certbot or hostnamectl are installed."""
    for module in (nginx, certificates):
        monkeypatch.setattr(module, "command_exists", lambda name: False)


def write_os_release(config: Config, os_id: str) -> None:
    config.OS_RELEASE.parent.mkdir(parents=True, exist_ok=True)
    config.OS_RELEASE.write_text(
        f'NAME="Test Linux"\nID={os_id}\nPRETTY_NAME="Test Linux ({os_id})"\n'
    )
