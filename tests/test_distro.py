import subprocess

import pytest

from vpn_server_setup.distro import (
    Distro,
    UnsupportedDistributionError,
    detect_distro,
    install_packages,
    parse_os_release,
)
from tests.conftest import write_os_release


def test_parse_os_release_strips_quotes_and_comments():
    data = parse_os_release(
        '# comment\nNAME="Ubuntu"\n\nID=ubuntu\nVERSION_ID=\'24.04\'\nBROKEN LINE\n'
    )
    assert data == {"NAME": "Ubuntu", "ID": "ubuntu", "VERSION_ID": "24.04"}


@pytest.mark.parametrize(
    "os_id, family, user",
    [
        ("ubuntu", "debian", "www-data"),
        ("debian", "debian", "www-data"),
        ("rocky", "rhel", "nginx"),
        ("almalinux", "rhel", "nginx"),
        ("centos", "rhel", "nginx"),
        ("rhel", "rhel", "nginx"),
        ("arch", "arch", "http"),
    ],
)
def test_detect_distro_families(config, os_id, family, user):
    write_os_release(config, os_id)
    detected = detect_distro(config.OS_RELEASE)
    assert detected.id == os_id
    assert detected.family == family
    assert detected.nginx_user == user


def test_detect_distro_rejects_unknown_os(config):
    write_os_release(config, "gentoo")
    with pytest.raises(UnsupportedDistributionError, match="Unsupported Distribution: gentoo"):
        detect_distro(config.OS_RELEASE)


def test_detect_distro_without_os_release(config):
    with pytest.raises(UnsupportedDistributionError, match="Cannot detect OS"):
        detect_distro(config.OS_RELEASE)


def test_arch_package_list_uses_certbot_nginx(config):
    write_os_release(config, "arch")
    detected = detect_distro(config.OS_RELEASE)
    assert "certbot-nginx" in detected.packages
    assert "tar" not in detected.packages
    assert detected.install_commands()[0] == ["pacman", "-Syu", "--noconfirm"]


def test_rhel_installs_epel_first():
    commands = Distro("rocky", "rhel", ["nginx"]).install_commands()
    assert commands == [
        ["dnf", "install", "-y", "epel-release"],
        ["dnf", "update", "-y"],
        ["dnf", "install", "-y", "nginx"],
    ]


def test_install_packages_debian(runner):
    install_packages(Distro("ubuntu", "debian", ["nginx", "fail2ban"]))
    assert runner.calls == [
        ["apt-get", "update", "-y"],
        ["apt-get", "install", "-y", "nginx", "fail2ban"],
        ["systemctl", "enable", "nginx", "fail2ban"],
        ["systemctl", "start", "nginx"],
    ]
    assert runner.envs[0]["DEBIAN_FRONTEND"] == "noninteractive"
    assert runner.envs[-1] is None


def test_install_packages_propagates_failures(runner):
    runner.returncodes[("dnf", "update")] = 1
    with pytest.raises(subprocess.CalledProcessError):
        install_packages(Distro("rocky", "rhel", ["nginx"]))
    assert not runner.ran("systemctl")
