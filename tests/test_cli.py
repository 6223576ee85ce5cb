import pytest
from click.testing import CliRunner

from vpn_server_setup import cli


class RecordingSetup:
    instances = []
    outcome = None

    def __init__(self, config, state, interactive=True):
        self.config = config
        self.state = state
        self.interactive = interactive
        self.cleaned = False
        RecordingSetup.instances.append(self)

    def run_all_phases(self):
        if RecordingSetup.outcome is not None:
            raise RecordingSetup.outcome
        return True

    def cleanup(self):
        self.cleaned = True


@pytest.fixture
def recorded(monkeypatch, tmp_path):
    RecordingSetup.instances = []
    RecordingSetup.outcome = None
    monkeypatch.setattr(cli, "VpnServerSetup", RecordingSetup)
    monkeypatch.setattr(cli, "setup_signal_handlers", lambda: None)
    monkeypatch.setattr(cli.atexit, "register", lambda func: None)
    monkeypatch.setattr(cli, "setup_logger", lambda log_file, debug=False: None)
    return RecordingSetup.instances


def test_defaults_prompt_interactively(recorded):
    result = CliRunner().invoke(cli.main, [])
    assert result.exit_code == 0, result.output
    setup = recorded[0]
    assert setup.interactive is True
    assert setup.state.domain == ""
    assert setup.config.INSTALL_PANEL is True
    assert setup.config.ACME_EMAIL is None
    assert setup.config.LOG_FILE == "/var/log/vpn_server_setup.log"


def test_flags_populate_config(recorded, tmp_path):
    log_file = tmp_path / "run.log"
    result = CliRunner().invoke(
        cli.main,
        [
            "--domain", "HTTPS://VPN.Example.com/",
            "--email", "ops@example.com",
            "--skip-panel",
            "--log-file", str(log_file),
        ],
    )
    assert result.exit_code == 0, result.output
    setup = recorded[0]
    assert setup.interactive is False
    assert setup.state.domain == "vpn.example.com"
    assert setup.config.ACME_EMAIL == "ops@example.com"
    assert setup.config.INSTALL_PANEL is False
    assert setup.config.LOG_FILE == str(log_file)


def test_empty_domain_flag_skips_prompt(recorded):
    result = CliRunner().invoke(cli.main, ["--domain", ""])
    assert result.exit_code == 0, result.output
    assert recorded[0].interactive is False
    assert recorded[0].state.domain == ""


def test_invalid_domain_rejected(recorded):
    result = CliRunner().invoke(cli.main, ["--domain", "not_a_domain"])
    assert result.exit_code == 2
    assert "not a valid domain" in result.output
    assert recorded == []


def test_exit_code_from_setup_is_kept(recorded):
    RecordingSetup.outcome = SystemExit(1)
    result = CliRunner().invoke(cli.main, [])
    assert result.exit_code == 1


def test_unexpected_error_exits_1_after_cleanup(recorded):
    RecordingSetup.outcome = RuntimeError("disk full")
    result = CliRunner().invoke(cli.main, [])
    assert result.exit_code == 1
    assert recorded[0].cleaned is True


def test_keyboard_interrupt_exits_130(recorded):
    RecordingSetup.outcome = KeyboardInterrupt()
    result = CliRunner().invoke(cli.main, [])
    assert result.exit_code == 130
