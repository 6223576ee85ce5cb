import logging
import os
import signal
import stat

import pytest
from rich.logging import RichHandler

from vpn_server_setup import cli
from vpn_server_setup.logger import LOGGER_NAME, setup_logger


@pytest.fixture(autouse=True)
def reset_handlers():
    yield
    log = logging.getLogger(LOGGER_NAME)
    for handler in log.handlers[:]:
        log.removeHandler(handler)
        handler.close()


def handler_of(log, kind):
    return next(h for h in log.handlers if type(h) is kind)


def test_log_file_is_private_and_debug_console(tmp_path):
    log_file = tmp_path / "logs" / "setup.log"
    log = setup_logger(log_file, debug=True)

    assert stat.S_IMODE(os.stat(log_file).st_mode) == 0o600
    assert handler_of(log, RichHandler).level == logging.DEBUG
    assert handler_of(log, logging.FileHandler).level == logging.DEBUG

    log.debug("written to file")
    handler_of(log, logging.FileHandler).flush()
    assert "[DEBUG] written to file" in log_file.read_text()


def test_console_defaults_to_info(tmp_path):
    log = setup_logger(tmp_path / "setup.log")
    assert handler_of(log, RichHandler).level == logging.INFO


def test_repeated_setup_does_not_duplicate_handlers(tmp_path):
    setup_logger(tmp_path / "setup.log")
    log = setup_logger(tmp_path / "setup.log")
    assert len(log.handlers) == 2


def test_unwritable_log_dir_falls_back_to_console(tmp_path, capsys):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("")
    log = setup_logger(blocker / "setup.log")

    assert [type(h) for h in log.handlers] == [RichHandler]
    assert "file logging disabled" in capsys.readouterr().err


@pytest.mark.parametrize(
    "signum, code",
    [(signal.SIGINT, 130), (signal.SIGTERM, 143), (signal.SIGHUP, 128 + signal.SIGHUP)],
)
def test_signal_handler_exit_codes(monkeypatch, signum, code):
    cleaned = []
    monkeypatch.setattr(cli, "cleanup_temp_files", lambda: cleaned.append(True))
    with pytest.raises(SystemExit) as exc:
        cli.signal_handler(signum, None)
    assert exc.value.code == code
    assert cleaned == [True]


def test_signal_handlers_installed(monkeypatch):
    installed = {}
    monkeypatch.setattr(cli.signal, "signal", lambda sig, handler: installed.setdefault(sig, handler))
    cli.setup_signal_handlers()
    assert installed == {
        signal.SIGINT: cli.signal_handler,
        signal.SIGTERM: cli.signal_handler,
        signal.SIGHUP: cli.signal_handler,
    }
