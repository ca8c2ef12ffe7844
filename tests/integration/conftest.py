import logging
import os
import pathlib
from contextlib import contextmanager

import pytest
from click.testing import CliRunner

from ghremote import config
from ghremote.ghremote import cli as ghremote_cli
from ghremote.logging import EchoHandler


def pytest_collection_modifyitems(session, config, items):
    module = pathlib.Path(os.path.dirname(__file__))
    for item in items:
        if module == item.path.parent:
            item.add_marker(pytest.mark.integration_test)


def get_commands(cli, *, prefix=""):
    for cmd in cli.commands.values():
        if hasattr(cmd, "commands"):
            yield from get_commands(cmd, prefix=prefix + f"{cmd.name} ")
        else:
            cmd.qualified_name = prefix + cmd.name
            yield cmd


@pytest.fixture(
    scope="module",
    params=list(get_commands(ghremote_cli)),
    ids=lambda cmd: cmd.qualified_name,
)
def command(request):
    yield request.param


@pytest.fixture(scope="function")
def runner():
    return CliRunner()


@pytest.fixture
def runner_result(runner, assertion_msg):
    @contextmanager
    def runner_result(*args, **kwargs):
        result = runner.invoke(*args, **kwargs)
        error_msg = "=" * 10 + "\nCOMMAND OUTPUT\n\n" + result.output + "=" * 10
        with assertion_msg(error_msg):
            yield result

    return runner_result


@pytest.fixture(autouse=True)
def mock_network(fake_github):
    """Requests that are not registered with `fake_github` fail the test"""
    yield fake_github


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch: pytest.MonkeyPatch, tmp_path):
    path = os.path.join(tmp_path, "config", "config.yaml")
    monkeypatch.setattr(config, "CONFIG_FILE", path)
    monkeypatch.delenv("GITHUB_PAT", raising=False)
    monkeypatch.delenv("GHREMOTE_DEBUG", raising=False)
    return path


@pytest.fixture(autouse=True)
def reset_logging():
    """The cli configures the package logger, which would hide records from `caplog` in later tests"""
    yield
    logger = logging.getLogger("ghremote")
    for handler in [h for h in logger.handlers if isinstance(h, EchoHandler)]:
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
