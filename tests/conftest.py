import os
from contextlib import contextmanager

import pytest

from fakes import FakeAPI
from fakes import FakeGitHub
from fakes import zip_bytes
from ghremote import downloading
from ghremote import github


@pytest.fixture
def make_archive(tmp_path):
    def make_archive(name="archive.zip", comment=b"", files=None):
        path = os.path.join(tmp_path, name)
        with open(path, "wb") as file:
            file.write(zip_bytes(files, comment))
        return path

    return make_archive


@pytest.fixture(autouse=True)
def assertion_msg():
    @contextmanager
    def assertion_msg(msg: str):
        try:
            yield
        except AssertionError as e:
            e.args = (e.args[0] + "\n" + msg,)
            raise

    return assertion_msg


@pytest.fixture
def fake_github(monkeypatch: pytest.MonkeyPatch):
    server = FakeGitHub()
    for module in (downloading, github):
        monkeypatch.setattr(module, "open_url", server.open_url)
    return server


@pytest.fixture
def fake_api():
    return FakeAPI()
