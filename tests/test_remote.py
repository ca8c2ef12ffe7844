import logging
import os

import pytest
from urllib3.exceptions import ReadTimeoutError

from fakes import FakeAPI
from fakes import FakeGitHub
from fakes import OTHER_SHA
from fakes import pull_response
from fakes import SHA
from fakes import zip_bytes
from ghremote.config import RemoteDefaults
from ghremote.errors import InvalidSpecError
from ghremote.errors import MissingOwnerError
from ghremote.errors import NameClashError
from ghremote.errors import NotFoundError
from ghremote.errors import RefResolutionError
from ghremote.github import GitHubAPI
from ghremote.parser import parse_repo_spec
from ghremote.remote import build_remote
from ghremote.remote import download_remotes
from ghremote.remote import github_remote
from ghremote.remote import GitHubRemote
from ghremote.remote import ProvenanceRecord
from ghremote.remote import remote_metadata
from ghremote.remote import remote_sha
from ghremote.remote import resolve_remotes
from ghremote.selectors import Pull
from ghremote.selectors import Resolution

DEFAULTS = RemoteDefaults()


def test_build_remote():
    remote = build_remote(parse_repo_spec("hadley/devtools"), Resolution("master"), DEFAULTS)
    assert remote == GitHubRemote("api.github.com", "hadley", "devtools", "master")
    assert str(remote) == "hadley/devtools@master"


def test_build_remote_owner_override():
    spec = parse_repo_spec("klutometis/roxygen#142")
    remote = build_remote(spec, Resolution("feat", owner="fork"), DEFAULTS)
    assert remote.owner == "fork"
    assert remote.ref == "feat"


def test_build_remote_default_username(caplog: pytest.LogCaptureFixture):
    defaults = RemoteDefaults(username="hadley")
    with caplog.at_level(logging.WARNING):
        remote = build_remote(parse_repo_spec("devtools"), Resolution("master"), defaults)
    assert remote.owner == "hadley"
    assert "Username parameter is deprecated. Please use hadley/devtools" in caplog.text


def test_build_remote_explicit_owner_no_warning(caplog: pytest.LogCaptureFixture):
    defaults = RemoteDefaults(username="someone")
    build_remote(parse_repo_spec("hadley/devtools"), Resolution("master"), defaults)
    assert "deprecated" not in caplog.text


def test_build_remote_missing_owner():
    with pytest.raises(MissingOwnerError, match="'devtools'"):
        build_remote(parse_repo_spec("devtools"), Resolution("master"), DEFAULTS)


@pytest.mark.parametrize(
    ("spec", "subdir", "default", "expected"),
    [
        ("o/r/pkg", "arg", "default", "pkg"),
        ("o/r", "arg", "default", "arg"),
        ("o/r", None, "default", "default"),
        ("o/r", None, None, None),
    ],
)
def test_build_remote_subdir(spec, subdir, default, expected):
    remote = build_remote(
        parse_repo_spec(spec),
        Resolution("master"),
        RemoteDefaults(subdir=default),
        subdir=subdir,
    )
    assert remote.subdir == expected


def test_build_remote_carries_defaults():
    defaults = RemoteDefaults(host="github.example.com/api/v3", auth_token="secret")
    remote = build_remote(parse_repo_spec("o/r"), Resolution("main"), defaults, sha=SHA)
    assert remote.host == "github.example.com/api/v3"
    assert remote.auth_token == "secret"
    assert remote.sha == SHA
    assert "secret" not in repr(remote)


def test_github_remote(fake_api: FakeAPI):
    remote = github_remote("hadley/httr@v0.4", DEFAULTS, fake_api)
    assert str(remote) == "hadley/httr@v0.4"
    assert not fake_api.calls


def test_github_remote_ref_argument(fake_api: FakeAPI):
    assert github_remote("o/r", DEFAULTS, fake_api, ref="dev").ref == "dev"
    # a selector in the REPOSPEC wins over the ref argument
    assert github_remote("o/r@v1", DEFAULTS, fake_api, ref="dev").ref == "v1"


def test_github_remote_pull():
    api = FakeAPI(pulls={("klutometis", "roxygen", 142): pull_response("fork", "feat")})
    remote = github_remote("klutometis/roxygen#142", DEFAULTS, api)
    assert (remote.owner, remote.repo, remote.ref) == ("fork", "roxygen", "feat")


def test_github_remote_pull_default_username():
    api = FakeAPI(pulls={("hadley", "devtools", 3): pull_response("fork", "feat")})
    remote = github_remote("devtools", RemoteDefaults(username="hadley"), api, ref=Pull(3))
    assert remote.owner == "fork"


def test_github_remote_invalid(fake_api: FakeAPI):
    with pytest.raises(InvalidSpecError):
        github_remote("bad spec@@", DEFAULTS, fake_api)


def test_resolve_remotes(caplog: pytest.LogCaptureFixture):
    api = FakeAPI(pulls={("c", "d", 7): pull_response("e", "fix")})
    resolved, failures = resolve_remotes(["a/b", "bad spec@@", "c/d#7"], DEFAULTS, api)

    assert [(spec, str(remote)) for spec, remote in resolved] == [
        ("a/b", "a/b@master"),
        ("c/d#7", "e/d@fix"),
    ]
    assert [failure.spec for failure in failures] == ["bad spec@@"]
    assert isinstance(failures[0].error, InvalidSpecError)
    assert "Could not resolve 'bad spec@@'" in caplog.text
    assert "Encountered an error while resolving remotes." in caplog.text


def test_resolve_remotes_api_failure():
    api = FakeAPI(releases={("c", "d"): []})
    resolved, failures = resolve_remotes(["a/b#1", "c/d@*", "e/f"], DEFAULTS, api)
    assert [spec for spec, _ in resolved] == ["e/f"]
    assert [type(failure.error) for failure in failures] == [NotFoundError, NotFoundError]


def test_resolve_remotes_network_errors(fake_github: FakeGitHub):
    fake_github.add(
        "repos/c/d/pulls/7",
        pull_response("e", "fix"),
        error=ReadTimeoutError(None, "repos/c/d/pulls/7", "Read timed out."),
    )
    fake_github.add("repos/g/h/pulls/8", body=b"<html>proxy</html>")
    fake_github.add("repos/i/j/pulls/9", {"head": {"ref": "fix"}})

    resolved, failures = resolve_remotes(
        ["a/b", "c/d#7", "g/h#8", "i/j#9", "e/f"], DEFAULTS, GitHubAPI()
    )

    assert [spec for spec, _ in resolved] == ["a/b", "e/f"]
    assert [failure.spec for failure in failures] == ["c/d#7", "g/h#8", "i/j#9"]
    assert all(isinstance(failure.error, RefResolutionError) for failure in failures)
    assert failures[0].error.status is None
    assert "invalid response" in str(failures[1].error)


def test_provenance_record():
    record = ProvenanceRecord("api.github.com", "httr", "hadley", "v0.4", SHA)
    assert record.as_dict() == {
        "RemoteType": "github",
        "RemoteHost": "api.github.com",
        "RemoteRepo": "httr",
        "RemoteUsername": "hadley",
        "RemoteRef": "v0.4",
        "RemoteSha": SHA,
        "GithubRepo": "httr",
        "GithubUsername": "hadley",
        "GithubRef": "v0.4",
        "GithubSHA1": SHA,
    }


def test_provenance_record_subdir():
    record = ProvenanceRecord("api.github.com", "r-logging", "mfrasca", "master", SHA, "pkg")
    data = record.as_dict()
    assert data["RemoteSubdir"] == "pkg"
    assert data["GithubSubdir"] == "pkg"


def test_archive_name():
    remote = GitHubRemote("api.github.com", "hadley", "httr", "feature/x y")
    assert remote.archive_name() == "hadley-httr-feature_x_y.zip"
    assert os.path.basename(remote.archive_name()) == remote.archive_name()


def test_record_name():
    remote = GitHubRemote("api.github.com", "o", "r", "master")
    assert remote.record_name() == "o-r-master.zip.yaml"
    with_subdir = GitHubRemote("api.github.com", "o", "r", "master", subdir="pkg/sub")
    assert with_subdir.record_name() == "o-r-master.zip.pkg_sub.yaml"


REMOTE = GitHubRemote("api.github.com", "hadley", "httr", "v0.4")


def test_sha_known(fake_api: FakeAPI, make_archive):
    remote = GitHubRemote("api.github.com", "hadley", "httr", "v0.4", sha=OTHER_SHA)
    bundle = make_archive(comment=SHA.encode())
    assert remote_sha(remote, fake_api, bundle) == OTHER_SHA
    assert not fake_api.calls


def test_sha_from_bundle(fake_api: FakeAPI, make_archive):
    bundle = make_archive(comment=SHA.encode())
    assert remote_sha(REMOTE, fake_api, bundle) == SHA
    assert not fake_api.calls


def test_sha_bundle_without_comment(make_archive):
    api = FakeAPI(commits={("hadley", "httr", "v0.4"): {"sha": OTHER_SHA}})
    assert remote_sha(REMOTE, api, make_archive()) == OTHER_SHA
    assert api.calls == [("commit", "hadley", "httr", "v0.4")]


def test_sha_from_api():
    api = FakeAPI(commits={("hadley", "httr", "v0.4"): {"sha": OTHER_SHA}})
    assert remote_sha(REMOTE, api) == OTHER_SHA


def test_remote_metadata(fake_api: FakeAPI, make_archive):
    remote = GitHubRemote("api.github.com", "mfrasca", "r-logging", "master", subdir="pkg")
    record = remote_metadata(remote, fake_api, make_archive(comment=SHA.encode()))
    assert record == ProvenanceRecord(
        "api.github.com", "r-logging", "mfrasca", "master", SHA, subdir="pkg"
    )


def test_download_remotes(fake_github: FakeGitHub, tmp_path):
    good = GitHubRemote("api.github.com", "hadley", "httr", "v0.4", auth_token="secret")
    missing = GitHubRemote("api.github.com", "hadley", "gone", "master")
    fake_github.add("repos/hadley/httr/zipball/v0.4", body=zip_bytes(comment=SHA.encode()))
    fake_github.add("repos/hadley/gone/zipball/master", {"message": "Not Found"}, status=404)

    downloaded, failed = download_remotes(
        [good, missing], str(tmp_path), GitHubAPI(auth_token="secret")
    )

    assert downloaded == [(good, os.path.join(tmp_path, "hadley-httr-v0.4.zip"))]
    assert [remote for remote, _ in failed] == [missing]
    assert not os.path.exists(os.path.join(tmp_path, "hadley-gone-master.zip"))
    with open(downloaded[0][1], "rb") as file:
        assert file.read() == zip_bytes(comment=SHA.encode())
    (headers,) = fake_github.requested("repos/hadley/httr/zipball/v0.4")
    assert "authorization" in headers


def test_sha_malformed_commit():
    api = FakeAPI(commits={("hadley", "httr", "v0.4"): {"commit": {}}})
    with pytest.raises(RefResolutionError, match="invalid response"):
        remote_sha(REMOTE, api)


def test_download_remotes_shared_archive(fake_github: FakeGitHub, tmp_path):
    pkg1 = GitHubRemote("api.github.com", "o", "r", "master", subdir="pkg1")
    pkg2 = GitHubRemote("api.github.com", "o", "r", "master", subdir="pkg2")
    fake_github.add("repos/o/r/zipball/master", body=zip_bytes())

    downloaded, failed = download_remotes([pkg1, pkg2, pkg1], str(tmp_path), GitHubAPI())

    archive = os.path.join(tmp_path, "o-r-master.zip")
    assert downloaded == [(pkg1, archive), (pkg2, archive)]
    assert not failed
    assert len(fake_github.requested("repos/o/r/zipball/master")) == 1


def test_download_remotes_name_clash(fake_github: FakeGitHub, tmp_path):
    slash = GitHubRemote("api.github.com", "o", "r", "feature/x")
    underscore = GitHubRemote("api.github.com", "o", "r", "feature_x")
    assert slash.archive_name() == underscore.archive_name()
    fake_github.add("repos/o/r/zipball/feature/x", body=b"slash")

    downloaded, failed = download_remotes([slash, underscore], str(tmp_path), GitHubAPI())

    assert downloaded == [(slash, os.path.join(tmp_path, "o-r-feature_x.zip"))]
    ((remote, error),) = failed
    assert remote == underscore
    assert isinstance(error, NameClashError)
    assert "o/r@feature/x" in str(error)
    assert not fake_github.requested("repos/o/r/zipball/feature_x")
    with open(downloaded[0][1], "rb") as file:
        assert file.read() == b"slash"


def test_download_remotes_record_clash(fake_github: FakeGitHub, tmp_path):
    nested = GitHubRemote("api.github.com", "o", "r", "master", subdir="pkg/a")
    flat = GitHubRemote("api.github.com", "o", "r", "master", subdir="pkg_a")
    fake_github.add("repos/o/r/zipball/master", body=zip_bytes())

    downloaded, failed = download_remotes([nested, flat], str(tmp_path), GitHubAPI())

    assert [remote for remote, _ in downloaded] == [nested]
    assert [remote for remote, _ in failed] == [flat]
    assert isinstance(failed[0][1], NameClashError)
