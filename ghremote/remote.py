import logging
import os
import typing as t
from dataclasses import dataclass
from dataclasses import field
from gettext import ngettext as _n

from ghremote import fs
from ghremote.config import RemoteDefaults
from ghremote.downloading import download_threaded
from ghremote.downloading import DownloadJob
from ghremote.errors import GHRemoteError
from ghremote.errors import MissingOwnerError
from ghremote.errors import NameClashError
from ghremote.errors import RefResolutionError
from ghremote.github import GitHubAPI
from ghremote.parser import format_repo_spec
from ghremote.parser import parse_repo_spec
from ghremote.parser import RepoSpec
from ghremote.provenance import extract_sha
from ghremote.selectors import Coordinates
from ghremote.selectors import Ref
from ghremote.selectors import resolve_selector
from ghremote.selectors import Resolution
from ghremote.selectors import Selector

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GitHubRemote:
    host: str
    owner: str
    repo: str
    ref: str
    subdir: t.Optional[str] = None
    auth_token: t.Optional[str] = field(default=None, repr=False)
    sha: t.Optional[str] = None

    @property
    def name(self):
        return format_repo_spec(self.owner, self.repo, self.subdir)

    def archive_name(self):
        """A file name for the zipball of this remote.

        Unsafe characters are replaced, so different refs can map to the same name.
        """
        return fs.safe_filename(self.owner, self.repo, self.ref, ext=".zip")

    def record_name(self):
        """A file name for the provenance record, next to the archive."""
        if not self.subdir:
            return self.archive_name() + ".yaml"
        return f"{self.archive_name()}.{fs.safe_filename(self.subdir)}.yaml"

    def __str__(self):
        return f"{self.name}@{self.ref}"


@dataclass(frozen=True)
class ProvenanceRecord:
    host: str
    repo: str
    owner: str
    ref: str
    sha: t.Optional[str]
    subdir: t.Optional[str] = None
    remote_type: str = "github"

    def as_dict(self) -> t.Dict[str, str]:
        """Serialize using the field names external readers depend on."""
        data = {
            "RemoteType": self.remote_type,
            "RemoteHost": self.host,
            "RemoteRepo": self.repo,
            "RemoteUsername": self.owner,
            "RemoteRef": self.ref,
            "RemoteSha": self.sha,
            "RemoteSubdir": self.subdir,
            # Backward compatibility for older readers (e.g. packrat)
            "GithubRepo": self.repo,
            "GithubUsername": self.owner,
            "GithubRef": self.ref,
            "GithubSHA1": self.sha,
            "GithubSubdir": self.subdir,
        }
        return {k: v for k, v in data.items() if v is not None}


def build_remote(
    spec: RepoSpec,
    resolution: Resolution,
    defaults: RemoteDefaults,
    *,
    subdir: t.Optional[str] = None,
    sha: t.Optional[str] = None,
) -> GitHubRemote:
    """Combine a parsed spec and its resolved ref into a :class:`GitHubRemote`.

    Values in :param:`spec` take precedence over :param:`subdir` and :param:`defaults`.

    :raises MissingOwnerError: if no owner is available.
    """
    owner = resolution.owner or spec.owner
    if not owner:
        owner = defaults.username
        if not owner:
            raise MissingOwnerError(str(spec))
        logger.warning(
            f"Username parameter is deprecated. Please use {owner}/{spec.repo}"
        )

    return GitHubRemote(
        host=defaults.host,
        owner=owner,
        repo=spec.repo,
        ref=resolution.ref,
        subdir=spec.subdir or subdir or defaults.subdir,
        auth_token=defaults.auth_token,
        sha=sha,
    )


def github_remote(
    repo: t.Union[str, RepoSpec],
    defaults: RemoteDefaults,
    api: t.Optional[GitHubAPI] = None,
    *,
    ref: t.Optional[t.Union[str, Selector]] = None,
    subdir: t.Optional[str] = None,
    sha: t.Optional[str] = None,
) -> GitHubRemote:
    """Parse and resolve a :term:`REPOSPEC`.

    :param ref: Selector used if :param:`repo` does not include one. A `str` is a plain ref.
    :param api: Client used for selectors that need the API, created from :param:`defaults` if not given.
    """
    spec = parse_repo_spec(repo) if isinstance(repo, str) else repo
    selector = spec.selector or ref
    if isinstance(selector, str):
        selector = Ref(selector)

    api = api or GitHubAPI(defaults.host, defaults.auth_token)
    coords = Coordinates(
        spec.owner or defaults.username,
        spec.repo,
        defaults.host,
        defaults.auth_token,
    )
    resolution = resolve_selector(selector, coords, api)
    return build_remote(spec, resolution, defaults, subdir=subdir, sha=sha)


class Failure(t.NamedTuple):
    spec: str
    error: Exception


def resolve_remotes(
    specs: t.Iterable[str],
    defaults: RemoteDefaults,
    api: t.Optional[GitHubAPI] = None,
    **kwargs: t.Any,
) -> t.Tuple[t.List[t.Tuple[str, GitHubRemote]], t.List[Failure]]:
    """Resolve each spec independently.

    A failure is logged and collected, and never stops the remaining specs from being resolved.

    :returns: The resolved remotes and the failures, each paired with the spec they came from.
    """
    api = api or GitHubAPI(defaults.host, defaults.auth_token)
    resolved: t.List[t.Tuple[str, GitHubRemote]] = []
    failures: t.List[Failure] = []
    for spec in specs:
        try:
            remote = github_remote(spec, defaults, api, **kwargs)
        except GHRemoteError as e:
            logger.error(f"Could not resolve '{spec}': {e}")
            failures.append(Failure(spec, e))
            continue
        logger.debug(f"Resolved '{spec}' to {remote}.")
        resolved.append((spec, remote))

    if failures:
        logger.error(
            _n(
                "Encountered an error while resolving remotes.",
                "Encountered {error_count} errors while resolving remotes.",
                len(failures),
            ).format(error_count=len(failures))
        )
    return resolved, failures


def download_remotes(
    remotes: t.Sequence[GitHubRemote],
    dest_dir: str,
    api: t.Optional[GitHubAPI] = None,
    thread_count=8,
) -> t.Tuple[t.List[t.Tuple[GitHubRemote, str]], t.List[t.Tuple[GitHubRemote, BaseException]]]:
    """Download the zipball of every remote into :param:`dest_dir`, in parallel.

    Remotes that only differ in subdir share one archive, and duplicates are
    skipped. A remote whose archive or record name is already used by a
    different remote fails with :class:`NameClashError`.

    :returns: The downloaded remotes paired with their archive path, and the failed remotes paired with their error.
    """
    downloaded: t.List[t.Tuple[GitHubRemote, str]] = []
    failed: t.List[t.Tuple[GitHubRemote, BaseException]] = []

    # file name -> the remote it belongs to, and the fields that must match to share it
    claimed: t.Dict[str, t.Tuple[GitHubRemote, t.Tuple[t.Optional[str], ...]]] = {}
    archives: t.Dict[str, t.List[GitHubRemote]] = {}
    for remote in remotes:
        archive_key = (remote.owner, remote.repo, remote.ref)
        claims = [
            (remote.archive_name(), archive_key),
            (remote.record_name(), archive_key + (remote.subdir,)),
        ]
        clashes = [
            (name, claimed[name][0])
            for name, key in claims
            if name in claimed and claimed[name][1] != key
        ]
        if clashes:
            name, other = clashes[0]
            error = NameClashError(name, str(remote), str(other))
            logger.error(f"Error downloading {remote}: {error}")
            failed.append((remote, error))
        elif remote.record_name() not in claimed:
            claimed.update((name, (remote, key)) for name, key in claims)
            archives.setdefault(remote.archive_name(), []).append(remote)

    jobs: t.List[DownloadJob] = []
    for name, sharing in archives.items():
        remote = sharing[0]
        label = f"{remote.owner}/{remote.repo}@{remote.ref}"
        logger.info(f"Downloading github repo {label}")
        remote_api = api or GitHubAPI(remote.host, remote.auth_token)
        jobs.append(
            DownloadJob(
                remote_api.zipball(remote.owner, remote.repo, remote.ref),
                os.path.join(dest_dir, name),
                label,
            )
        )

    errors = download_threaded(jobs, thread_count=thread_count)
    for sharing, job, error in zip(archives.values(), jobs, errors):
        for remote in sharing:
            if error:
                logger.error(f"Error downloading {remote}: {error}")
                failed.append((remote, error))
            else:
                downloaded.append((remote, job.dest))
    return downloaded, failed


def remote_sha(
    remote: GitHubRemote,
    api: t.Optional[GitHubAPI] = None,
    bundle: t.Optional[str] = None,
) -> str:
    """Determine the commit hash for :param:`remote` with as few requests as possible."""
    # Might be cached already (e.g. when re-installing)
    if remote.sha:
        return remote.sha

    # Might be able to get it from the zip archive
    if bundle:
        sha = extract_sha(bundle)
        if sha:
            return sha
        logger.debug(f"No commit hash in '{bundle}', querying the API.")

    # Otherwise ask the API
    api = api or GitHubAPI(remote.host, remote.auth_token)
    commit = api.commit(remote.owner, remote.repo, remote.ref)
    try:
        return commit["sha"]
    except (KeyError, TypeError) as e:
        path = f"repos/{remote.owner}/{remote.repo}/commits/{remote.ref}"
        raise RefResolutionError(path, 200, "invalid response") from e


def remote_metadata(
    remote: GitHubRemote,
    api: t.Optional[GitHubAPI] = None,
    bundle: t.Optional[str] = None,
) -> ProvenanceRecord:
    sha = remote_sha(remote, api, bundle)
    return ProvenanceRecord(
        host=remote.host,
        repo=remote.repo,
        owner=remote.owner,
        ref=remote.ref,
        sha=sha,
        subdir=remote.subdir,
    )
