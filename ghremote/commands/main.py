import logging
import os
import shutil
import typing as t

import click
import urllib3
import yaml
from click import echo

import ghremote.clickExt as clickExt
from ghremote import fs
from ghremote.config import Config
from ghremote.config import pass_userinfo
from ghremote.config import RemoteDefaults
from ghremote.config import UserInfo
from ghremote.errors import ArchiveReadError
from ghremote.errors import GHRemoteError
from ghremote.formatting import format_bytes
from ghremote.formatting import format_columns
from ghremote.ghremote import cli
from ghremote.github import GitHubAPI
from ghremote.logging import timed_progress
from ghremote.provenance import extract_sha
from ghremote.remote import download_remotes
from ghremote.remote import GitHubRemote
from ghremote.remote import ProvenanceRecord
from ghremote.remote import remote_metadata
from ghremote.remote import resolve_remotes
from ghremote.selectors import Selector
from ghremote.spec import REPOSPEC

logger = logging.getLogger(__name__)


def remote_options(f):
    """Options shared by every command that resolves a :term:`REPOSPEC`."""
    options = [
        click.option(
            "--ref",
            type=clickExt.SelectorType(),
            metavar="REF",
            help="Ref to use when REPOSPEC has none: a git ref, '#PULL', or '*' for the latest release.",
        ),
        click.option(
            "--subdir",
            metavar="PATH",
            help="Subdirectory to use when REPOSPEC has none.",
        ),
        click.option(
            "--username",
            metavar="OWNER",
            help="Owner to use when REPOSPEC has none. Deprecated: use OWNER/REPO.",
        ),
        click.option(
            "--host",
            metavar="HOST",
            help="GitHub API host, for GitHub Enterprise.",
        ),
        click.option(
            "--auth-token",
            metavar="TOKEN",
            help="Personal access token. Defaults to the $GITHUB_PAT environment variable.",
        ),
    ]
    for option in reversed(options):
        f = option(f)
    return f


def make_api(config: Config, defaults: RemoteDefaults):
    return GitHubAPI(
        defaults.host,
        defaults.auth_token,
        timeout=urllib3.Timeout(
            connect=config.downloading.connect_timeout,
            read=config.downloading.read_timeout,
        ),
    )


def resolve_specs(
    userinfo: UserInfo,
    repos: t.Sequence[str],
    ref: t.Optional[Selector],
    subdir: t.Optional[str],
    username: t.Optional[str],
    host: t.Optional[str],
    auth_token: t.Optional[str],
    sha: t.Optional[str] = None,
):
    config = userinfo.config
    defaults = RemoteDefaults.from_config(
        config,
        host=host,
        auth_token=auth_token,
        username=username,
        subdir=subdir,
    )
    api = make_api(config, defaults)
    resolved, failures = resolve_remotes(repos, defaults, api, ref=ref, sha=sha)
    return api, resolved, failures


def write_record(path: str, record: ProvenanceRecord):
    # Use a temp file to avoid leaving a partial record if serialization fails
    with fs.temporary_file() as temp:
        with open(temp, "w") as file:
            yaml.safe_dump(record.as_dict(), file, sort_keys=False)
        shutil.move(temp, path)
    logger.debug(f"Provenance record saved to '{path}'.")


@cli.command(
    no_args_is_help=True,
    cls=clickExt.CommandExt,
    usages=[[f"{REPOSPEC}..."]],
)
@click.argument("repos", nargs=-1, required=True)
@remote_options
@pass_userinfo
@click.pass_context
def resolve(
    ctx: click.Context,
    userinfo: UserInfo,
    repos: t.Tuple[str, ...],
    ref: t.Optional[Selector],
    subdir: t.Optional[str],
    username: t.Optional[str],
    host: t.Optional[str],
    auth_token: t.Optional[str],
):
    """Resolve repositories to a concrete ref.

    Pull requests and releases are looked up with the GitHub API.
    Each REPOSPEC is resolved independently; if any fail, the exit status is 1.
    """
    _, resolved, failures = resolve_specs(
        userinfo, repos, ref, subdir, username, host, auth_token
    )
    output = format_columns({spec: str(remote) for spec, remote in resolved})
    if output:
        echo(output)
    if failures:
        ctx.exit(1)


@cli.command(
    no_args_is_help=True,
    cls=clickExt.CommandExt,
    usages=[[f"{REPOSPEC}..."]],
)
@click.argument("repos", nargs=-1, required=True)
@click.option(
    "-d",
    "--dest",
    type=click.Path(file_okay=False),
    help="Directory to download archives to.",
)
@remote_options
@pass_userinfo
@click.pass_context
def download(
    ctx: click.Context,
    userinfo: UserInfo,
    repos: t.Tuple[str, ...],
    dest: t.Optional[str],
    ref: t.Optional[Selector],
    subdir: t.Optional[str],
    username: t.Optional[str],
    host: t.Optional[str],
    auth_token: t.Optional[str],
):
    """Download repository archives and record their provenance.

    Each archive is saved as OWNER-REPO-REF.zip, next to a YAML file with
    the same name plus '.yaml' that records where it came from and the exact
    commit. Repositories that only differ in subdirectory share one archive,
    with one record per subdirectory named OWNER-REPO-REF.zip.SUBDIR.yaml.
    """
    config = userinfo.config
    dest = dest or config.download_directory or os.getcwd()
    os.makedirs(dest, exist_ok=True)

    api, resolved, failures = resolve_specs(
        userinfo, repos, ref, subdir, username, host, auth_token
    )
    errors = len(failures)

    with timed_progress("Downloaded archives in {time:.2f} seconds."):
        downloaded, failed = download_remotes(
            [remote for _, remote in resolved],
            dest,
            api,
            thread_count=config.downloading.thread_count,
        )
    errors += len(failed)

    printed: t.Set[str] = set()
    for remote, archive in downloaded:
        try:
            record = remote_metadata(remote, api, bundle=archive)
        except GHRemoteError as e:
            logger.error(f"Could not determine commit for {remote}: {e}")
            errors += 1
            continue
        write_record(os.path.join(dest, remote.record_name()), record)
        if archive not in printed:
            printed.add(archive)
            logger.debug(f"Saved {remote} ({format_bytes(os.path.getsize(archive))}).")
            echo(archive)

    if errors:
        ctx.exit(1)


def format_record(remote: GitHubRemote, record: ProvenanceRecord):
    return yaml.safe_dump({str(remote): record.as_dict()}, sort_keys=False)


@cli.command(
    no_args_is_help=True,
    cls=clickExt.CommandExt,
    usages=[[f"{REPOSPEC}..."]],
)
@click.argument("repos", nargs=-1, required=True)
@click.option(
    "--sha",
    metavar="SHA",
    help="Commit hash to record instead of looking it up.",
)
@remote_options
@pass_userinfo
@click.pass_context
def metadata(
    ctx: click.Context,
    userinfo: UserInfo,
    repos: t.Tuple[str, ...],
    sha: t.Optional[str],
    ref: t.Optional[Selector],
    subdir: t.Optional[str],
    username: t.Optional[str],
    host: t.Optional[str],
    auth_token: t.Optional[str],
):
    """Show the provenance record for repositories.

    The commit hash is looked up with the GitHub API unless --sha is given.
    """
    api, resolved, failures = resolve_specs(
        userinfo, repos, ref, subdir, username, host, auth_token, sha=sha
    )
    errors = len(failures)
    for _, remote in resolved:
        try:
            record = remote_metadata(remote, api)
        except GHRemoteError as e:
            logger.error(f"Could not determine commit for {remote}: {e}")
            errors += 1
            continue
        echo(format_record(remote, record), nl=False)

    if errors:
        ctx.exit(1)


@cli.command(no_args_is_help=True)
@click.argument(
    "archives", nargs=-1, required=True, type=click.Path(dir_okay=False)
)
@click.pass_context
def sha(ctx: click.Context, archives: t.Tuple[str, ...]):
    """Show the commit hash embedded in downloaded archives.

    Only archives created by GitHub (or `git archive`) contain a commit hash.
    """
    errors = 0
    found: t.Dict[str, str] = {}
    for archive in archives:
        try:
            commit = extract_sha(archive)
        except ArchiveReadError as e:
            logger.error(str(e))
            errors += 1
            continue
        if commit:
            found[archive] = commit
        else:
            logger.warning(f"No commit hash found in '{archive}'.")

    if len(archives) == 1 and found:
        echo(found[archives[0]])
    elif found:
        echo(format_columns(found))

    if errors:
        ctx.exit(1)
