import json
import logging
import typing as t

import urllib3
import urllib3.util
from urllib3.exceptions import HTTPError

from ghremote.downloading import DEFAULT_TIMEOUT
from ghremote.downloading import Download
from ghremote.downloading import open_url
from ghremote.downloading import URLResponse
from ghremote.errors import RefResolutionError

logger = logging.getLogger(__name__)


API_HOST = "api.github.com"
# GitHub accepts a token as the basic auth username with this fixed password
TOKEN_PASSWORD = "x-oauth-basic"


class PullRequest(t.TypedDict):
    user: t.Dict[str, t.Any]
    head: t.Dict[str, t.Any]


class GitRelease(t.TypedDict):
    tag_name: str


class Commit(t.TypedDict):
    sha: str


def _error_message(response: URLResponse):
    try:
        return str(json.loads(response.read())["message"])
    except Exception:
        return ""


class GitHubAPI:
    """Read-only client for the subset of the GitHub REST API needed to resolve remotes.

    :param host: API host, override for GitHub Enterprise (e.g. `github.example.com/api/v3`).
    :param auth_token: Personal access token, sent as HTTP basic auth.
    """

    def __init__(
        self,
        host: str = API_HOST,
        auth_token: t.Optional[str] = None,
        *,
        pool_manager: t.Optional[urllib3.PoolManager] = None,
        timeout: urllib3.Timeout = DEFAULT_TIMEOUT,
    ):
        self.host = host
        self.auth_token = auth_token
        self.pool_manager = pool_manager
        self.timeout = timeout

    def url(self, path: str):
        return f"https://{self.host}/{path}"

    def auth_headers(self) -> t.Dict[str, str]:
        if not self.auth_token:
            return {}
        return urllib3.util.make_headers(
            basic_auth=f"{self.auth_token}:{TOKEN_PASSWORD}"
        )

    def get(self, path: str) -> t.Any:
        """GET :param:`path` and decode the JSON response.

        :raises RefResolutionError: on transport errors, a non-2xx status or a body that is not JSON.
        """
        logger.debug(f"GET {self.url(path)}")
        try:
            response = open_url(
                self.url(path),
                headers={
                    "Accept": "application/vnd.github+json",
                    **self.auth_headers(),
                },
                pool_manager=self.pool_manager,
                timeout=self.timeout,
            )
        except HTTPError as e:
            raise RefResolutionError(path, None, str(e)) from e

        if not 200 <= response.status < 300:
            raise RefResolutionError(path, response.status, _error_message(response))

        try:
            return json.loads(response.read())
        except HTTPError as e:
            raise RefResolutionError(path, None, str(e)) from e
        except ValueError as e:
            raise RefResolutionError(path, response.status, "invalid response") from e

    def pull(self, owner: str, repo: str, number: int) -> PullRequest:
        # GET /repos/:owner/:repo/pulls/:number
        return self.get(f"repos/{owner}/{repo}/pulls/{number}")

    def releases(self, owner: str, repo: str) -> t.List[GitRelease]:
        # GET /repos/:owner/:repo/releases
        return self.get(f"repos/{owner}/{repo}/releases")

    def commit(self, owner: str, repo: str, ref: str) -> Commit:
        # GET /repos/:owner/:repo/commits/:ref
        return self.get(f"repos/{owner}/{repo}/commits/{ref}")

    def zipball(self, owner: str, repo: str, ref: str):
        return Download(
            self.url(f"repos/{owner}/{repo}/zipball/{ref}"),
            headers=self.auth_headers(),
        )
