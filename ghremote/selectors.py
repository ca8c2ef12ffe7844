"""Git reference selectors and their resolution to a concrete ref.

A selector is the part of a :term:`REPOSPEC` after the repository path:

* ``@ref`` selects a commit, tag or branch (:class:`Ref`).
* ``#number`` selects the head branch of a pull request (:class:`Pull`).
* ``@*`` selects the tag of the latest release (:class:`Release`).

Additional selector kinds can be added by subclassing :class:`Selector`.
"""
import logging
import typing as t
from abc import ABC
from abc import abstractmethod
from dataclasses import dataclass

from ghremote.errors import MissingOwnerError
from ghremote.errors import NotFoundError
from ghremote.errors import RefResolutionError

logger = logging.getLogger(__name__)


DEFAULT_REF = "master"


class HostingAPI(t.Protocol):
    def pull(self, owner: str, repo: str, number: int) -> t.Dict[str, t.Any]:
        ...

    def releases(self, owner: str, repo: str) -> t.List[t.Dict[str, t.Any]]:
        ...


@dataclass(frozen=True)
class Coordinates:
    owner: t.Optional[str]
    repo: str
    host: str = "api.github.com"
    auth_token: t.Optional[str] = None

    def repo_path(self):
        if not self.owner:
            raise MissingOwnerError(self.repo)
        return f"repos/{self.owner}/{self.repo}"


@dataclass(frozen=True)
class Resolution:
    ref: str
    owner: t.Optional[str] = None
    """Set when resolving replaced the repository owner (e.g. a pull request from a fork)."""


class Selector(ABC):
    @abstractmethod
    def resolve(self, coords: Coordinates, api: HostingAPI) -> Resolution:
        ...

    @abstractmethod
    def suffix(self) -> str:
        """The :term:`REPOSPEC` suffix representing this selector."""
        ...


@dataclass(frozen=True)
class Ref(Selector):
    value: str

    def resolve(self, coords, api):
        return Resolution(self.value)

    def suffix(self):
        return "@" + self.value


@dataclass(frozen=True)
class Pull(Selector):
    number: int

    def __post_init__(self):
        if self.number < 1:
            raise ValueError(f"Pull request number must be positive: {self.number}")

    def resolve(self, coords, api):
        path = f"{coords.repo_path()}/pulls/{self.number}"
        try:
            response = api.pull(t.cast(str, coords.owner), coords.repo, self.number)
        except RefResolutionError as e:
            if e.status == 404:
                raise NotFoundError(
                    path,
                    f"Pull request #{self.number} not found for repo {coords.owner}/{coords.repo}.",
                ) from e
            raise

        try:
            owner = response["user"]["login"]
            ref = response["head"]["ref"]
        except (KeyError, TypeError) as e:
            raise RefResolutionError(path, 200, "invalid response") from e
        logger.debug(f"Resolved pull request #{self.number} to {owner}@{ref}.")
        return Resolution(ref, owner=owner)

    def suffix(self):
        return f"#{self.number}"


@dataclass(frozen=True)
class Release(Selector):
    def resolve(self, coords, api):
        path = f"{coords.repo_path()}/releases"
        releases = api.releases(t.cast(str, coords.owner), coords.repo)
        if not releases:
            raise NotFoundError(
                path, f"No releases found for repo {coords.owner}/{coords.repo}."
            )

        # the API lists releases newest first
        try:
            tag = releases[0]["tag_name"]
        except (KeyError, IndexError, TypeError) as e:
            raise RefResolutionError(path, 200, "invalid response") from e
        logger.debug(f"Latest release for {coords.owner}/{coords.repo} is '{tag}'.")
        return Resolution(tag)

    def suffix(self):
        return "@*"


def github_pull(number: t.Union[int, str]) -> Pull:
    """Select the head branch of pull request :param:`number`."""
    return Pull(int(number))


def github_release() -> Release:
    """Select the latest release."""
    return Release()


def resolve_selector(
    selector: t.Optional[Selector], coords: Coordinates, api: HostingAPI
) -> Resolution:
    """Resolve :param:`selector` to a concrete ref, querying :param:`api` if required.

    A missing selector resolves to :data:`DEFAULT_REF` without any requests.
    """
    if selector is None:
        return Resolution(DEFAULT_REF)
    return selector.resolve(coords, api)
