import logging
import os
import typing as t
from dataclasses import dataclass
from dataclasses import fields
from dataclasses import is_dataclass
from dataclasses import MISSING

import yaml
from click import ClickException
from click import make_pass_decorator
from platformdirs import PlatformDirs

from ghremote.errors import EmptyFileError
from ghremote.errors import ExceptionCount
from ghremote.github import API_HOST

logger = logging.getLogger(__name__)

dirs = PlatformDirs("ghremote", False)
CONFIG_DIR = dirs.user_config_dir

CONFIG_FILE = os.path.join(CONFIG_DIR, "config.yaml")

T = t.TypeVar("T")


@dataclass(frozen=True)
class Config:
    """The ghremote configuration file uses the YAML format."""

    @dataclass(frozen=True)
    class GitHub:
        host: str = API_HOST
        """The GitHub API host. Override with your GitHub Enterprise API host."""

        username: t.Optional[str] = None
        """Owner used for a :term:`REPOSPEC` that does not include one.

        Deprecated: include the owner in the REPOSPEC instead.
        """

        token_env: str = "GITHUB_PAT"
        """The environment variable a personal access token is read from."""

    @dataclass(frozen=True)
    class Downloading:
        thread_count: int = 8
        """The maximum number of parallel downloads to use."""

        connect_timeout: float = 3
        """Seconds to wait for a connection to the API host."""

        read_timeout: float = 10
        """Seconds to wait for data from the API host."""

    download_directory: t.Optional[str] = None
    """The default directory archives are downloaded to.

    Defaults to the current working directory.
    """

    github: GitHub = GitHub()
    """Options for the GitHub API."""

    downloading: Downloading = Downloading()
    """Options related to downloading files."""


def read_yaml(path: str, type: t.Type[T]) -> T:
    with open(path) as file:
        data = load_yaml(file, type)
    if not data:
        raise EmptyFileError(path)
    return data


def load_yaml(document: t.Any, type: t.Type[T]) -> t.Optional[T]:
    data: t.Dict[str, t.Any] = yaml.safe_load(document)
    if not data:
        return None

    return dataclass_fromdict(data, type)


def _checkable_type(annotation: t.Any):
    """Reduce a field annotation to something `isinstance` accepts.

    Only the base type is checked, so 'List[str]' is only checked as 'list'.
    """
    origin = t.get_origin(annotation)
    if origin is t.Union:  # Optional type
        return t.get_args(annotation)
    if annotation is float:
        return (int, float)
    return origin or annotation


def dataclass_fromdict(data: t.Dict[str, t.Any], field_type: t.Type[T]) -> T:
    """Build :param:`field_type` from a YAML mapping, recursing into nested dataclasses.

    Every problem found is logged before raising.

    :raises ExceptionCount: with the number of problems found.
    """
    type_fields = {f.name: f for f in fields(field_type) if f.init}
    values: t.Dict[str, t.Any] = {}
    errors = 0
    for key, value in data.items():
        if key not in type_fields:
            logger.error(f"Unknown key: '{key}'.")
            errors += 1
            continue

        annotation = type_fields[key].type
        if is_dataclass(annotation):
            if not isinstance(value, dict):
                logger.error(f"Expected object for key '{key}'.")
                errors += 1
                continue
            try:
                value = dataclass_fromdict(value, annotation)
            except ExceptionCount as e:
                errors += e.count
                continue
        elif not isinstance(value, _checkable_type(annotation)):
            logger.error(f"Invalid value for key '{key}': '{value}'.")
            errors += 1
            continue
        values[key] = value

    for name, f in type_fields.items():
        if name not in data and f.default is MISSING and f.default_factory is MISSING:
            logger.error(f"Missing required key: '{name}'")
            errors += 1

    if errors:
        raise ExceptionCount(errors)
    return field_type(**values)


@dataclass(frozen=True)
class RemoteDefaults:
    """Values used for anything a :term:`REPOSPEC` does not specify.

    Built once at the entry point and passed explicitly, so nothing below
    reads the environment.
    """

    host: str = API_HOST
    auth_token: t.Optional[str] = None
    username: t.Optional[str] = None
    subdir: t.Optional[str] = None

    @classmethod
    def from_config(
        cls,
        config: Config,
        *,
        host: t.Optional[str] = None,
        auth_token: t.Optional[str] = None,
        username: t.Optional[str] = None,
        subdir: t.Optional[str] = None,
        environ: t.Mapping[str, str] = os.environ,
    ):
        if auth_token is None:
            auth_token = environ.get(config.github.token_env, None) or None
            if auth_token:
                logger.debug(f"Using auth token from ${config.github.token_env}.")
        return cls(
            host=host or config.github.host,
            auth_token=auth_token,
            username=username or config.github.username,
            subdir=subdir,
        )


class UserInfo:
    _config: t.Optional[Config] = None

    @property
    def config(self):
        if not self._config:
            try:
                self._config = read_yaml(CONFIG_FILE, Config)
                logger.debug(f"User config loaded from '{CONFIG_FILE}'.")
            except (FileNotFoundError, EmptyFileError):
                self._config = Config()
            except ExceptionCount as e:
                raise ClickException(
                    f"{e.count} error(s) were encountered while loading config."
                )
            except yaml.error.YAMLError as e:
                raise ClickException(str(e))

        return self._config


pass_userinfo = make_pass_decorator(UserInfo, ensure=True)
