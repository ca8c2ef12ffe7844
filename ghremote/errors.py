import typing as t


class EmptyFileError(Exception):
    pass


class ExceptionCount(Exception):
    def __init__(self, count: int):
        self.count = count
        super().__init__()


class GHRemoteError(Exception):
    """Base class for errors raised while resolving or fetching a remote."""


class InvalidSpecError(GHRemoteError, ValueError):
    def __init__(self, spec: str, reason: str = ""):
        self.spec = spec
        self.reason = reason
        msg = f"Invalid git repo: '{spec}'"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


class MissingOwnerError(GHRemoteError):
    def __init__(self, spec: str):
        self.spec = spec
        super().__init__(
            f"Unknown username for '{spec}'. Use 'owner/repo' or set a default username."
        )


class RefResolutionError(GHRemoteError):
    """The hosting API could not be queried, or rejected the request.

    :attr status: HTTP status returned by the API, or `None` if no response was received.
    """

    def __init__(self, path: str, status: t.Optional[int], message: str = ""):
        self.path = path
        self.status = status
        cause = f"HTTP {status}" if status is not None else "no response"
        msg = f"GitHub API request '{path}' failed ({cause})"
        if message:
            msg += f": {message}"
        super().__init__(msg)


class NotFoundError(GHRemoteError):
    def __init__(self, path: str, message: str):
        self.path = path
        super().__init__(message)


class ArchiveReadError(GHRemoteError):
    def __init__(self, path: str, error: t.Optional[BaseException] = None):
        self.path = path
        msg = f"Could not read archive '{path}'"
        if error:
            msg += f": {error}"
        super().__init__(msg)



class NameClashError(GHRemoteError):
    """Two different remotes in one batch would be written to the same file."""

    def __init__(self, filename: str, remote: str, other: str):
        self.filename = filename
        super().__init__(
            f"Cannot save {remote} as '{filename}', it is already used by {other}."
        )
