import os
import re
import tempfile
from contextlib import contextmanager


_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def safe_filename(*parts: str, ext=""):
    """Join :param:`parts` with '-' into a name that is safe to use as a single path component."""
    name = "-".join(_UNSAFE_FILENAME_CHARS.sub("_", part) for part in parts)
    return name + ext


@contextmanager
def temporary_file(suffix="_ghremote"):
    """Create an empty temporary file, removed on exit unless it was moved away."""
    fd, path = tempfile.mkstemp(suffix=suffix)
    os.close(fd)
    try:
        yield path
    finally:
        if os.path.isfile(path):
            os.remove(path)
