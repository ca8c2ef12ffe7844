"""Recover the commit hash embedded in GitHub zipball archives.

`git archive` stores the commit SHA-1 as the comment of the zip
end-of-central-directory record (see :manpage:`git-archive(1)`). The
comment is always the last thing in the file, so for a 40 character hash
the 2-byte comment length field sits exactly 42 bytes from the end.
"""
import logging
import os
import typing as t

from ghremote.errors import ArchiveReadError

logger = logging.getLogger(__name__)


SHA1_LENGTH = 0x28
_COMMENT_LENGTH_FIELD = 2


def extract_sha(archive: t.Union[str, "os.PathLike[str]"]) -> t.Optional[str]:
    """Return the commit hash stored in the comment of :param:`archive`.

    :returns: The hash, or `None` if the archive has no 40 byte comment.
    :raises ArchiveReadError: if the archive cannot be opened or read.
    """
    try:
        with open(archive, "rb") as file:
            file.seek(0, os.SEEK_END)
            if file.tell() < SHA1_LENGTH + _COMMENT_LENGTH_FIELD:
                logger.debug(f"'{archive}' is too small to contain a commit hash.")
                return None

            file.seek(-(SHA1_LENGTH + _COMMENT_LENGTH_FIELD), os.SEEK_END)
            length = int.from_bytes(file.read(_COMMENT_LENGTH_FIELD), "little")
            if length != SHA1_LENGTH:
                logger.debug(f"'{archive}' does not have a commit hash comment.")
                return None

            comment = file.read(SHA1_LENGTH)
    except OSError as e:
        raise ArchiveReadError(str(archive), e) from e

    try:
        return comment.decode("ascii")
    except UnicodeDecodeError:
        logger.debug(f"Comment in '{archive}' is not a commit hash.")
        return None
