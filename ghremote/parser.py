import string
import typing as t
from dataclasses import dataclass

from ghremote.errors import InvalidSpecError
from ghremote.selectors import Pull
from ghremote.selectors import Ref
from ghremote.selectors import Release
from ghremote.selectors import Selector


@dataclass(frozen=True)
class RepoSpec:
    """A parsed :term:`REPOSPEC`.

    :attr selector: `None` if no selector was given.
    """

    repo: str
    owner: t.Optional[str] = None
    subdir: t.Optional[str] = None
    selector: t.Optional[Selector] = None

    def __str__(self):
        return format_repo_spec(self.owner, self.repo, self.subdir, self.selector)


def format_repo_spec(
    owner: t.Optional[str],
    repo: str,
    subdir: t.Optional[str] = None,
    selector: t.Optional[Selector] = None,
):
    out = f"{owner}/{repo}" if owner else repo
    if subdir:
        out += "/" + subdir
    if selector:
        out += selector.suffix()
    return out


_PATH_SEPARATOR = "/"
_SELECTOR_PREFIXES = ("@", "#")


class _Scanner:
    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def peek(self):
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def at_end(self):
        return self.pos >= len(self.text)

    def advance(self):
        self.pos += 1

    def take_while(self, predicate: t.Callable[[str], bool]):
        start = self.pos
        while not self.at_end() and predicate(self.peek()):
            self.pos += 1
        return self.text[start : self.pos]


def _is_segment_char(c: str):
    return not c.isspace() and c != _PATH_SEPARATOR and c not in _SELECTOR_PREFIXES


def _is_ref_char(c: str):
    return not c.isspace() and c != "@"


def _fail(spec: str, scanner: _Scanner, reason: str) -> t.NoReturn:
    c = scanner.peek()
    if c.isspace():
        reason = f"whitespace at position {scanner.pos}"
    raise InvalidSpecError(spec, reason)


def _parse_path(spec: str, scanner: _Scanner):
    segments: t.List[str] = []
    while True:
        segment = scanner.take_while(_is_segment_char)
        if not segment:
            _fail(spec, scanner, f"empty path segment at position {scanner.pos}")
        segments.append(segment)
        if scanner.peek() != _PATH_SEPARATOR:
            return segments
        scanner.advance()


def _parse_selector(spec: str, scanner: _Scanner) -> t.Optional[Selector]:
    prefix = scanner.peek()
    if prefix == "@":
        scanner.advance()
        if scanner.peek() == "*":
            scanner.advance()
            if not scanner.at_end():
                _fail(spec, scanner, "'@*' must come last")
            return Release()
        ref = scanner.take_while(_is_ref_char)
        if not ref:
            _fail(spec, scanner, f"empty ref at position {scanner.pos}")
        return Ref(ref)

    if prefix == "#":
        scanner.advance()
        digits = scanner.take_while(lambda c: c in string.digits)
        if not digits:
            _fail(spec, scanner, f"pull request number expected at position {scanner.pos}")
        number = int(digits)
        if number < 1:
            _fail(spec, scanner, "pull request number must be positive")
        return Pull(number)

    return None


def parse_selector(text: str) -> Selector:
    """Parse a selector on its own: ``@ref``, ``#pull`` or ``@*``.

    :raises InvalidSpecError: if :param:`text` is not exactly one selector.
    """
    scanner = _Scanner(text)
    selector = _parse_selector(text, scanner)
    if selector is None:
        _fail(text, scanner, "expected '@' or '#'")
    if not scanner.at_end():
        _fail(text, scanner, f"unexpected '{scanner.peek()}' at position {scanner.pos}")
    return selector


def parse_repo_spec(spec: str) -> RepoSpec:
    """Parse a concise repository specification.

    ``[owner/]repo[/subdir][@ref|#pull|@*]``

    With two path segments the first is always the owner. Any further
    segments form the subdirectory.

    :raises InvalidSpecError: if :param:`spec` does not match the grammar.
    """
    scanner = _Scanner(spec)
    segments = _parse_path(spec, scanner)
    selector = _parse_selector(spec, scanner)
    if not scanner.at_end():
        _fail(spec, scanner, f"unexpected '{scanner.peek()}' at position {scanner.pos}")

    if len(segments) == 1:
        return RepoSpec(segments[0], selector=selector)
    owner, repo, *subdir = segments
    return RepoSpec(
        repo,
        owner=owner,
        subdir=_PATH_SEPARATOR.join(subdir) or None,
        selector=selector,
    )
