import pytest

from ghremote.formatting import *


@pytest.mark.parametrize(
    "input, expected", [(1299999, "1.2 MiB"), (512, "512 B"), (2048, "2.0 KiB")]
)
def test_format_bytes(input, expected):
    assert format_bytes(input) == expected


@pytest.mark.parametrize(
    "input, expected",
    [
        (
            {"hadley/devtools": "hadley/devtools@master", "o/r#1": "fork/r@fix"},
            """
hadley/devtools\thadley/devtools@master
o/r#1          \tfork/r@fix
""".strip(),
        ),
        ({}, ""),
    ],
)
def test_format_columns(input, expected):
    assert format_columns(input) == expected
