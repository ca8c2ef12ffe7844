import logging
import sys
import time
import traceback
import typing as t
from contextlib import contextmanager

import click
from tqdm import tqdm

logger = logging.getLogger(__name__)


def progress_bar(total: t.Optional[int], label: t.Optional[str] = None, clear=False):
    """A byte counting `tqdm` bar, only shown when logging at INFO or lower.

    :param clear: Remove the bar once finished. Ignored when debugging.
    """
    return tqdm(
        total=total,
        desc=label,
        unit="B",
        unit_scale=True,
        unit_divisor=1024,
        delay=0.4,
        disable=not logger.isEnabledFor(logging.INFO),
        leave=logger.isEnabledFor(logging.DEBUG) or not clear,
    )


@contextmanager
def timed_progress(msg: str, loglevel: int = logging.INFO):
    """Log :param:`msg` with the time spent in the context, formatted as `time`."""
    start = time.perf_counter()
    yield
    elapsed = time.perf_counter() - start
    # a carriage return moves past any progress bar left on the line
    logger.log(loglevel, "\r" + msg.format(time=elapsed))


LEVEL_STYLES: t.Dict[int, t.Dict[str, t.Any]] = {
    logging.CRITICAL: {"fg": "red", "bold": True},
    logging.ERROR: {"fg": "red"},
    logging.WARNING: {"fg": "yellow"},
    logging.DEBUG: {"fg": "blue", "italic": True},
}


class ClickFormatter(logging.Formatter):
    """Prefix every line with the styled level name.

    INFO messages are left bare unless debugging.
    """

    def formatMessage(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()
        style = LEVEL_STYLES.get(record.levelno)
        if style is None:
            if not logger.isEnabledFor(logging.DEBUG):
                return msg
            style = {"italic": True}

        prefix = click.style(f"{record.levelname.lower()}: ", **style)
        return "\n".join(prefix + line for line in msg.splitlines())

    def formatException(self, ei) -> str:
        e_type, e, tb = ei
        trace = "".join(traceback.format_tb(tb))
        summary = "".join(traceback.format_exception_only(e_type, e)).rstrip("\n")
        return trace + click.style(summary, fg="red")


class EchoHandler(logging.Handler):
    """Write records to stderr with `click.echo` without breaking active progress bars."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            with tqdm.external_write_mode(file=sys.stderr):
                click.echo(msg, err=True)
        except Exception:
            self.handleError(record)
