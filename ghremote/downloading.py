import logging
import os
import shutil
import threading
import typing as t
from concurrent.futures import Future
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import wait
from dataclasses import dataclass
from dataclasses import field
from importlib.metadata import version

import urllib3
from click import Abort
from urllib3.exceptions import HTTPError

from ghremote import fs
from ghremote.logging import progress_bar

logger = logging.getLogger(__name__)


_version = version("ghremote")

_global_headers = {
    "User-Agent": f"ghremote/{_version}",
    "Accept-Encoding": "gzip, deflate",
}

DEFAULT_TIMEOUT = urllib3.Timeout(connect=3, read=10)
BLOCKSIZE = 8192

# Set when the user interrupts, so that worker threads stop reading
_interrupted = threading.Event()


@dataclass(frozen=True)
class Download:
    url: str
    headers: t.Mapping[str, str] = field(default_factory=dict, repr=False)


class URLResponse(t.Protocol):
    url: str
    status: int
    headers: t.Mapping[str, str]

    def read(self, amt: int = ...) -> bytes:
        ...


def open_url(
    url: str,
    *,
    headers: t.Optional[t.Mapping[str, str]] = None,
    pool_manager: t.Optional[urllib3.PoolManager] = None,
    timeout: urllib3.Timeout = DEFAULT_TIMEOUT,
) -> URLResponse:
    """Send a GET request and return the response without reading the body.

    Redirects are followed. Error statuses are returned, not raised.

    :raises urllib3.exceptions.HTTPError: if no response was received.
    """
    http = pool_manager or urllib3.PoolManager()
    response = http.request(
        "GET",
        url,
        headers={**_global_headers, **(headers or {})},
        preload_content=False,
        timeout=timeout,
    )
    response = t.cast(URLResponse, response)
    response.url = url
    return response


def copy_with_progress(
    response: URLResponse,
    output: t.BinaryIO,
    size: t.Optional[int] = None,
    label: t.Optional[str] = None,
    clear=False,
):
    with progress_bar(size, label, clear) as bar:
        for chunk in iter(lambda: response.read(BLOCKSIZE), b""):
            if _interrupted.is_set():
                logger.debug("Download interrupted, aborting...")
                raise Abort
            output.write(chunk)
            bar.update(len(chunk))


def download_with_progress(
    src: Download,
    dest: str,
    label: t.Optional[str] = None,
    clear=False,
    *,
    pool_manager: t.Optional[urllib3.PoolManager] = None,
):
    """Download :param:`src` to :param:`dest`.

    The body is written to a temporary file first, so :param:`dest` is only
    created once the download is complete.

    :raises urllib3.exceptions.HTTPError: on transport errors or an error status.
    """
    response = open_url(src.url, headers=src.headers, pool_manager=pool_manager)
    if response.status >= 400:
        raise HTTPError(f"HTTP {response.status} while downloading {response.url}")

    length = response.headers.get("Content-Length")
    size = int(length) if length else None

    with fs.temporary_file() as temp:
        with open(temp, "wb") as file:
            copy_with_progress(response, file, size, label, clear)
        if os.path.isfile(dest):
            os.remove(dest)
        # the temp dir may be on another filesystem, where os.replace fails
        shutil.move(temp, dest)


class DownloadJob(t.NamedTuple):
    src: Download
    dest: str
    label: str


def download_threaded(
    jobs: t.Sequence[DownloadJob],
    thread_count=8,
) -> t.List[t.Optional[BaseException]]:
    """Download each job on a bounded thread pool.

    :returns: The exception raised by each job, or `None` if it succeeded, in the order given.
    """
    http_pool = urllib3.PoolManager(maxsize=thread_count)
    with ThreadPoolExecutor(
        max_workers=thread_count, thread_name_prefix="download_"
    ) as pool:
        futures: t.List["Future[None]"] = [
            pool.submit(
                download_with_progress,
                job.src,
                job.dest,
                job.label,
                clear=True,
                pool_manager=http_pool,
            )
            for job in jobs
        ]
        try:
            # poll, so that KeyboardInterrupt is delivered to the main thread
            while wait(futures, timeout=0.1).not_done:
                pass
        except (KeyboardInterrupt, SystemExit):
            for future in futures:
                future.cancel()
            _interrupted.set()
            raise

    return [future.exception() for future in futures]
