"""
Download of the aviationweather.gov METAR cache.

The cache is published as a gzip file. download_file() streams the raw body,
gunzips it on the fly and writes the CSV to a new local file. There is no
retry; a failed copy leaves the partial file behind for inspection.
"""
import logging
import zlib
from typing import Iterable, Iterator, Optional

import httpx

from metar_ingest.errors import FetchError

METAR_URL = "https://www.aviationweather.gov/adds/dataserver_current/current/metars.cache.csv.gz"
DEFAULT_TIMEOUT = 60.0
GZIP_WBITS = 16 + zlib.MAX_WBITS

logger = logging.getLogger(__name__)


def gunzip_chunks(chunks: Iterable[bytes]) -> Iterator[bytes]:
    """
    Incrementally decompress a gzip byte stream (concatenated members allowed).

    Raises:
        FetchError: If the data is not gzip or the stream is truncated.
    """
    decompressor = zlib.decompressobj(GZIP_WBITS)
    try:
        for chunk in chunks:
            while chunk:
                if decompressor.eof:
                    # Bytes after a finished member must start another member.
                    decompressor = zlib.decompressobj(GZIP_WBITS)
                data = decompressor.decompress(chunk)
                if data:
                    yield data
                chunk = decompressor.unused_data if decompressor.eof else b""
    except zlib.error as e:
        raise FetchError(f"gzip error: {e}") from e
    if not decompressor.eof:
        raise FetchError("gzip error: unexpected end of compressed stream")


def download_file(
    url: str,
    filename: str,
    client: Optional[httpx.Client] = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> int:
    """
    Download ``url``, gunzip it and write the result to a new file ``filename``.

    Args:
        url (str): Address of the gzip-compressed feed.
        filename (str): Destination path; must not exist yet.
        client (httpx.Client): Optional client (tests pass one with a MockTransport).
        timeout (float): Request timeout in seconds when no client is given.
    Returns:
        int: Number of decompressed bytes written.
    Raises:
        FetchError: Non-200 status, bad gzip data, network failure, or the
            destination could not be created or written.
    """
    owns_client = client is None
    if client is None:
        client = httpx.Client(timeout=timeout, follow_redirects=True)
    try:
        return _download(client, url, filename)
    except httpx.HTTPError as e:
        raise FetchError(f"fetching {url}: {e}") from e
    finally:
        if owns_client:
            client.close()


def _download(client: httpx.Client, url: str, filename: str) -> int:
    logger.info("Downloading %s to %s", url, filename)
    with client.stream("GET", url) as resp:
        if resp.status_code != 200:
            raise FetchError(f"unexpected status code {resp.status_code} from {url}")
        # iter_raw: the file itself is gzip, independent of any transfer encoding.
        data = gunzip_chunks(resp.iter_raw())
        # Pull the first chunk so a non-gzip body fails before the file is created.
        first = next(data, b"")
        try:
            out = open(filename, "xb")
        except OSError as e:
            raise FetchError(f"error creating file {filename!r}: {e}") from e
        written = 0
        with out:
            try:
                out.write(first)
                written += len(first)
                for chunk in data:
                    out.write(chunk)
                    written += len(chunk)
            except OSError as e:
                raise FetchError(f"error writing to file {filename!r}: {e}") from e
    logger.info("Wrote %d bytes to %s", written, filename)
    return written
