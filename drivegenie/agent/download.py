"""
Package acquisition — streaming download with manual redirect handling.

Redirects are followed by hand rather than by urllib so that every hop
is logged with its target host and the chain is bounded.  The body is
streamed to disk in chunks; the partial file is removed on any failure.

Progress callback values:
    0..100          Content-Length was provided
    INDETERMINATE   the server did not say how large the body is
"""

from __future__ import annotations

import http.client
import logging
import sys
import urllib.error
import urllib.request
from collections.abc import Callable
from pathlib import Path
from urllib.parse import urljoin, urlsplit

from drivegenie.core.errors import AcquisitionError, RunCancelled
from drivegenie.core.models.run_state import INDETERMINATE
from drivegenie.core.reliability.polling import CancelToken

logger = logging.getLogger(__name__)

REDIRECT_CODES = frozenset({301, 302, 303, 307, 308})
CHUNK_SIZE = 64 * 1024
USER_AGENT = "drivegenie-agent/1.0"

ProgressFn = Callable[[int], None]
LogFn = Callable[[str], None]


class _NoRedirect(urllib.request.HTTPRedirectHandler):
    """Surface 3xx responses as HTTPError so the caller sees every hop."""

    def redirect_request(self, req, fp, code, msg, headers, newurl):
        return None


_opener = urllib.request.build_opener(_NoRedirect)


def _fmt_size(n: int) -> str:
    for unit in ("B", "KB", "MB", "GB"):
        if n < 1024:
            return f"{n:.0f} {unit}" if unit == "B" else f"{n:.1f} {unit}"
        n /= 1024
    return f"{n:.1f} TB"


def fetch_package(
    url: str,
    dest: Path,
    *,
    on_progress: ProgressFn | None = None,
    on_log: LogFn | None = None,
    timeout: float = 60.0,
    max_redirects: int = 10,
    cancel: CancelToken | None = None,
) -> Path:
    """Download ``url`` to ``dest``.

    Raises:
        AcquisitionError: Bad terminal status, too many redirects,
            network error, timeout or a connection dropped mid-body.
            ``dest`` does not exist afterwards.
        RunCancelled: The cancel token fired mid-transfer.
    """
    log = on_log or (lambda line: None)
    progress = on_progress or (lambda value: None)
    token = cancel or CancelToken()

    try:
        _fetch(url, dest, progress, log, timeout, max_redirects, token)
    except (AcquisitionError, RunCancelled):
        dest.unlink(missing_ok=True)
        raise
    except urllib.error.HTTPError as e:
        e.close()
        dest.unlink(missing_ok=True)
        raise AcquisitionError(f"Download failed: HTTP {e.code} {e.reason}") from e
    except urllib.error.URLError as e:
        dest.unlink(missing_ok=True)
        raise AcquisitionError(f"Download failed: {e.reason}") from e
    except (TimeoutError, OSError, http.client.HTTPException) as e:
        dest.unlink(missing_ok=True)
        raise AcquisitionError(f"Download failed: {e}") from e
    return dest


def _fetch(
    url: str,
    dest: Path,
    progress: ProgressFn,
    log: LogFn,
    timeout: float,
    max_redirects: int,
    token: CancelToken,
) -> None:
    current = url
    for hop in range(max_redirects + 1):
        token.check()
        request = urllib.request.Request(current, headers={"User-Agent": USER_AGENT})
        try:
            resp = _opener.open(request, timeout=timeout)
        except urllib.error.HTTPError as e:
            if e.code not in REDIRECT_CODES:
                raise
            location = e.headers.get("Location")
            e.close()
            if not location:
                raise AcquisitionError(f"Redirect {e.code} without Location header") from e
            current = urljoin(current, location)
            log(f"重定向到 {urlsplit(current).hostname} ({e.code})")
            logger.info("Redirect %d → %s", e.code, current)
            continue

        with resp:
            if resp.status != 200:
                raise AcquisitionError(f"Download failed: HTTP {resp.status}")
            _stream_body(resp, dest, progress, log, token)
        return

    raise AcquisitionError(f"Too many redirects (limit {max_redirects})")


def _stream_body(resp, dest: Path, progress: ProgressFn, log: LogFn, token: CancelToken) -> None:
    header = resp.headers.get("Content-Length")
    total = int(header) if header and header.isdigit() else 0

    if total:
        log(f"开始下载 ({_fmt_size(total)})")
        progress(0)
    else:
        log("开始下载 (大小未知)")
        progress(INDETERMINATE)

    downloaded = 0
    last_pct = 0
    with open(dest, "wb") as f:
        while True:
            token.check()
            chunk = resp.read(CHUNK_SIZE)
            if not chunk:
                break
            f.write(chunk)
            downloaded += len(chunk)
            if total:
                pct = min(100, downloaded * 100 // total)
                if pct > last_pct:
                    last_pct = pct
                    progress(pct)

    if total and downloaded < total:
        raise AcquisitionError(
            f"Download truncated: {_fmt_size(downloaded)} of {_fmt_size(total)}"
        )
    if total:
        progress(100)
    log(f"下载完成 ({_fmt_size(downloaded)})")
    logger.info("Downloaded %d bytes to %s", downloaded, dest)


def resolve_bundled_package(
    msi_file_name: str,
    *,
    entry_dir: Path | None = None,
    frozen_dir: Path | None = None,
) -> Path:
    """Locate a package shipped inside the bundle.

    Development layout: ``<entry_dir>/resources/<msi>``.
    Packaged layout: ``<frozen_dir>/resources/<msi>`` where
    ``frozen_dir`` is the frozen executable's unpack directory.

    Raises:
        AcquisitionError: If the resolved file is absent.
    """
    if frozen_dir is None and getattr(sys, "frozen", False):
        frozen_dir = Path(getattr(sys, "_MEIPASS", Path(sys.executable).parent))
    base = frozen_dir or entry_dir or Path.cwd()
    path = base / "resources" / msi_file_name
    if not path.is_file():
        raise AcquisitionError(f"Bundled package not found: {path}")
    return path
