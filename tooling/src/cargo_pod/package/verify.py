"""Best-effort check that the podspec's download URL is reachable.

Verification runs on a worker thread with a timeout. Any failure is reported as
a warning; it never stops packaging.
"""

from __future__ import annotations

import enum
import http.client
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Protocol
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

log = logging.getLogger(__name__)

USER_AGENT = "cargo-pod"


class VerifyOutcome(enum.Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    TIMEOUT = "timeout"


class RemoteVerifier(Protocol):
    def verify(self, url: str, timeout: float) -> VerifyOutcome: ...


class HttpVerifier:
    """HEAD request; any 2xx/3xx is success."""

    def verify(self, url: str, timeout: float) -> VerifyOutcome:
        req = Request(url, method="HEAD", headers={"User-Agent": USER_AGENT})
        try:
            with urlopen(req, timeout=timeout) as response:
                status = getattr(response, "status", 200)
                return VerifyOutcome.SUCCESS if status < 400 else VerifyOutcome.FAILURE
        except HTTPError as e:
            log.debug("HEAD %s -> HTTP %s", url, e.code)
            return VerifyOutcome.FAILURE
        except TimeoutError:
            return VerifyOutcome.TIMEOUT
        except URLError as e:
            if isinstance(e.reason, TimeoutError):
                return VerifyOutcome.TIMEOUT
            log.debug("HEAD %s -> %s", url, e.reason)
            return VerifyOutcome.FAILURE
        except (http.client.HTTPException, OSError, ValueError) as e:
            log.debug("HEAD %s -> %s: %s", url, type(e).__name__, e)
            return VerifyOutcome.FAILURE


def start_verification(
    verifier: RemoteVerifier,
    url: str,
    timeout: float,
    executor: ThreadPoolExecutor,
) -> Future[VerifyOutcome]:
    log.debug("Verifying %s", url)
    return executor.submit(verifier.verify, url, timeout)


def verification_warning(future: Future[VerifyOutcome], url: str, timeout: float) -> str | None:
    """Wait up to timeout; return a warning message unless verification succeeded."""
    try:
        outcome = future.result(timeout=timeout)
    except FutureTimeoutError:
        future.cancel()
        outcome = VerifyOutcome.TIMEOUT
    except Exception as e:
        # a verifier must never abort packaging
        log.debug("Verifier raised for %s", url, exc_info=True)
        return f"Could not verify {url}: {type(e).__name__}: {e}"
    if outcome is VerifyOutcome.SUCCESS:
        return None
    if outcome is VerifyOutcome.TIMEOUT:
        return f"Timed out after {timeout:g}s verifying {url}"
    return f"Source URL not reachable yet: {url} (upload the archive there before publishing)"
