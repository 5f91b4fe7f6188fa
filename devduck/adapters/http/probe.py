"""
HTTP probe adapter — "is this endpoint reachable?".

Any 2xx, 3xx or 4xx answer except 404 counts as reachable: a 401 from
an API proves the host is up and speaking HTTP, which is all a probe
asks. 404, 5xx, connection errors and timeouts fail.
"""

from __future__ import annotations

import logging
import urllib.error
import urllib.request

from devduck.adapters.base import Adapter, ExecutionContext
from devduck.core.models.action import Receipt

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10
METHODS = ("GET", "POST", "PUT", "DELETE", "HEAD", "OPTIONS", "PATCH")
USER_AGENT = "devduck/0.1"


def is_reachable_status(status: int) -> bool:
    return 200 <= status < 500 and status != 404


class HttpProbeAdapter(Adapter):
    """Send one HTTP request and classify the status code.

    Action params:
        method (str): HTTP method (default: GET).
        url (str): Absolute http(s) URL.
        timeout (float): Seconds (default: 10).
        headers (dict[str, str]): Extra request headers.
    """

    @property
    def name(self) -> str:
        return "http"

    def is_available(self) -> bool:
        return True

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        url = context.params.get("url", "")
        if not url:
            return False, "Missing required param: 'url'"
        if not url.startswith(("http://", "https://")):
            return False, f"Not an http(s) URL: {url}"
        method = context.params.get("method", "GET").upper()
        if method not in METHODS:
            return False, f"Unsupported method: {method}"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        method = context.params.get("method", "GET").upper()
        url = context.params["url"]
        timeout = context.params.get("timeout", DEFAULT_TIMEOUT)
        headers = {"User-Agent": USER_AGENT, **(context.params.get("headers") or {})}
        meta = {"method": method, "url": url}

        logger.debug("Probing %s %s (timeout=%ss)", method, url, timeout)
        req = urllib.request.Request(url, method=method, headers=headers)

        try:
            with urllib.request.urlopen(req, timeout=timeout) as resp:
                status = resp.status
        except urllib.error.HTTPError as e:
            status = e.code
        except TimeoutError:
            return self._timeout(context, url, timeout, meta)
        except urllib.error.URLError as e:
            if isinstance(e.reason, TimeoutError):
                return self._timeout(context, url, timeout, meta)
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Request failed: {e.reason}",
                metadata=meta,
            )
        except (OSError, ValueError) as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Request failed: {e}",
                metadata=meta,
            )

        meta["status_code"] = status
        if is_reachable_status(status):
            return Receipt.success(
                adapter=self.name,
                action_id=context.action.id,
                output=f"HTTP {status}",
                metadata=meta,
            )
        return Receipt.failure(
            adapter=self.name,
            action_id=context.action.id,
            error=f"HTTP {status}",
            metadata=meta,
        )

    def _timeout(self, context: ExecutionContext, url: str, timeout: float, meta: dict) -> Receipt:
        return Receipt.failure(
            adapter=self.name,
            action_id=context.action.id,
            error=f"Request timed out after {timeout}s: {url}",
            timed_out=True,
            metadata=meta,
        )
