"""
Shared HTTP session for the calendar summary and podcast feed clients
"""

import threading
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

USER_AGENT = "Daybreak/1.0"

# Network errors worth another attempt at the tenacity layer
RETRYABLE_ERRORS = (requests.exceptions.ConnectionError, requests.exceptions.Timeout)

_SESSION: Optional[requests.Session] = None
_SESSION_LOCK = threading.Lock()


def http_session() -> requests.Session:
    """Process-wide session with connection pooling and status retries"""
    global _SESSION
    if _SESSION is None:
        with _SESSION_LOCK:
            if _SESSION is None:
                session = requests.Session()
                retry_cfg = Retry(
                    total=2,
                    backoff_factor=0.3,
                    status_forcelist=(429, 500, 502, 503, 504),
                    allowed_methods=("GET", "POST"),
                    raise_on_status=False,
                )
                adapter = HTTPAdapter(pool_connections=4, pool_maxsize=8, max_retries=retry_cfg)
                session.mount("http://", adapter)
                session.mount("https://", adapter)
                session.headers.update({"User-Agent": USER_AGENT})
                _SESSION = session
    return _SESSION
