# filepath: tenantsync/src/adapters/http_client.py

import logging
import time
from typing import Optional, Dict, Any
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)

# Only transport-level failures are retried here; HTTP error statuses go back to the caller.
TRANSIENT_ERRORS = (requests.exceptions.ConnectionError, requests.exceptions.Timeout)

# A POST may have been committed before a read timeout, so it is only re-sent
# when the connection was never made (ConnectTimeout is a ConnectionError).
IDEMPOTENT_METHODS = ("GET", "DELETE")


def is_retryable(method: str, error: Exception) -> bool:
    if method.upper() in IDEMPOTENT_METHODS:
        return isinstance(error, TRANSIENT_ERRORS)
    return isinstance(error, requests.exceptions.ConnectionError)


class RetryableHTTPClient:
    def __init__(self, max_retries: int = 3, backoff_factor: float = 1.0, timeout: int = 30,
                 headers: Optional[Dict[str, str]] = None):
        self.max_retries = max_retries
        self.backoff_factor = backoff_factor
        self.timeout = timeout
        self.session = self._create_session()
        if headers:
            self.session.headers.update(headers)

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        retry_strategy = Retry(
            total=self.max_retries,
            status_forcelist=[500, 502, 503, 504],
            allowed_methods=list(IDEMPOTENT_METHODS),
            backoff_factor=self.backoff_factor,
            raise_on_status=False
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        return session

    def request(self, method: str, url: str, **kwargs) -> requests.Response:
        for attempt in range(self.max_retries + 1):
            try:
                response = self.session.request(method, url, timeout=self.timeout, **kwargs)
                response.raise_for_status()
                return response
            except TRANSIENT_ERRORS as e:
                if attempt == self.max_retries or not is_retryable(method, e):
                    logger.error(f"{method} {url} failed after {attempt + 1} attempt(s): {e}")
                    raise
                wait_time = (2 ** attempt) * self.backoff_factor
                logger.warning(f"Attempt {attempt + 1} failed, retrying in {wait_time}s: {e}")
                time.sleep(wait_time)

    def get(self, url: str, params: Optional[Dict[str, Any]] = None, **kwargs) -> requests.Response:
        return self.request("GET", url, params=params, **kwargs)

    def post(self, url: str, json: Optional[Any] = None, **kwargs) -> requests.Response:
        return self.request("POST", url, json=json, **kwargs)

    def delete(self, url: str, params: Optional[Dict[str, Any]] = None, **kwargs) -> requests.Response:
        return self.request("DELETE", url, params=params, **kwargs)

    def close(self):
        self.session.close()
