# filepath: tenantsync/src/adapters/postgrest_store.py

"""Supabase (PostgREST) data store."""

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import requests

from .base import DataStore, Filter
from .http_client import RetryableHTTPClient
from tenantsync.src.exceptions import ConnectivityError, SchemaConflictError

logger = logging.getLogger(__name__)

AUTH_STATUSES = (401, 403)


def tenant_id_from_host(url: str) -> Optional[str]:
    """First host label of an endpoint URL (the Supabase project ref)."""
    host = urlparse(url).hostname
    if not host:
        return None
    return host.split('.')[0]


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if value is None:
        return 'null'
    text = str(value)
    # PostgREST reserved characters inside list/or syntax
    if any(ch in text for ch in ',()"'):
        text = '"' + text.replace('"', '\\"') + '"'
    return text


def _filter_expression(f: Filter) -> str:
    """Render a filter as ``op.value`` (the right-hand side of a query param)."""
    if f.op == 'eq':
        if f.value is None:
            return 'is.null'
        return f"eq.{_format_value(f.value)}"
    if f.op == 'in':
        return "in.(" + ",".join(_format_value(v) for v in f.value) + ")"
    return "ilike." + _format_value(f"*{f.value}*")


def build_params(filters: Optional[List[Filter]], match_any: bool = False) -> List[tuple]:
    """Translate filters into PostgREST query params.

    AND filters become one param per column; OR groups become a single ``or=(...)``.
    """
    if not filters:
        return []
    if match_any and len(filters) > 1:
        group = ",".join(f"{f.column}.{_filter_expression(f)}" for f in filters)
        return [('or', f"({group})")]
    return [(f.column, _filter_expression(f)) for f in filters]


class PostgRESTStore(DataStore):
    """Talks to a Supabase project through its REST endpoint."""

    def __init__(self, endpoint_url: str, access_key: str, timeout: int = 30,
                 max_retries: int = 3, exec_rpc: str = 'exec_sql',
                 client: Optional[RetryableHTTPClient] = None):
        self.endpoint_url = endpoint_url.rstrip('/')
        self.rest_url = f"{self.endpoint_url}/rest/v1"
        self.exec_rpc = exec_rpc
        self.tenant_id = tenant_id_from_host(self.endpoint_url) or 'unknown'
        self.client = client or RetryableHTTPClient(
            max_retries=max_retries,
            timeout=timeout,
            headers={
                'apikey': access_key,
                'Authorization': f"Bearer {access_key}",
                'Content-Type': 'application/json',
            }
        )

    def _call(self, method: str, path: str, structural: bool = False, **kwargs) -> requests.Response:
        url = f"{self.rest_url}/{path}"
        try:
            return self.client.request(method, url, **kwargs)
        except requests.exceptions.HTTPError as e:
            response = e.response
            status = response.status_code if response is not None else None
            detail = self._error_detail(response)
            if status in AUTH_STATUSES or status is None or status >= 500:
                raise ConnectivityError(f"{method} {path}: HTTP {status} {detail}") from e
            if structural or status in (400, 404, 409):
                raise SchemaConflictError(f"{method} {path}: HTTP {status} {detail}") from e
            raise ConnectivityError(f"{method} {path}: HTTP {status} {detail}") from e
        except requests.exceptions.RequestException as e:
            raise ConnectivityError(f"{method} {path}: {e}") from e

    @staticmethod
    def _error_detail(response) -> str:
        if response is None:
            return ''
        try:
            body = response.json()
        except ValueError:
            return response.text[:200]
        if isinstance(body, dict):
            return body.get('message') or body.get('hint') or str(body)
        return str(body)

    @staticmethod
    def _json(response: requests.Response, method: str, path: str) -> Any:
        # A proxy or captive portal can answer 200 with an HTML page
        try:
            return response.json()
        except ValueError as e:
            raise ConnectivityError(
                f"{method} {path}: response is not JSON: {response.text[:200]}"
            ) from e

    def select(self, table: str, filters: Optional[List[Filter]] = None,
               match_any: bool = False, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        params = [('select', '*')] + build_params(filters, match_any)
        if limit:
            params.append(('limit', str(limit)))
        response = self._call('GET', table, params=params)
        return self._json(response, 'GET', table)

    def insert(self, table: str, record: Dict[str, Any]) -> Dict[str, Any]:
        response = self._call('POST', table, json=record,
                              headers={'Prefer': 'return=representation'})
        rows = self._json(response, 'POST', table)
        if isinstance(rows, list):
            return rows[0] if rows else {}
        return rows

    def delete(self, table: str, filters: List[Filter], match_any: bool = False) -> int:
        if not filters:
            raise ValueError(f"Refusing unfiltered delete on {table}")
        response = self._call('DELETE', table, params=build_params(filters, match_any),
                              headers={'Prefer': 'return=representation'})
        if not response.content:
            return 0
        return len(self._json(response, 'DELETE', table))

    def exec(self, statement: str) -> None:
        self._call('POST', f"rpc/{self.exec_rpc}", structural=True, json={'sql': statement})

    def probe(self, table: str) -> str:
        response = self._call('GET', table, params=[('select', '*'), ('limit', '1')])
        # The URL that actually answered, after any redirects
        observed = tenant_id_from_host(response.url or self.rest_url)
        logger.debug(f"Probe of {table} answered by {observed}")
        return observed or self.tenant_id

    def close(self):
        self.client.close()
