# balanced_split/cluster.py
"""Cluster control plane access."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol, Tuple
from urllib.parse import quote

import requests

from balanced_split.errors import ClusterCommunicationError
from balanced_split.types import ShardLocation

__all__ = ["ClusterClient", "RestClusterClient"]

logger = logging.getLogger(__name__)


class ClusterClient(Protocol):
    """Operations the split job needs from the cluster."""

    def shard_boundaries(self, table: str) -> List[Tuple[bytes, bytes]]: ...

    def locate_shard(self, table: str, key: bytes) -> ShardLocation: ...

    def split_shard(self, table: str, split_key: bytes) -> None: ...

    def column_families(self, table: str) -> List[str]: ...

    def worker_count(self) -> int: ...


def _key_param(key: bytes) -> str:
    return key.hex()


def _key_value(payload: Dict[str, Any], field: str) -> bytes:
    try:
        return bytes.fromhex(payload.get(field) or "")
    except (TypeError, ValueError) as exc:
        raise ClusterCommunicationError(f"bad {field} in response: {payload.get(field)!r}") from exc


class RestClusterClient:
    """
    JSON-over-HTTP client for the cluster control plane.

    Keys are exchanged hex-encoded (``bytes.hex()``); the empty key is ``""``.
    Every call fetches fresh state, so no location cache needs clearing
    between polls.
    """

    def __init__(
        self,
        base_url: str,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def _url(self, *parts: str) -> str:
        return "/".join([self.base_url, *(quote(p, safe="") for p in parts)])

    def _request(self, method: str, url: str, **kwargs) -> Any:
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise ClusterCommunicationError(f"{method} {url} failed: {exc}") from exc
        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as exc:
            raise ClusterCommunicationError(f"{method} {url} returned invalid JSON") from exc

    def shard_boundaries(self, table: str) -> List[Tuple[bytes, bytes]]:
        payload = self._request("GET", self._url("tables", table, "shards"))
        shards = payload.get("shards", [])
        logger.debug("Table %s has %d shards", table, len(shards))
        return [(_key_value(s, "start_key"), _key_value(s, "end_key")) for s in shards]

    def locate_shard(self, table: str, key: bytes) -> ShardLocation:
        payload = self._request(
            "GET", self._url("tables", table, "locate"), params={"key": _key_param(key)}
        )
        return ShardLocation(
            start_key=_key_value(payload, "start_key"),
            end_key=_key_value(payload, "end_key"),
            online=bool(payload.get("online", False)),
            encoded_name=str(payload.get("encoded_name", "")),
        )

    def split_shard(self, table: str, split_key: bytes) -> None:
        logger.debug("Requesting split of %s at %r", table, split_key)
        self._request(
            "POST", self._url("tables", table, "split"), json={"split_key": _key_param(split_key)}
        )

    def column_families(self, table: str) -> List[str]:
        payload = self._request("GET", self._url("tables", table, "families"))
        return [str(f) for f in payload.get("families", [])]

    def worker_count(self) -> int:
        payload = self._request("GET", self._url("cluster", "status"))
        try:
            return int(payload["workers"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ClusterCommunicationError(f"bad cluster status: {payload!r}") from exc
