"""Index sink: the search backend side of the pipelines.

``IndexSink`` is the only contract the pipelines depend on: one call per
buffer, returning whether the whole buffer was accepted. A bulk response
that reports ``"errors": true`` counts as a failed call even when most items
succeeded; the caller retries the whole buffer.

``ElasticsearchSink`` implements it for an Elasticsearch-compatible HTTP
endpoint using only ``urllib``, plus the few administrative calls the CLI
needs (index creation, ledger statistics, listing indexed ledgers).
"""

from __future__ import annotations

import http.client
import json
import urllib.error
import urllib.request
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from .documents import INDEX_NAMES, LEDGERS_INDEX
from .logging_setup import get_logger

logger = get_logger("ledger_indexer.sink")

DEFAULT_TIMEOUT_SEC = 60.0
_SEARCH_PAGE_SIZE = 1000
_TRANSPORT_ERRORS = (OSError, http.client.HTTPException)


class IndexSink(Protocol):
    def bulk_insert(self, payload: str) -> bool: ...


class SinkError(RuntimeError):
    """Raised by administrative calls when the backend is unreachable or refuses."""


@dataclass(frozen=True, slots=True)
class LedgerStats:
    count: int
    min_seq: int | None
    max_seq: int | None


class ElasticsearchSink:
    def __init__(self, url: str, *, timeout: float = DEFAULT_TIMEOUT_SEC) -> None:
        self.url = url.rstrip("/")
        self.timeout = timeout

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return f"ElasticsearchSink({self.url!r})"

    # ---- transport -----------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        *,
        body: bytes | None = None,
        content_type: str = "application/json",
    ) -> tuple[int, bytes]:
        """Perform one HTTP call; HTTP error statuses are returned, not raised."""

        req = urllib.request.Request(f"{self.url}/{path.lstrip('/')}", data=body, method=method)
        if body is not None:
            req.add_header("Content-Type", content_type)
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                return resp.status, resp.read()
        except urllib.error.HTTPError as e:
            try:
                err_body = e.read()
            except _TRANSPORT_ERRORS:
                err_body = b""
            return e.code, err_body

    def _json(
        self, method: str, path: str, payload: Mapping[str, Any] | None = None
    ) -> dict[str, Any]:
        data = json.dumps(payload).encode("utf-8") if payload is not None else None
        try:
            status, raw = self._request(method, path, body=data)
        except _TRANSPORT_ERRORS as e:
            raise SinkError(f"{method} {path} failed: {e}") from e
        if status >= 400:
            raise SinkError(
                f"{method} {path} failed: HTTP {status}: {raw.decode('utf-8', 'replace')}"
            )
        try:
            result = json.loads(raw.decode("utf-8")) if raw else {}
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise SinkError(f"{method} {path} returned invalid JSON") from e
        if not isinstance(result, dict):
            raise SinkError(f"{method} {path} returned a non-object JSON body")
        return result

    # ---- IndexSink -----------------------------------------------------------

    def bulk_insert(self, payload: str) -> bool:
        try:
            status, raw = self._request(
                "POST",
                "_bulk",
                body=payload.encode("utf-8"),
                content_type="application/x-ndjson",
            )
        except _TRANSPORT_ERRORS as e:
            logger.warning("sink:bulk_transport_error url=%s error=%s", self.url, e)
            return False

        if status >= 400:
            logger.warning("sink:bulk_http_error status=%d body=%s", status, raw[:500])
            return False
        try:
            result = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            logger.warning("sink:bulk_invalid_response bytes=%d", len(raw))
            return False
        if not isinstance(result, dict):
            logger.warning("sink:bulk_invalid_response bytes=%d", len(raw))
            return False
        if result.get("errors"):
            failed = [
                action
                for item in result.get("items", [])
                if (action := item.get("index") or item.get("create") or item.get("update"))
                and action.get("error")
            ]
            first = failed[0] if failed else {}
            logger.warning(
                "sink:bulk_item_errors failed=%d first_index=%s first_id=%s first_error=%s",
                len(failed),
                first.get("_index"),
                first.get("_id"),
                (first.get("error") or {}).get("type"),
            )
            return False
        return True

    # ---- administration ------------------------------------------------------

    def index_exists(self, name: str) -> bool:
        try:
            status, _ = self._request("HEAD", name)
        except _TRANSPORT_ERRORS as e:
            raise SinkError(f"HEAD {name} failed: {e}") from e
        if status == 404:
            return False
        if status >= 400:
            raise SinkError(f"HEAD {name} failed: HTTP {status}")
        return True

    def create_indexes(self, *, force: bool = False) -> list[str]:
        """Create every document collection; return the names created.

        Existing indexes are kept unless ``force`` is set, in which case they
        are deleted and recreated empty. Mappings are left to the backend.
        """

        created: list[str] = []
        for name in INDEX_NAMES:
            if self.index_exists(name):
                if not force:
                    logger.info("sink:index_exists index=%s", name)
                    continue
                self._json("DELETE", name)
                logger.info("sink:index_deleted index=%s", name)
            self._json("PUT", name, {})
            logger.info("sink:index_created index=%s", name)
            created.append(name)
        return created

    def ledger_stats(self) -> LedgerStats:
        body = {
            "size": 0,
            "aggs": {
                "min_seq": {"min": {"field": "seq"}},
                "max_seq": {"max": {"field": "seq"}},
                "count": {"value_count": {"field": "seq"}},
            },
        }
        result = self._json("POST", f"{LEDGERS_INDEX}/_search", body)
        aggs = result.get("aggregations") or {}

        def _agg(name: str) -> int | None:
            value = (aggs.get(name) or {}).get("value")
            return int(value) if value is not None else None

        return LedgerStats(
            count=_agg("count") or 0,
            min_seq=_agg("min_seq"),
            max_seq=_agg("max_seq"),
        )

    def indexed_ledger_seqs(self, first: int, end: int) -> list[int]:
        """Return the indexed ledger sequences in ``[first, end)``, ascending."""

        seqs: list[int] = []
        search_after: list[Any] | None = None
        while True:
            body: dict[str, Any] = {
                "size": _SEARCH_PAGE_SIZE,
                "_source": ["seq"],
                "query": {"range": {"seq": {"gte": first, "lt": end}}},
                "sort": [{"seq": "asc"}],
            }
            if search_after is not None:
                body["search_after"] = search_after
            result = self._json("POST", f"{LEDGERS_INDEX}/_search", body)
            hits = (result.get("hits") or {}).get("hits") or []
            if not hits:
                return seqs
            seqs.extend(int(h["_source"]["seq"]) for h in hits)
            search_after = hits[-1].get("sort")
            if len(hits) < _SEARCH_PAGE_SIZE or search_after is None:
                return seqs


__all__ = ["DEFAULT_TIMEOUT_SEC", "ElasticsearchSink", "IndexSink", "LedgerStats", "SinkError"]
