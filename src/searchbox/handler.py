"""
Batch search handler.

SearchService validates the batch, runs each request concurrently on a
thread pool (compile, execute once, reshape) and assembles the envelope.

Error policy: every request runs to completion. If any failed, the first
failure in submission order is raised for the whole batch; otherwise the
results come back in submission order.
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import psycopg

from config.database import get_pool
from config.indexes import IndexRegistry, get_index_registry
from config.settings import get_settings
from core.logging import bind_context, get_logger, in_current_context
from searchbox.compiler import MODE_FACET_SEARCH, QueryPlan, compile_request
from searchbox.errors import DatabaseError, SearchboxError, UnknownError
from searchbox.models import RequestEnvelope
from searchbox.reshaper import build_facet_search_response, build_search_response
from searchbox.sql import render
from searchbox.validation import build_request, parse_batch

logger = get_logger(__name__)


class SearchExecutor:
    """
    Runs compiled statements on an injected connection pool.

    The pool only needs a connection() context manager yielding an object
    with execute(); psycopg_pool.ConnectionPool is the production one.
    """

    def __init__(self, pool: Any, log_sql: bool = False):
        self.pool = pool
        self.log_sql = log_sql

    def _execute(self, plan: QueryPlan) -> List[Tuple[Any, ...]]:
        if self.log_sql:
            logger.debug("Executing statement", index=plan.request.index_name, sql=render(plan.statement))
        try:
            with self.pool.connection() as conn:
                return list(conn.execute(plan.statement).fetchall())
        except psycopg.Error as e:
            logger.exception(
                "Search statement failed",
                index=plan.request.index_name,
                sqlstate=getattr(e, "sqlstate", None),
            )
            raise DatabaseError(str(e)) from e

    def fetch_document(self, plan: QueryPlan) -> Optional[Dict[str, Any]]:
        """The single JSON document of a search statement."""
        rows = self._execute(plan)
        return rows[0][0] if rows else None

    def fetch_rows(self, plan: QueryPlan) -> List[Tuple[Any, ...]]:
        return self._execute(plan)


Outcome = Union[Dict[str, Any], SearchboxError]


class SearchService:
    """Validates, compiles and executes batches of search requests."""

    def __init__(
        self,
        executor: SearchExecutor,
        registry: IndexRegistry,
        max_requests: int,
        workers: int = 8,
    ):
        self.executor = executor
        self.registry = registry
        self.max_requests = max_requests
        self.workers = workers

    def handle_request(self, envelope: RequestEnvelope) -> Dict[str, Any]:
        """Compile, execute and reshape one request of a batch."""
        start = time.perf_counter()
        config = self.registry.get(envelope.table)
        request = build_request(envelope, config)
        plan = compile_request(request, config.settings)

        if plan.mode == MODE_FACET_SEARCH:
            rows = self.executor.fetch_rows(plan)
            return build_facet_search_response(rows, time.perf_counter() - start)

        document = self.executor.fetch_document(plan)
        return build_search_response(plan, document, config.settings, time.perf_counter() - start)

    def _run_one(self, envelope: RequestEnvelope) -> Outcome:
        # Runs in a copied context, so the binding stays with this request
        bind_context(index=envelope.index_name)
        try:
            return self.handle_request(envelope)
        except SearchboxError as e:
            return e
        except Exception as e:
            logger.exception("Unexpected error while searching")
            error = UnknownError(str(e))
            error.__cause__ = e
            return error

    def run_batch(self, envelopes: Sequence[RequestEnvelope]) -> List[Outcome]:
        """Run every request concurrently; outcomes keep submission order."""
        outcomes: List[Optional[Outcome]] = [None] * len(envelopes)
        workers = max(1, min(self.workers, len(envelopes)))

        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {
                pool.submit(in_current_context(self._run_one), envelope): idx
                for idx, envelope in enumerate(envelopes)
            }
            for future in as_completed(futures):
                outcomes[futures[future]] = future.result()

        return outcomes

    def search(self, payload: Any) -> Dict[str, Any]:
        """
        Handle one batch payload.

        Returns:
            {"results": [...]} in submission order.

        Raises:
            SearchboxError: the batch itself is invalid, or the first failed
                request in submission order.
        """
        start = time.perf_counter()
        batch = parse_batch(payload, self.max_requests)
        outcomes = self.run_batch(batch.requests)

        errors = [(i, o) for i, o in enumerate(outcomes) if isinstance(o, SearchboxError)]
        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        if errors:
            position, first = errors[0]
            logger.warning(
                "Search batch failed",
                requests=len(outcomes),
                failed=len(errors),
                first_failed=position,
                error_type=type(first).__name__,
                error=str(first),
                duration_ms=duration_ms,
            )
            raise first

        logger.info(
            "Search batch completed",
            requests=len(outcomes),
            indexes=sorted({e.table for e in batch.requests}),
            duration_ms=duration_ms,
        )
        return {"results": outcomes}


_service: Optional[SearchService] = None
_service_lock = threading.Lock()


def get_search_service() -> SearchService:
    """Get the process-wide SearchService (pool and index configs from settings)."""
    global _service
    if _service is None:
        with _service_lock:
            if _service is None:
                settings = get_settings()
                _service = SearchService(
                    executor=SearchExecutor(get_pool(), log_sql=settings.log_sql),
                    registry=get_index_registry(),
                    max_requests=settings.max_requests_per_batch,
                    workers=settings.batch_workers,
                )
    return _service


def reset_search_service() -> None:
    global _service
    with _service_lock:
        _service = None
