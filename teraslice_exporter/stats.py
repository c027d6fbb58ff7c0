"""
Collects cluster statistics from the Teraslice master API.
"""
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, List, NamedTuple, Optional
from urllib.parse import urljoin

import requests
import structlog

from .exceptions import CollectionError, FetchError
from .models import (
    ClusterInfo,
    ClusterSnapshot,
    ControllerStats,
    ExecutionRecord,
    JobRecord,
    QueryDuration,
    parse_cluster_state,
    parse_list,
)
from .util import chunked, elapsed_ms, pause

logger = structlog.get_logger(__name__)

DEFAULT_JOBS_QUERY_SIZE = 200
DEFAULT_EXECUTION_BATCH_SIZE = 10
DEFAULT_EXECUTION_BATCH_DELAY_MS = 25
DEFAULT_TIMEOUT = 10.0


class ApiResponse(NamedTuple):
    url: str
    data: Any
    query_duration: float  # ms


class TerasliceStats:
    """
    Fetches the resources needed for one observation of a Teraslice cluster
    and assembles them into a ClusterSnapshot.

    ``snapshot`` only ever changes by whole-object replacement at the end of a
    successful ``update()``; a failed update leaves it as it was.
    """

    def __init__(self, base_url: str, display_url: Optional[str] = None,
                 session: Optional[requests.Session] = None,
                 timeout: float = DEFAULT_TIMEOUT,
                 jobs_query_size: int = DEFAULT_JOBS_QUERY_SIZE,
                 execution_batch_size: int = DEFAULT_EXECUTION_BATCH_SIZE,
                 execution_batch_delay: float = DEFAULT_EXECUTION_BATCH_DELAY_MS):
        self.base_url = base_url
        self.display_url = display_url or base_url
        self.timeout = timeout
        self.jobs_query_size = jobs_query_size
        self.execution_batch_size = execution_batch_size
        self.execution_batch_delay = execution_batch_delay
        self._owns_session = session is None
        self.session = session or requests.Session()
        self.session.headers.setdefault('Accept', 'application/json')
        self.snapshot: Optional[ClusterSnapshot] = None
        self._lock = threading.Lock()

    def get_teraslice_api(self, path: str) -> ApiResponse:
        """GET ``path`` relative to the base URL and return the parsed JSON body."""
        url = urljoin(self.base_url, path)
        start = time.perf_counter()
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise FetchError(url, e) from e

        if response.status_code != 200:
            raise FetchError(url, f"HTTP {response.status_code}")
        if not response.content:
            raise FetchError(url, "empty response body")
        try:
            data = response.json()
        except ValueError as e:
            raise FetchError(url, f"invalid JSON: {e}") from e

        duration = elapsed_ms(start)
        logger.debug("Teraslice query completed", url=url, duration_ms=duration)
        return ApiResponse(url=url, data=data, query_duration=duration)

    def _parse(self, response: ApiResponse, parser: Callable[[Any], Any]):
        try:
            return parser(response.data)
        except (KeyError, TypeError, ValueError, OverflowError) as e:
            raise FetchError(response.url, f"malformed payload: {e!r}") from e

    def _fetch_executions(self, executor: ThreadPoolExecutor,
                          controllers: List[ControllerStats]) -> List[ExecutionRecord]:
        executions: List[ExecutionRecord] = []
        batches = list(chunked(controllers, self.execution_batch_size))
        for i, batch in enumerate(batches):
            if i:
                pause(self.execution_batch_delay)
            futures = [executor.submit(self.get_teraslice_api, f"/v1/ex/{c.ex_id}") for c in batch]
            for future in futures:
                executions.append(self._parse(future.result(), ExecutionRecord.from_dict))
        return executions

    def _collect(self) -> ClusterSnapshot:
        workers = max(4, self.execution_batch_size)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="teraslice-query") as executor:
            info_f = executor.submit(self.get_teraslice_api, '/')
            jobs_f = executor.submit(self.get_teraslice_api, f"/v1/jobs?size={self.jobs_query_size}")
            controllers_f = executor.submit(self.get_teraslice_api, '/v1/cluster/controllers')
            state_f = executor.submit(self.get_teraslice_api, '/v1/cluster/state')

            info_r = info_f.result()
            jobs_r = jobs_f.result()
            controllers_r = controllers_f.result()
            state_r = state_f.result()

            info = self._parse(info_r, ClusterInfo.from_dict)
            jobs = self._parse(jobs_r, lambda d: parse_list(d, JobRecord, "jobs"))
            controllers = self._parse(controllers_r, lambda d: parse_list(d, ControllerStats, "controllers"))
            state = self._parse(state_r, parse_cluster_state)

            start = time.perf_counter()
            executions = self._fetch_executions(executor, controllers)
            executions_duration = elapsed_ms(start)

        return ClusterSnapshot(
            base_url=self.base_url,
            display_url=self.display_url,
            info=info,
            jobs=tuple(jobs),
            controllers=tuple(controllers),
            executions=tuple(executions),
            state=state,
            query_duration=QueryDuration(
                info=info_r.query_duration,
                jobs=jobs_r.query_duration,
                controllers=controllers_r.query_duration,
                executions=executions_duration,
                state=state_r.query_duration,
            ),
        )

    def update(self) -> ClusterSnapshot:
        """
        Run one collection cycle and return the new snapshot.

        Raises CollectionError if any query fails; the previous snapshot is kept.
        """
        with self._lock:
            try:
                snapshot = self._collect()
            except FetchError as e:
                raise CollectionError(self.base_url, e) from e
            except Exception as e:
                logger.exception("Unexpected error collecting Teraslice stats", url=self.base_url)
                raise CollectionError(self.base_url, e) from e
            self.snapshot = snapshot
            return snapshot

    def close(self):
        """Close the HTTP session if this instance created it."""
        if self._owns_session:
            self.session.close()
