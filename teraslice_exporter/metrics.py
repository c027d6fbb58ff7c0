"""
Prometheus gauges for Teraslice cluster stats.
"""
import threading
from typing import Dict, List, Mapping, Optional, Tuple

import structlog
from prometheus_client import CollectorRegistry, Gauge, generate_latest

from .models import (
    EXECUTION_STATUSES,
    QUERY_NAMES,
    ClusterSnapshot,
    ControllerStats,
    ExecutionRecord,
    ExecutionVersion,
    WorkerNode,
)
from .util import extract_version_from_image_tag

logger = structlog.get_logger(__name__)

METRIC_PREFIX = 'teraslice'
GLOBAL_LABEL_NAMES = ['url', 'name']
EX_LABEL_NAMES = ['ex_id', 'job_id', 'job_name'] + GLOBAL_LABEL_NAMES
MASTER_INFO_LABEL_NAMES = [
    'arch',
    'clustering_type',
    'name',
    'node_version',
    'platform',
    'teraslice_version',
    'url',
]

# (gauge, label values, value)
Sample = Tuple[Gauge, Dict[str, str], float]


def execution_versions(state: Mapping[str, WorkerNode]) -> List[ExecutionVersion]:
    """
    One ExecutionVersion per distinct ex_id among the nodes' active workers.
    The first worker seen for an execution decides its image.
    """
    seen: Dict[str, ExecutionVersion] = {}
    for node in state.values():
        for worker in node.active:
            if worker.ex_id and worker.ex_id not in seen:
                seen[worker.ex_id] = ExecutionVersion(
                    ex_id=worker.ex_id,
                    job_id=worker.job_id,
                    image=worker.image,
                    version=extract_version_from_image_tag(worker.image),
                )
    return list(seen.values())


class TerasliceMetrics:
    """
    Owns the gauge definitions and projects a ClusterSnapshot onto them.

    Every projection clears all previously set label combinations first, so
    executions that went away between cycles stop being reported.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()
        self._lock = threading.RLock()
        self._gauges: List[Gauge] = []
        self._setup_metrics()

    def _gauge(self, name: str, documentation: str, labelnames: List[str]) -> Gauge:
        gauge = Gauge(
            f'{METRIC_PREFIX}_{name}',
            documentation,
            labelnames=labelnames,
            registry=self.registry,
        )
        self._gauges.append(gauge)
        return gauge

    def _setup_metrics(self):
        """Declare the gauges."""
        self.master_info = self._gauge(
            'master_info',
            'Information about the Teraslice master node.',
            MASTER_INFO_LABEL_NAMES,
        )
        self.execution_info = self._gauge(
            'execution_info',
            'Information about Teraslice execution.',
            ['ex_id', 'job_id', 'image', 'version'] + GLOBAL_LABEL_NAMES,
        )
        self.query_duration = self._gauge(
            'query_duration_seconds',
            'Total time to complete the named query, in seconds.',
            ['query_name'] + GLOBAL_LABEL_NAMES,
        )

        # Controller metrics
        self.workers_active = self._gauge(
            'controller_workers_active',
            'Number of Teraslice workers actively processing slices.',
            EX_LABEL_NAMES,
        )
        self.workers_available = self._gauge(
            'controller_workers_available',
            'Number of Teraslice workers running and waiting for work.',
            EX_LABEL_NAMES,
        )
        self.workers_joined = self._gauge(
            'controller_workers_joined',
            'Total number of Teraslice workers that have joined the execution controller for this job.',
            EX_LABEL_NAMES,
        )
        self.workers_reconnected = self._gauge(
            'controller_workers_reconnected',
            'Total number of Teraslice workers that have reconnected to the execution controller for this job.',
            EX_LABEL_NAMES,
        )
        self.workers_disconnected = self._gauge(
            'controller_workers_disconnected',
            'Total number of Teraslice workers that have disconnected from execution controller for this job.',
            EX_LABEL_NAMES,
        )
        # These only ever go up within an execution but are reported as
        # gauges since they are copied from the controller, not counted here.
        self.slices_processed = self._gauge(
            'controller_slices_processed',
            'Number of slices processed.',
            EX_LABEL_NAMES,
        )
        self.slices_failed = self._gauge(
            'controller_slices_failed',
            'Number of slices failed.',
            EX_LABEL_NAMES,
        )
        self.slices_queued = self._gauge(
            'controller_slices_queued',
            'Number of slices queued for processing.',
            EX_LABEL_NAMES,
        )
        self.slicers_count = self._gauge(
            'controller_slicers_count',
            'Number of execution controllers (slicers) running for this execution.',
            EX_LABEL_NAMES,
        )

        # Execution metrics
        self.cpu_request = self._gauge(
            'execution_cpu_request',
            'Requested number of CPU cores for a Teraslice worker container.',
            EX_LABEL_NAMES,
        )
        self.cpu_limit = self._gauge(
            'execution_cpu_limit',
            'CPU core limit for a Teraslice worker container.',
            EX_LABEL_NAMES,
        )
        self.memory_request = self._gauge(
            'execution_memory_request',
            'Requested amount of memory for a Teraslice worker container.',
            EX_LABEL_NAMES,
        )
        self.memory_limit = self._gauge(
            'execution_memory_limit',
            'Memory limit for a Teraslice worker container.',
            EX_LABEL_NAMES,
        )
        self.created_time = self._gauge(
            'execution_created_timestamp_seconds',
            'Execution creation time.',
            EX_LABEL_NAMES,
        )
        self.updated_time = self._gauge(
            'execution_updated_timestamp_seconds',
            'Execution update time.',
            EX_LABEL_NAMES,
        )
        self.execution_slicers = self._gauge(
            'execution_slicers',
            'Number of slicers defined on the execution.',
            EX_LABEL_NAMES,
        )
        self.execution_workers = self._gauge(
            'execution_workers',
            'Number of workers defined on the execution.  Note that the number of actual workers can differ from this value.',
            EX_LABEL_NAMES,
        )
        self.execution_status = self._gauge(
            'execution_status',
            'Current status of the Teraslice execution.',
            EX_LABEL_NAMES + ['status'],
        )

    def clear(self):
        """Drop every label combination from every managed gauge."""
        with self._lock:
            for gauge in self._gauges:
                gauge.clear()

    def _controller_samples(self, controller: ControllerStats,
                            global_labels: Dict[str, str]) -> List[Sample]:
        labels = {
            'ex_id': controller.ex_id,
            'job_id': controller.job_id,
            'job_name': controller.name,
            **global_labels,
        }
        return [
            (self.workers_active, labels, controller.workers_active),
            (self.workers_available, labels, controller.workers_available),
            (self.workers_joined, labels, controller.workers_joined),
            (self.workers_reconnected, labels, controller.workers_reconnected),
            (self.workers_disconnected, labels, controller.workers_disconnected),
            (self.slices_processed, labels, controller.processed),
            (self.slices_failed, labels, controller.failed),
            (self.slices_queued, labels, controller.queued),
            (self.slicers_count, labels, controller.slicers),
        ]

    def _execution_samples(self, execution: ExecutionRecord,
                           global_labels: Dict[str, str]) -> List[Sample]:
        labels = {
            'ex_id': execution.ex_id,
            'job_id': execution.job_id,
            'job_name': execution.name,
            **global_labels,
        }
        samples: List[Sample] = []

        # Requests and limits are the same setting in Teraslice today, they
        # are exported separately so dashboards survive when that changes.
        if execution.cpu:
            samples.append((self.cpu_request, labels, execution.cpu))
            samples.append((self.cpu_limit, labels, execution.cpu))
        if execution.memory:
            samples.append((self.memory_request, labels, execution.memory))
            samples.append((self.memory_limit, labels, execution.memory))

        if execution.created is not None:
            samples.append((self.created_time, labels, execution.created.timestamp()))
        if execution.updated is not None:
            samples.append((self.updated_time, labels, execution.updated.timestamp()))

        samples.append((self.execution_slicers, labels, execution.slicers))
        samples.append((self.execution_workers, labels, execution.workers))

        if execution.status not in EXECUTION_STATUSES:
            logger.warning("Unknown execution status", ex_id=execution.ex_id, status=execution.status)
        for status in EXECUTION_STATUSES:
            value = 1 if status == execution.status else 0
            samples.append((self.execution_status, {**labels, 'status': status}, value))
        return samples

    def build_samples(self, snapshot: ClusterSnapshot) -> List[Sample]:
        """
        Every (gauge, labels, value) triple for ``snapshot``, with values
        already converted to float. Raises without touching the registry.
        """
        global_labels = {
            'url': snapshot.display_url,
            'name': snapshot.info.name,
        }
        # 'name' is both an info field and a global label; they hold the same value.
        samples: List[Sample] = [(self.master_info, {**snapshot.info.labels(), **global_labels}, 1)]

        for controller in snapshot.controllers:
            samples.extend(self._controller_samples(controller, global_labels))
        for execution in snapshot.executions:
            samples.extend(self._execution_samples(execution, global_labels))
        for ev in execution_versions(snapshot.state):
            samples.append((self.execution_info, {
                'ex_id': ev.ex_id,
                'job_id': ev.job_id,
                'image': ev.image,
                'version': ev.version,
                **global_labels,
            }, 1))

        durations = snapshot.query_duration.as_dict()
        for query_name in QUERY_NAMES:
            samples.append((self.query_duration, {'query_name': query_name, **global_labels},
                            durations[query_name] / 1000.0))

        return [(gauge, {k: str(v) for k, v in labels.items()}, float(value))
                for gauge, labels, value in samples]

    def project(self, snapshot: ClusterSnapshot):
        """
        Replace the current metric set with one derived from ``snapshot``.
        If the snapshot cannot be converted, the previous metric set is kept.
        """
        samples = self.build_samples(snapshot)
        with self._lock:
            self.clear()
            for gauge, labels, value in samples:
                gauge.labels(**labels).set(value)

    def exposition(self) -> bytes:
        """Render the registry in the Prometheus text format."""
        with self._lock:
            return generate_latest(self.registry)

    def get_registry(self) -> CollectorRegistry:
        """Get the metrics registry."""
        return self.registry
