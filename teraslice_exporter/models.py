"""
Typed records for the Teraslice API payloads.

The API returns loosely shaped JSON. Each resource is converted into one of
the records below as soon as it is parsed, so the rest of the pipeline never
handles raw dicts. Optional fields fall back to defaults; missing identity
fields (``ex_id``, ``job_id``) raise.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

EXECUTION_STATUSES: Tuple[str, ...] = (
    'completed',
    'failed',
    'failing',
    'initializing',
    'paused',
    'pending',
    'recovering',
    'rejected',
    'running',
    'scheduling',
    'stopped',
    'stopping',
    'terminated',
)

QUERY_NAMES: Tuple[str, ...] = ('info', 'jobs', 'controllers', 'executions', 'state')


def _require_mapping(data: Any, kind: str) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise TypeError(f"expected a JSON object for {kind}, got {type(data).__name__}")
    return data


def _require_list(data: Any, kind: str) -> List[Any]:
    if not isinstance(data, list):
        raise TypeError(f"expected a JSON array for {kind}, got {type(data).__name__}")
    return data


def _str(value: Any) -> str:
    return "" if value is None else str(value)


def _number(value: Any, default: float = 0) -> float:
    if value is None or value == "":
        return default
    return float(value)


def _optional_number(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    return _number(value)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp such as ``2020-07-09T21:30:34.537Z``."""
    if not value:
        return None
    text = str(value)
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class ClusterInfo:
    """Teraslice master metadata returned by ``/``."""

    arch: str = ""
    clustering_type: str = ""
    name: str = ""
    node_version: str = ""
    platform: str = ""
    teraslice_version: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> 'ClusterInfo':
        data = _require_mapping(data, "cluster info")
        return cls(
            arch=_str(data.get('arch')),
            clustering_type=_str(data.get('clustering_type')),
            name=_str(data.get('name')),
            node_version=_str(data.get('node_version')),
            platform=_str(data.get('platform')),
            teraslice_version=_str(data.get('teraslice_version')),
        )

    def labels(self) -> Dict[str, str]:
        return {
            'arch': self.arch,
            'clustering_type': self.clustering_type,
            'name': self.name,
            'node_version': self.node_version,
            'platform': self.platform,
            'teraslice_version': self.teraslice_version,
        }


@dataclass(frozen=True)
class JobRecord:
    """A job definition from ``/v1/jobs``; only used for counts."""

    job_id: str
    name: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> 'JobRecord':
        data = _require_mapping(data, "job")
        return cls(job_id=_str(data['job_id']), name=_str(data.get('name')))


@dataclass(frozen=True)
class ControllerStats:
    """
    Execution controller (slicer) stats from ``/v1/cluster/controllers``::

        {
            "ex_id": "5ba1da6a-0ba2-49f4-92c3-d436ba510111",
            "job_id": "7e6dfa3c-6665-455d-9d52-f11bd32ad111",
            "name": "my-job-name",
            "workers_available": 0,
            "workers_active": 6,
            "workers_joined": 6,
            "workers_reconnected": 0,
            "workers_disconnected": 0,
            "failed": 1,
            "queued": 7,
            "processed": 204156,
            "slicers": 1,
            ...
        }
    """

    ex_id: str
    job_id: str
    name: str = ""
    workers_active: float = 0
    workers_available: float = 0
    workers_joined: float = 0
    workers_reconnected: float = 0
    workers_disconnected: float = 0
    processed: float = 0
    failed: float = 0
    queued: float = 0
    slicers: float = 0

    @classmethod
    def from_dict(cls, data: Any) -> 'ControllerStats':
        data = _require_mapping(data, "controller")
        return cls(
            ex_id=_str(data['ex_id']),
            job_id=_str(data['job_id']),
            name=_str(data.get('name')),
            workers_active=_number(data.get('workers_active')),
            workers_available=_number(data.get('workers_available')),
            workers_joined=_number(data.get('workers_joined')),
            workers_reconnected=_number(data.get('workers_reconnected')),
            workers_disconnected=_number(data.get('workers_disconnected')),
            processed=_number(data.get('processed')),
            failed=_number(data.get('failed')),
            queued=_number(data.get('queued')),
            slicers=_number(data.get('slicers')),
        )


@dataclass(frozen=True)
class ExecutionRecord:
    """An execution definition from ``/v1/ex/<ex_id>``."""

    ex_id: str
    job_id: str
    name: str = ""
    cpu: Optional[float] = None
    memory: Optional[float] = None
    created: Optional[datetime] = None
    updated: Optional[datetime] = None
    slicers: float = 0
    workers: float = 0
    status: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> 'ExecutionRecord':
        data = _require_mapping(data, "execution")
        return cls(
            ex_id=_str(data['ex_id']),
            job_id=_str(data['job_id']),
            name=_str(data.get('name')),
            cpu=_optional_number(data.get('cpu')),
            memory=_optional_number(data.get('memory')),
            created=parse_timestamp(data.get('_created')),
            updated=parse_timestamp(data.get('_updated')),
            slicers=_number(data.get('slicers')),
            workers=_number(data.get('workers')),
            status=_str(data.get('_status')),
        )


@dataclass(frozen=True)
class WorkerAssignment:
    """
    One entry of a node's ``active`` list. In kubernetes mode this is a pod::

        {
            "assignment": "worker",
            "ex_id": "5ba1da6a-0ba2-49f4-92c3-d436ba510111",
            "image": "teraslice:v0.70.0",
            "job_id": "7e6dfa3c-6665-455d-9d52-f11bd32ad111",
            "pod_name": "ts-wkr-my-job-name-1d940e75-58d9-74c54e7dc1-nxaaa",
            "worker_id": "ts-wkr-my-job-name-1d940e75-58d9-74c54e7dc1-nxaaa"
        }
    """

    ex_id: str = ""
    job_id: str = ""
    image: str = ""
    assignment: str = ""
    worker_id: str = ""
    pod_name: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> 'WorkerAssignment':
        data = _require_mapping(data, "worker")
        return cls(
            ex_id=_str(data.get('ex_id')),
            job_id=_str(data.get('job_id')),
            image=_str(data.get('image')),
            assignment=_str(data.get('assignment')),
            worker_id=_str(data.get('worker_id')),
            pod_name=_str(data.get('pod_name')),
        )


@dataclass(frozen=True)
class WorkerNode:
    """A node from ``/v1/cluster/state`` with its active worker assignments."""

    node_id: str
    hostname: str = ""
    state: str = ""
    active: Tuple[WorkerAssignment, ...] = ()

    @classmethod
    def from_dict(cls, node_id: str, data: Any) -> 'WorkerNode':
        data = _require_mapping(data, "node")
        return cls(
            node_id=_str(data.get('node_id') or node_id),
            hostname=_str(data.get('hostname')),
            state=_str(data.get('state')),
            active=tuple(WorkerAssignment.from_dict(w)
                         for w in _require_list(data.get('active') or [], "active workers")),
        )


def parse_cluster_state(data: Any) -> Dict[str, WorkerNode]:
    """Parse the ``/v1/cluster/state`` mapping of node id to node."""
    data = _require_mapping(data, "cluster state")
    return {node_id: WorkerNode.from_dict(node_id, node) for node_id, node in data.items()}


def parse_list(data: Any, record_type, kind: str) -> List[Any]:
    return [record_type.from_dict(item) for item in _require_list(data, kind)]


@dataclass(frozen=True)
class QueryDuration:
    """Elapsed time of each query in one collection cycle, in milliseconds."""

    info: float = 0
    jobs: float = 0
    controllers: float = 0
    executions: float = 0
    state: float = 0

    def as_dict(self) -> Dict[str, float]:
        return {name: getattr(self, name) for name in QUERY_NAMES}


@dataclass(frozen=True)
class ExecutionVersion:
    """Image and version of an execution's workers, derived from cluster state."""

    ex_id: str
    job_id: str
    image: str
    version: str


@dataclass(frozen=True)
class ClusterSnapshot:
    """Everything collected from the cluster in one cycle."""

    base_url: str
    display_url: str
    info: ClusterInfo
    jobs: Tuple[JobRecord, ...] = ()
    controllers: Tuple[ControllerStats, ...] = ()
    executions: Tuple[ExecutionRecord, ...] = ()
    state: Dict[str, WorkerNode] = field(default_factory=dict)
    query_duration: QueryDuration = field(default_factory=QueryDuration)
    collected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def dataset_sizes(self) -> Dict[str, int]:
        return {
            'controllers': len(self.controllers),
            'executions': len(self.executions),
            'jobs': len(self.jobs),
            'nodes': len(self.state),
        }
