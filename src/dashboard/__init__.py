from src.dashboard.backend_client import BackendClient, SSEDecoder, StreamEvent
from src.dashboard.config import DashboardConfig, ReconcileStrategy, load_config
from src.dashboard.errors import (
    DashboardError,
    FetchFailure,
    MalformedPayload,
    StreamTransportError,
)
from src.dashboard.log_buffer import LogBuffer
from src.dashboard.read_model_store import ReadModelStore, StoreSnapshot
from src.dashboard.reconcile import (
    PullReconciler,
    PushReconciler,
    Reconciler,
    build_reconciler,
)
from src.dashboard.run_session import RunSession

__all__ = [
    "BackendClient",
    "DashboardConfig",
    "DashboardError",
    "FetchFailure",
    "LogBuffer",
    "MalformedPayload",
    "PullReconciler",
    "PushReconciler",
    "ReadModelStore",
    "ReconcileStrategy",
    "Reconciler",
    "RunSession",
    "SSEDecoder",
    "StoreSnapshot",
    "StreamEvent",
    "StreamTransportError",
    "build_reconciler",
    "load_config",
]
