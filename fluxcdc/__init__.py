"""fluxcdc: change-data-capture and external task worker for a Fluxnova engine."""

from .checkpoint import get_checkpoint_store
from .contracts import ActivityRecord, LeasedTask, ProcessEvent, ProcessState, Watermark
from .engine import EngineClient, ExternalTaskClient, HistoryClient
from .pipeline import Pipeline, PipelineState
from .poller import CheckpointedPoller, PollResult
from .publisher import EventPublisher, PublishReport
from .transports import get_transport
from .worker import TaskDispatcher, TopicRegistry

__version__ = "0.1.0"
__all__ = [
    "ActivityRecord",
    "CheckpointedPoller",
    "EngineClient",
    "EventPublisher",
    "ExternalTaskClient",
    "HistoryClient",
    "LeasedTask",
    "Pipeline",
    "PipelineState",
    "PollResult",
    "ProcessEvent",
    "ProcessState",
    "PublishReport",
    "TaskDispatcher",
    "TopicRegistry",
    "Watermark",
    "get_checkpoint_store",
    "get_transport",
]
