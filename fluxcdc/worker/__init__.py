"""External task worker."""

from __future__ import annotations

from .dispatcher import DispatchReport, TaskDispatcher
from .registry import TopicHandler, TopicRegistry, load_registry

__all__ = [
    "DispatchReport",
    "TaskDispatcher",
    "TopicHandler",
    "TopicRegistry",
    "load_registry",
]
