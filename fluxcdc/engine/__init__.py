"""Clients for the workflow engine REST API."""

from __future__ import annotations

from .client import EngineClient
from .history import HistoryClient
from .tasks import ExternalTaskClient

__all__ = ["EngineClient", "HistoryClient", "ExternalTaskClient"]
