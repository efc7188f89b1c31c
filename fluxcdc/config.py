from __future__ import annotations

import os
from typing import List, Literal, Optional

import yaml
from pydantic import BaseModel, Field

from .constants import (
    DEFAULT_ENGINE_URL,
    DEFAULT_EVENTS_TOPIC,
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_LOCK_DURATION_MS,
    DEFAULT_PROCESSES_TOPIC,
    DEFAULT_WORKER_ID,
)


class EngineConfig(BaseModel):
    """Connection settings for the workflow engine REST API."""

    base_url: str = DEFAULT_ENGINE_URL
    username: Optional[str] = None
    password: Optional[str] = None
    timeout: float = DEFAULT_HTTP_TIMEOUT


class KafkaConfig(BaseModel):
    """Kafka brokers and the two output topics."""

    brokers: List[str] = Field(default_factory=lambda: ["localhost:9092"])
    events_topic: str = DEFAULT_EVENTS_TOPIC
    processes_topic: str = DEFAULT_PROCESSES_TOPIC


class TransportConfig(BaseModel):
    """Transport configuration settings."""

    backend: Literal["kafka", "inmemory"] = "kafka"


class PipelineConfig(BaseModel):
    """Cadence and checkpointing of the history poller."""

    poll_interval: float = 10.0
    batch_size: int = Field(default=100, gt=0)
    publish_attempts: int = Field(default=3, ge=1)
    checkpoint_url: Optional[str] = None
    checkpoint_name: str = "default"


class WorkerConfig(BaseModel):
    """External task worker settings."""

    worker_id: str = DEFAULT_WORKER_ID
    max_tasks: int = Field(default=10, gt=0)
    lock_duration_ms: int = Field(default=DEFAULT_LOCK_DURATION_MS, gt=0)
    tick_interval: float = 1.0
    concurrency: int = Field(default=1, ge=1)
    use_priority: bool = True


class FluxCdcConfig(BaseModel):
    """Top-level configuration model."""

    engine: EngineConfig = Field(default_factory=EngineConfig)
    kafka: KafkaConfig = Field(default_factory=KafkaConfig)
    transport: TransportConfig = Field(default_factory=TransportConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    worker: WorkerConfig = Field(default_factory=WorkerConfig)
    log_level: str = "info"


def load_config(path: Optional[str] = None) -> FluxCdcConfig:
    """Load configuration from YAML file and apply environment overrides.

    Args:
        path: Optional path to config file. Falls back to FLUXCDC_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("FLUXCDC_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = FluxCdcConfig(**data)
    else:
        config = FluxCdcConfig()

    base_url = os.getenv("FLUXNOVA_BASE_URL")
    if base_url:
        config.engine.base_url = base_url
    username = os.getenv("FLUXNOVA_USERNAME")
    if username:
        config.engine.username = username
    password = os.getenv("FLUXNOVA_PASSWORD")
    if password:
        config.engine.password = password
    brokers = os.getenv("KAFKA_BROKERS")
    if brokers:
        config.kafka.brokers = [b.strip() for b in brokers.split(",") if b.strip()]
    backend = os.getenv("FLUXCDC_TRANSPORT")
    if backend:
        config.transport.backend = backend.lower()
    checkpoint_url = os.getenv("FLUXCDC_CHECKPOINT_URL")
    if checkpoint_url:
        config.pipeline.checkpoint_url = checkpoint_url
    worker_id = os.getenv("FLUXCDC_WORKER_ID")
    if worker_id:
        config.worker.worker_id = worker_id
    log_level = os.getenv("LOG_LEVEL")
    if log_level:
        config.log_level = log_level
    return config
