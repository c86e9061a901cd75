"""
AudioScholar Backend — Service Wiring
======================================

What:  Builds the resilience core once per process and tears it down.
How:   build_services() constructs every service from settings, sharing one
       KeyRotationManager and one shutdown Event; ServiceContainer.shutdown()
       sets the Event so any backoff in progress exits with
       OperationInterruptedError, then closes HTTP clients.
Who:   The hosting process (web app lifespan, message consumer entrypoint).

Lifecycle:
    Startup:
    1. Initialize logging
    2. Load keys per provider (warn on empty pools)
    3. Construct executors and API consumers

    Shutdown:
    1. Signal shutdown to every backoff sleep
    2. Stop background workers
    3. Close HTTP clients
"""

import logging
import threading
from dataclasses import dataclass
from typing import Optional

import httpx

from audioscholar.config import Settings, settings as default_settings
from audioscholar.logging_config import setup_logging
from audioscholar.services.convert_api_service import ConvertApiService
from audioscholar.services.gemini_service import GeminiService
from audioscholar.services.key_rotation_manager import DefaultKeyRotationManager
from audioscholar.services.model_rotation_service import ModelRotationService
from audioscholar.services.task_executor import RobustTaskExecutor

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Everything a worker needs, built once and shared by reference."""

    key_manager: DefaultKeyRotationManager
    task_executor: RobustTaskExecutor
    rotation_service: ModelRotationService
    convert_api_service: ConvertApiService
    gemini_service: GeminiService
    stop_event: threading.Event
    http_client: httpx.Client

    def shutdown(self, wait: bool = True) -> None:
        logger.info("AudioScholar core shutting down...")
        self.stop_event.set()
        self.task_executor.shutdown(wait=wait)
        self.http_client.close()
        logger.info("AudioScholar core shutdown complete")


def build_services(
    settings: Optional[Settings] = None,
    http_client: Optional[httpx.Client] = None,
    configure_logging: bool = True,
) -> ServiceContainer:
    """Construct the resilience core from `settings` (defaults to the env singleton)."""
    settings = settings or default_settings
    if configure_logging:
        setup_logging(settings.log_level)

    stop_event = threading.Event()
    client = http_client or httpx.Client(timeout=settings.http_timeout_seconds)

    key_manager = DefaultKeyRotationManager.from_settings(settings)
    task_executor = RobustTaskExecutor.from_settings(settings, stop_event=stop_event)
    rotation_service = ModelRotationService.from_settings(settings, stop_event=stop_event)

    container = ServiceContainer(
        key_manager=key_manager,
        task_executor=task_executor,
        rotation_service=rotation_service,
        convert_api_service=ConvertApiService.from_settings(
            settings, key_manager=key_manager, http_client=client
        ),
        gemini_service=GeminiService.from_settings(
            settings,
            key_manager=key_manager,
            rotation_service=rotation_service,
            http_client=client,
        ),
        stop_event=stop_event,
        http_client=client,
    )
    logger.info("AudioScholar core started")
    return container
