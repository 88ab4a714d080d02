"""Dependency injection container for the workflow engine."""

from __future__ import annotations

from datetime import datetime
from typing import Callable

import pendulum
from dependency_injector import containers, providers

from .core import ApplicationLifecycle, ComplianceConfig, ComplianceEngine, ProgressTracker
from .service import HiringService, TrainingService
from .storage import InMemoryRepository


class WorkflowContainer(containers.DeclarativeContainer):
    """Dependency-injector container definition."""

    clock = providers.Object(pendulum.now)

    repository = providers.Singleton(InMemoryRepository)

    compliance_config = providers.Singleton(ComplianceConfig)

    lifecycle = providers.Singleton(ApplicationLifecycle, now_provider=clock)

    compliance_engine = providers.Singleton(
        ComplianceEngine,
        config=compliance_config,
        now_provider=clock,
    )

    progress_tracker = providers.Singleton(ProgressTracker, now_provider=clock)

    hiring_service = providers.Factory(
        HiringService,
        lifecycle=lifecycle,
        repository=repository,
    )

    training_service = providers.Factory(
        TrainingService,
        engine=compliance_engine,
        repository=repository,
        now_provider=clock,
    )


def create_container(
    *,
    settings: dict | None = None,
    now_provider: Callable[[], datetime] | None = None,
) -> WorkflowContainer:
    """Instantiate container with optional overrides."""

    container = WorkflowContainer()

    if now_provider is not None:
        container.clock.override(providers.Object(now_provider))

    if not settings:
        return container

    compliance_settings = settings.get("compliance", {}) if isinstance(settings, dict) else {}
    if compliance_settings:
        compliance_config = ComplianceConfig(**compliance_settings)
        container.compliance_config.override(providers.Object(compliance_config))

    return container
