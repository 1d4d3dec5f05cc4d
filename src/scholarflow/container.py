"""Dependency injection container for the scholarship core."""

from __future__ import annotations

from dependency_injector import containers, providers

from .core import (
    ApplicationLifecycle,
    ApplicationWorkflow,
    CommitteeDecisionProcessor,
    EndorsementBatchProcessor,
    InterviewScheduler,
    KeyedLocks,
)
from .schemas.config import load_config
from .service import LoggingNotifier, ScholarshipService
from .store import InMemoryRepository, ScholarshipRepository


class ScholarFlowContainer(containers.DeclarativeContainer):
    """Dependency-injector container definition."""

    config = providers.Configuration()

    repository = providers.Singleton(InMemoryRepository)
    locks = providers.Singleton(KeyedLocks)
    lifecycle = providers.Singleton(ApplicationLifecycle)

    workflow = providers.Singleton(
        ApplicationWorkflow,
        repository=repository,
        lifecycle=lifecycle,
        locks=locks,
    )

    scheduler = providers.Singleton(
        InterviewScheduler,
        repository=repository,
        lifecycle=lifecycle,
        locks=locks,
        config=config.scheduler,
    )

    endorsement = providers.Singleton(
        EndorsementBatchProcessor,
        repository=repository,
        workflow=workflow,
        max_workers=config.endorsement.max_workers,
        default_notes=config.endorsement.default_notes,
    )

    decisions = providers.Singleton(
        CommitteeDecisionProcessor,
        repository=repository,
        workflow=workflow,
        max_workers=config.committee.max_workers,
        default_approval_notes=config.committee.default_approval_notes,
    )

    notifier = providers.Singleton(LoggingNotifier)

    service = providers.Factory(
        ScholarshipService,
        repository=repository,
        workflow=workflow,
        scheduler=scheduler,
        endorsement=endorsement,
        decisions=decisions,
        notifier=notifier,
    )


def create_container(
    *,
    settings: dict | None = None,
    repository: ScholarshipRepository | None = None,
) -> ScholarFlowContainer:
    """Instantiate container with optional overrides."""

    container = ScholarFlowContainer()

    if repository is not None:
        container.repository.override(providers.Object(repository))

    if settings:
        container.config.from_dict(load_config(settings).to_settings())

    return container


__all__ = ["ScholarFlowContainer", "create_container"]
