"""
Drill Service Factory
Centralizes the logic for selecting storage and content adapters.
"""

import logging

from cadence.application.config import AppConfig
from cadence.application.drill_service import DrillService
from cadence.application.scheduler import FsrsParameters, FsrsScheduler
from cadence.domain.review.models import DrillKind
from cadence.domain.review.ports import Clock, ContentSource, ReviewRepository
from cadence.infrastructure.adapters.json_store import JsonReviewRepository
from cadence.infrastructure.adapters.memory import (
    InMemoryContentSource,
    InMemoryReviewRepository,
)
from cadence.infrastructure.adapters.yaml_content import YamlContentSource

logger = logging.getLogger(__name__)


def get_review_repository(config: AppConfig, kind: DrillKind) -> ReviewRepository:
    """
    Returns the ReviewRepository implementation selected by config.
    """
    if config.backend == "memory":
        return InMemoryReviewRepository()
    return JsonReviewRepository(config.data_dir, config.owner_id, kind)


def get_content_source(config: AppConfig, kind: DrillKind) -> ContentSource:
    """
    Returns the ContentSource for a drill kind. Without a deck file the source is empty.
    """
    if config.content_file is None:
        logger.warning("No content_file configured; content source is empty")
        return InMemoryContentSource()
    return YamlContentSource(config.content_file, kind)


def get_scheduler(config: AppConfig) -> FsrsScheduler:
    params = FsrsParameters(
        desired_retention=config.desired_retention,
        maximum_interval_days=config.maximum_interval_days,
    )
    return FsrsScheduler(params, tz=config.timezone)


def get_drill_service(
    config: AppConfig, kind: DrillKind | str, clock: Clock | None = None
) -> DrillService:
    kind = DrillKind.parse(kind)
    return DrillService(
        kind=kind,
        records=get_review_repository(config, kind),
        content=get_content_source(config, kind),
        scheduler=get_scheduler(config),
        clock=clock,
        owner_id=config.owner_id,
        write_retries=config.write_retries,
    )
