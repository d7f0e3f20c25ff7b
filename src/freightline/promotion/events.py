"""Domain events emitted when Promotions are created.

Recorders implement :class:`~freightline.promotion.capabilities.EventRecorder`.
Recording is best-effort: the fan-out logs a recorder failure and carries on.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field

from freightline.schemas import Freight, Promotion

logger = structlog.get_logger(__name__)

PROMOTION_CREATED = "promotion_created"
"""Event type name used in logs and webhook payloads."""


class PromotionCreatedEvent(BaseModel):
    """A Promotion was created for a Stage.

    Attributes:
        actor: Who requested the Promotion.
        project: Project the Promotion lives in.
        promotion: Promotion name.
        stage: Target Stage name.
        freight: Target Freight name.
        freight_alias: Target Freight alias, if any.
        freight_origin: ``Warehouse/<name>`` of the Freight.
        created_at: Creation time reported by the store, if known.

    Examples:
        >>> event = PromotionCreatedEvent(
        ...     actor="alice", project="shop", promotion="uat.01j.abc1234",
        ...     stage="uat", freight="abc1234def",
        ... )
        >>> event.stage
        'uat'
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    actor: str = Field(..., description="Who requested the Promotion")
    project: str = Field(..., description="Project of the Promotion")
    promotion: str = Field(..., description="Promotion name")
    stage: str = Field(..., description="Target Stage")
    freight: str = Field(..., description="Target Freight name")
    freight_alias: str | None = Field(default=None)
    freight_origin: str | None = Field(default=None)
    created_at: datetime | None = Field(default=None)

    @classmethod
    def from_promotion(
        cls,
        promotion: Promotion,
        freight: Freight,
        actor: str,
    ) -> PromotionCreatedEvent:
        return cls(
            actor=actor,
            project=promotion.metadata.namespace,
            promotion=promotion.metadata.name,
            stage=promotion.spec.stage,
            freight=freight.name,
            freight_alias=freight.alias,
            freight_origin=str(freight.origin),
            created_at=promotion.metadata.creation_timestamp,
        )

    def payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class InMemoryEventRecorder:
    """Keeps events in a list; used by tests and dry runs."""

    def __init__(self) -> None:
        self.events: list[PromotionCreatedEvent] = []

    def record_promotion_created(self, event: PromotionCreatedEvent) -> None:
        self.events.append(event)


class LoggingEventRecorder:
    """Writes each event as a structured log line."""

    def record_promotion_created(self, event: PromotionCreatedEvent) -> None:
        logger.info(PROMOTION_CREATED, **event.payload())


class CompositeEventRecorder:
    """Fans one event out to several recorders.

    A failing recorder is logged and does not stop the others.
    """

    def __init__(self, recorders: list[Any]) -> None:
        self.recorders = recorders

    def record_promotion_created(self, event: PromotionCreatedEvent) -> None:
        for recorder in self.recorders:
            try:
                recorder.record_promotion_created(event)
            except Exception as e:
                logger.error(
                    "event_record_failed",
                    recorder=type(recorder).__name__,
                    promotion=event.promotion,
                    error=str(e),
                )


__all__ = [
    "PROMOTION_CREATED",
    "CompositeEventRecorder",
    "InMemoryEventRecorder",
    "LoggingEventRecorder",
    "PromotionCreatedEvent",
]
