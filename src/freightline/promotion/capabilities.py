"""Narrow interfaces the promotion engine depends on.

Every externally observable step (reading Stages, creating Promotions,
authorizing, recording events ...) goes through one of these protocols, so
tests substitute a ``MagicMock`` or the in-memory store and production wires
the Kubernetes store. Nothing here has a default implementation; the
composition root (``freightline.cli`` or the embedding service) supplies them.

Readers return ``None`` for an absent object and raise
:class:`~freightline.promotion.errors.StoreError` for a failed read.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from freightline.promotion.events import PromotionCreatedEvent
    from freightline.schemas import (
        Actor,
        Freight,
        FreightOrigin,
        Promotion,
        PromotionTemplateResource,
        Stage,
        Warehouse,
    )


@runtime_checkable
class StageReader(Protocol):
    def get_stage(self, namespace: str, name: str) -> Stage | None: ...

    def list_stages(self, namespace: str) -> list[Stage]:
        """List every Stage in a Project, in a stable order."""
        ...


@runtime_checkable
class FreightReader(Protocol):
    def get_freight(self, namespace: str, name: str) -> Freight | None: ...

    def get_freight_by_alias(self, namespace: str, alias: str) -> Freight | None: ...

    def list_freight(
        self,
        namespace: str,
        origin: FreightOrigin | None = None,
    ) -> list[Freight]:
        """List Freight in a Project, optionally only that from one origin."""
        ...


@runtime_checkable
class WarehouseReader(Protocol):
    def get_warehouse(self, namespace: str, name: str) -> Warehouse | None: ...


@runtime_checkable
class PromotionTemplateReader(Protocol):
    def get_promotion_template(
        self, namespace: str, name: str
    ) -> PromotionTemplateResource | None: ...


@runtime_checkable
class Authorizer(Protocol):
    """Pass/fail authorization contract.

    ``authorize`` returns on success and raises on refusal. Whatever it raises
    is propagated to the caller unchanged.
    """

    def authorize(self, actor: Actor, verb: str, stage: Stage) -> None: ...


@runtime_checkable
class PromotionCreator(Protocol):
    def create_promotion(self, promotion: Promotion) -> Promotion:
        """Persist a new Promotion.

        Raises:
            AlreadyExistsError: If a Promotion with the same name exists.
            StoreError: If the write fails.
        """
        ...


@runtime_checkable
class StagePatcher(Protocol):
    def patch_stage_annotations(
        self,
        namespace: str,
        name: str,
        annotations: dict[str, str],
    ) -> Stage:
        """Merge-patch annotations onto a Stage, leaving other keys untouched."""
        ...


@runtime_checkable
class EventRecorder(Protocol):
    def record_promotion_created(self, event: PromotionCreatedEvent) -> None: ...


__all__ = [
    "Authorizer",
    "EventRecorder",
    "FreightReader",
    "PromotionCreator",
    "PromotionTemplateReader",
    "StagePatcher",
    "StageReader",
    "WarehouseReader",
]
