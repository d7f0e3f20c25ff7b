"""Pydantic models for Freight, Warehouses, Stages and Promotions."""

from __future__ import annotations

from freightline.schemas.actor import CONTROL_PLANE_ACTOR, Actor
from freightline.schemas.freight import (
    ApprovedStage,
    Chart,
    CurrentStage,
    Freight,
    FreightOrigin,
    FreightOriginKind,
    FreightReference,
    FreightStatus,
    GitCommit,
    Image,
    VerifiedStage,
)
from freightline.schemas.meta import (
    ANNOTATION_KEY_ABORT,
    ANNOTATION_KEY_CREATE_ACTOR,
    ANNOTATION_KEY_REVERIFY,
    LABEL_KEY_ALIAS,
    ObjectMeta,
)
from freightline.schemas.promotion import (
    Promotion,
    PromotionPhase,
    PromotionSpec,
    PromotionStatus,
    PromotionStep,
    PromotionTemplate,
    PromotionTemplateRef,
    PromotionTemplateResource,
    PromotionTemplateSpec,
    PromotionVariable,
)
from freightline.schemas.stage import (
    AvailabilityStrategy,
    FreightCollection,
    FreightRequest,
    FreightSources,
    Stage,
    StageSpec,
    StageStatus,
    StageSubscription,
    Subscriptions,
    VerificationInfo,
    VerificationPhase,
    VerificationRequest,
)
from freightline.schemas.warehouse import Warehouse, WarehouseSpec

__all__ = [
    "ANNOTATION_KEY_ABORT",
    "ANNOTATION_KEY_CREATE_ACTOR",
    "ANNOTATION_KEY_REVERIFY",
    "CONTROL_PLANE_ACTOR",
    "LABEL_KEY_ALIAS",
    "Actor",
    "ApprovedStage",
    "AvailabilityStrategy",
    "Chart",
    "CurrentStage",
    "Freight",
    "FreightCollection",
    "FreightOrigin",
    "FreightOriginKind",
    "FreightReference",
    "FreightRequest",
    "FreightSources",
    "FreightStatus",
    "GitCommit",
    "Image",
    "ObjectMeta",
    "Promotion",
    "PromotionPhase",
    "PromotionSpec",
    "PromotionStatus",
    "PromotionStep",
    "PromotionTemplate",
    "PromotionTemplateRef",
    "PromotionTemplateResource",
    "PromotionTemplateSpec",
    "PromotionVariable",
    "Stage",
    "StageSpec",
    "StageStatus",
    "StageSubscription",
    "Subscriptions",
    "VerificationInfo",
    "VerificationPhase",
    "VerificationRequest",
    "VerifiedStage",
    "Warehouse",
    "WarehouseSpec",
]
