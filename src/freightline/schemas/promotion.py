"""Promotion work orders and the templates they are materialized from."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import Field

from freightline.schemas.meta import ObjectMeta, ResourceModel


class PromotionPhase(str, Enum):
    """Lifecycle phase of a Promotion.

    ``Pending`` and ``Running`` are active; every other phase is terminal.
    """

    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    ERRORED = "Errored"
    ABORTED = "Aborted"

    @property
    def is_terminal(self) -> bool:
        return self not in (PromotionPhase.PENDING, PromotionPhase.RUNNING)


class PromotionVariable(ResourceModel):
    """A named variable available to Promotion steps."""

    name: str = Field(..., min_length=1)
    value: str = Field(default="")


class PromotionStep(ResourceModel):
    """One step of a Promotion; executed elsewhere, carried verbatim here."""

    uses: str = Field(..., min_length=1, description="Step implementation name")
    as_: str | None = Field(default=None, alias="as", description="Step alias")
    config: dict[str, Any] = Field(default_factory=dict)


class PromotionTemplateSpec(ResourceModel):
    """Variables and steps copied into every Promotion built from a template."""

    vars: list[PromotionVariable] = Field(default_factory=list)
    steps: list[PromotionStep] = Field(default_factory=list)


class PromotionTemplate(ResourceModel):
    """Template embedded directly in a Stage spec."""

    spec: PromotionTemplateSpec = Field(default_factory=PromotionTemplateSpec)


class PromotionTemplateRef(ResourceModel):
    """Reference to a named PromotionTemplateResource in the Stage's Project."""

    name: str = Field(..., min_length=1)


class PromotionTemplateResource(ResourceModel):
    """A named, Project-scoped template shared between Stages."""

    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    spec: PromotionTemplateSpec = Field(default_factory=PromotionTemplateSpec)


class PromotionSpec(ResourceModel):
    stage: str = Field(..., min_length=1, description="Target Stage name")
    freight: str = Field(..., min_length=1, description="Target Freight name")
    vars: list[PromotionVariable] = Field(default_factory=list)
    steps: list[PromotionStep] = Field(default_factory=list)


class PromotionStatus(ResourceModel):
    phase: PromotionPhase | None = Field(default=None)
    message: str | None = Field(default=None)


class Promotion(ResourceModel):
    """A work order that moves a Stage to a specific piece of Freight."""

    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    spec: PromotionSpec
    status: PromotionStatus = Field(default_factory=PromotionStatus)

    @property
    def name(self) -> str:
        return self.metadata.name


__all__ = [
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
]
