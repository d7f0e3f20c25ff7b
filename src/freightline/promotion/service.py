"""RPC-style operations over the promotion engine.

:class:`PromotionService` validates requests before any I/O, loads the
objects involved, applies the eligibility rules, and delegates to the fan-out
and the verification signaler. Failures are raised as
:class:`~freightline.promotion.errors.FreightlineError` subclasses whose
``code`` is the status to report. Authorizer errors pass through unchanged.

Example:
    >>> service = PromotionService.from_store(store, authorizer, recorder)
    >>> response = service.promote_downstream(
    ...     PromoteRequest(project="shop", stage="test", freight="abc123"),
    ...     actor=Actor(name="alice"),
    ... )
    >>> [p.spec.stage for p in response.promotions]
    ['uat']
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from pydantic import BaseModel, ConfigDict, Field

from freightline.promotion.authorization import PROMOTE
from freightline.promotion.availability import (
    AvailabilityResolver,
    Clock,
    is_admissible,
    is_available,
    utcnow,
)
from freightline.promotion.builder import build_promotion
from freightline.promotion.errors import (
    IneligibleFreightError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from freightline.promotion.fanout import (
    FanOutResult,
    PromotionFanOut,
    create_promotion,
    record_created,
)
from freightline.promotion.topology import downstream_resolver, subscriber_resolver
from freightline.promotion.verification import VerificationSignaler
from freightline.schemas import Actor, Freight, Promotion, PromotionTemplateSpec, Stage
from freightline.telemetry.tracing import create_span

if TYPE_CHECKING:
    from freightline.promotion.capabilities import (
        Authorizer,
        EventRecorder,
        FreightReader,
        PromotionCreator,
        PromotionTemplateReader,
        StagePatcher,
        StageReader,
        WarehouseReader,
    )
    from freightline.promotion.topology import TargetResolver

logger = structlog.get_logger(__name__)


class PromoteRequest(BaseModel):
    """Identifies a Stage and a Freight, by exact name or by alias."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    project: str = Field(default="", description="Project of the Stage")
    stage: str = Field(default="", description="Stage name")
    freight: str | None = Field(default=None, description="Freight name")
    freight_alias: str | None = Field(default=None, description="Freight alias")


class StageRequest(BaseModel):
    """Identifies a Stage; used for reverify, abort and availability."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    project: str = Field(default="", description="Project of the Stage")
    stage: str = Field(default="", description="Stage name")


class PromoteToStageResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    promotion: Promotion


class FanOutFailureDetail(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    stage: str
    error: str


class FanOutResponse(BaseModel):
    """Partial-success response of a fan-out.

    ``error`` is the joined failure message when some targets failed, and
    None otherwise.
    """

    model_config = ConfigDict(extra="forbid")

    promotions: list[Promotion] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    failures: list[FanOutFailureDetail] = Field(default_factory=list)
    error: str | None = Field(default=None)

    @classmethod
    def from_result(cls, result: FanOutResult) -> FanOutResponse:
        err = result.error()
        return cls(
            promotions=result.promotions,
            skipped=result.skipped,
            failures=[
                FanOutFailureDetail(stage=f.stage, error=str(f.cause)) for f in result.failures
            ],
            error=str(err) if err is not None else None,
        )


class SignalResponse(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    written: bool = Field(..., description="Whether a signal annotation was written")


class ListAvailableFreightResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    freight: list[Freight] = Field(default_factory=list)


def _validate_stage_request(project: str, stage: str) -> None:
    if not project:
        raise ValidationError("project", "project should not be empty")
    if not stage:
        raise ValidationError("stage", "stage should not be empty")


def _validate_promote_request(req: PromoteRequest) -> None:
    _validate_stage_request(req.project, req.stage)
    if not req.freight and not req.freight_alias:
        raise ValidationError("freight", "freight or freight_alias should not be empty")
    if req.freight and req.freight_alias:
        raise ValidationError("freight", "only one of freight or freight_alias should be set")


class PromotionService:
    """Promotion operations with request validation and error mapping.

    Attributes:
        stages: Stage reader.
        freight: Freight reader.
        warehouses: Warehouse reader.
        templates: Named PromotionTemplate reader.
        authorizer: Pass/fail authorization contract.
        creator: Promotion writer.
        patcher: Stage annotation writer.
        recorder: Domain event sink.
        clock: Evaluation clock for soak windows.
    """

    def __init__(
        self,
        *,
        stages: StageReader,
        freight: FreightReader,
        warehouses: WarehouseReader,
        templates: PromotionTemplateReader,
        authorizer: Authorizer,
        creator: PromotionCreator,
        patcher: StagePatcher,
        recorder: EventRecorder,
        clock: Clock | None = None,
    ) -> None:
        self.stages = stages
        self.freight = freight
        self.warehouses = warehouses
        self.templates = templates
        self.authorizer = authorizer
        self.creator = creator
        self.patcher = patcher
        self.recorder = recorder
        self.clock = clock or utcnow
        self.availability = AvailabilityResolver(warehouses, freight, self.clock)
        self.fanout = PromotionFanOut(templates, authorizer, creator, recorder)
        self.signaler = VerificationSignaler(stages, patcher)

    @classmethod
    def from_store(
        cls,
        store: Any,
        authorizer: Authorizer,
        recorder: EventRecorder,
        clock: Clock | None = None,
    ) -> PromotionService:
        """Wire every reader and writer to one store implementing them all."""
        return cls(
            stages=store,
            freight=store,
            warehouses=store,
            templates=store,
            authorizer=authorizer,
            creator=store,
            patcher=store,
            recorder=recorder,
            clock=clock,
        )

    def _get_stage(self, project: str, name: str) -> Stage:
        try:
            stage = self.stages.get_stage(project, name)
        except StoreError as e:
            raise StoreError("get stage", e) from e
        if stage is None:
            raise NotFoundError("Stage", name, project)
        return stage

    def _get_freight(self, req: PromoteRequest) -> Freight:
        try:
            if req.freight:
                freight = self.freight.get_freight(req.project, req.freight)
            else:
                freight = self.freight.get_freight_by_alias(req.project, req.freight_alias or "")
        except StoreError as e:
            raise StoreError("get freight", e) from e
        if freight is None:
            ref = req.freight or req.freight_alias or ""
            raise NotFoundError("Freight", ref, req.project)
        return freight

    def _get_template(self, stage: Stage) -> PromotionTemplateSpec:
        if stage.spec.promotion_template is not None:
            return stage.spec.promotion_template.spec
        ref = stage.spec.promotion_template_ref
        if ref is None:
            raise ValidationError(
                "stage", f'Stage "{stage.name}" has no promotion template'
            )
        try:
            template = self.templates.get_promotion_template(stage.namespace, ref.name)
        except StoreError as e:
            raise StoreError("get promotion template", e) from e
        if template is None:
            raise NotFoundError("PromotionTemplate", ref.name, stage.namespace)
        return template.spec

    def promote_to_stage(self, req: PromoteRequest, actor: Actor) -> PromoteToStageResponse:
        """Create one Promotion of a specific Freight into a specific Stage.

        The Freight must be directly sourced or verified in the Stage, or be
        admissible by the Stage's listing rule (approval for this Stage,
        upstream verification with soak).

        Raises:
            ValidationError: If the request is malformed.
            NotFoundError: If the Stage, Freight or named template is absent.
            IneligibleFreightError: If the Freight may not enter the Stage.
            StoreError: If the store fails.
        """
        _validate_promote_request(req)
        with create_span(
            "freightline.promote_to_stage",
            attributes={"freightline.namespace": req.project, "freightline.stage": req.stage},
        ):
            stage = self._get_stage(req.project, req.stage)
            freight = self._get_freight(req)
            if not (
                is_available(stage, freight) or is_admissible(stage, freight, self.clock())
            ):
                raise IneligibleFreightError(freight.name, stage.name)

            self.authorizer.authorize(actor, PROMOTE, stage)

            template = self._get_template(stage)
            promotion = build_promotion(stage, freight.name, template, actor)
            created = create_promotion(self.creator, promotion)
            record_created(self.recorder, created, freight, actor)
            return PromoteToStageResponse(promotion=created)

    def _fan_out(
        self,
        req: PromoteRequest,
        actor: Actor,
        resolver: TargetResolver,
        relation: str,
    ) -> FanOutResponse:
        _validate_promote_request(req)
        stage = self._get_stage(req.project, req.stage)
        freight = self._get_freight(req)
        if not is_available(stage, freight):
            raise IneligibleFreightError(freight.name, stage.name)

        result = self.fanout.fan_out(stage, freight, resolver, actor, relation=relation)
        if result.failures:
            logger.warning(
                "fanout_partial_failure",
                namespace=req.project,
                stage=req.stage,
                created=len(result.promotions),
                failed=[f.stage for f in result.failures],
            )
        result.raise_for_failures()
        return FanOutResponse.from_result(result)

    def promote_downstream(self, req: PromoteRequest, actor: Actor) -> FanOutResponse:
        """Promote Freight from a Stage into every Stage sourcing from it.

        Raises:
            ValidationError: If the request is malformed.
            NotFoundError: If the Stage or Freight is absent, or nothing is downstream.
            IneligibleFreightError: If the Freight is not available in the Stage.
            FanOutError: If every target failed.
            StoreError: If the store fails.
        """
        return self._fan_out(
            req, actor, downstream_resolver(self.stages), "downstream stages"
        )

    def promote_subscribers(self, req: PromoteRequest, actor: Actor) -> FanOutResponse:
        """Promote Freight from a Stage into every legacy subscriber of it."""
        return self._fan_out(req, actor, subscriber_resolver(self.stages), "subscribers")

    promote_to_stage_subscribers = promote_subscribers

    def reverify(self, req: StageRequest, actor: Actor | None = None) -> SignalResponse:
        _validate_stage_request(req.project, req.stage)
        return SignalResponse(written=self.signaler.reverify(req.project, req.stage, actor))

    def abort_verification(
        self, req: StageRequest, actor: Actor | None = None
    ) -> SignalResponse:
        _validate_stage_request(req.project, req.stage)
        return SignalResponse(written=self.signaler.abort(req.project, req.stage, actor))

    def list_available_freight(self, req: StageRequest) -> ListAvailableFreightResponse:
        """All Freight admissible to a Stage, sorted by name."""
        _validate_stage_request(req.project, req.stage)
        stage = self._get_stage(req.project, req.stage)
        return ListAvailableFreightResponse(
            freight=self.availability.list_available_to_stage(stage)
        )


__all__ = [
    "FanOutFailureDetail",
    "FanOutResponse",
    "ListAvailableFreightResponse",
    "PromoteRequest",
    "PromoteToStageResponse",
    "PromotionService",
    "SignalResponse",
    "StageRequest",
]
