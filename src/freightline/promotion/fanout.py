"""Create Promotions for every Stage downstream of a source Stage.

The fan-out tolerates partial failure: a target whose template cannot be
resolved or whose Promotion cannot be created is recorded in
:attr:`FanOutResult.failures` and the remaining targets are still processed.
Authorization is the exception. Every target is authorized before anything
is created, and the first refusal aborts the whole batch.

Example:
    >>> fanout = PromotionFanOut(
    ...     templates=store,
    ...     authorizer=PolicyAuthorizer(policy),
    ...     creator=store,
    ...     recorder=LoggingEventRecorder(),
    ... )
    >>> result = fanout.fan_out(test_stage, freight, downstream_resolver(store), actor)
    >>> [p.spec.stage for p in result.promotions]
    ['uat', 'prod']
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import structlog

from freightline.promotion.authorization import PROMOTE
from freightline.promotion.builder import build_promotion
from freightline.promotion.errors import (
    AlreadyExistsError,
    FanOutError,
    FreightlineError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from freightline.promotion.events import PromotionCreatedEvent
from freightline.telemetry.tracing import create_span

if TYPE_CHECKING:
    from freightline.promotion.capabilities import (
        Authorizer,
        EventRecorder,
        PromotionCreator,
        PromotionTemplateReader,
    )
    from freightline.promotion.topology import TargetResolver
    from freightline.schemas import (
        Actor,
        Freight,
        Promotion,
        PromotionTemplateResource,
        PromotionTemplateSpec,
        Stage,
    )

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class FanOutFailure:
    """One target Stage that could not be promoted into."""

    stage: str
    cause: BaseException

    def __str__(self) -> str:
        return f"stage {self.stage}: {self.cause}"


@dataclass
class FanOutResult:
    """Outcome of a fan-out, preserving successes and failures independently.

    Attributes:
        promotions: Promotions created (or already present), in discovery order.
        failures: Targets that failed, in discovery order.
        skipped: Control-flow targets that have nothing to promote into.
    """

    promotions: list[Promotion] = field(default_factory=list)
    failures: list[FanOutFailure] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.promotions) and bool(self.failures)

    def error(self) -> FanOutError | None:
        """The joined error over all failures, or None if there were none."""
        if not self.failures:
            return None
        return FanOutError(self.failures)

    def raise_for_failures(self) -> None:
        """Raise the joined error only when nothing at all was created."""
        err = self.error()
        if err is not None and not self.promotions:
            raise err

    def __str__(self) -> str:
        return (
            f"{len(self.promotions)} created, {len(self.failures)} failed, "
            f"{len(self.skipped)} skipped"
        )


class _TemplateMemo:
    """Batch-local cache of named PromotionTemplates.

    Each name is fetched at most once per batch, including names that turned
    out to be missing.
    """

    def __init__(self, reader: PromotionTemplateReader, namespace: str) -> None:
        self._reader = reader
        self._namespace = namespace
        self._cache: dict[str, PromotionTemplateResource | None] = {}

    def get(self, name: str) -> PromotionTemplateSpec:
        if name not in self._cache:
            try:
                self._cache[name] = self._reader.get_promotion_template(self._namespace, name)
            except StoreError as e:
                raise StoreError(f"get promotion template {name}", e) from e
        resource = self._cache[name]
        if resource is None:
            raise NotFoundError("PromotionTemplate", name, self._namespace)
        return resource.spec.model_copy(deep=True)


class PromotionFanOut:
    """Creates Promotions for all targets discovered from a source Stage.

    Every collaborator is required; wiring real implementations happens at
    the composition root.
    """

    def __init__(
        self,
        templates: PromotionTemplateReader,
        authorizer: Authorizer,
        creator: PromotionCreator,
        recorder: EventRecorder,
    ) -> None:
        self.templates = templates
        self.authorizer = authorizer
        self.creator = creator
        self.recorder = recorder

    def fan_out(
        self,
        source: Stage,
        freight: Freight,
        resolver: TargetResolver,
        actor: Actor,
        *,
        relation: str = "downstream stages",
    ) -> FanOutResult:
        """Promote ``freight`` into every target ``resolver`` finds for ``source``.

        Args:
            source: Stage the Freight became eligible in.
            freight: Freight to promote; already checked as eligible.
            resolver: Topology variant returning the target Stages.
            actor: Who requested the fan-out.
            relation: Describes the targets in the empty-result error.

        Returns:
            FanOutResult with created Promotions, per-target failures and
            skipped control-flow Stages.

        Raises:
            NotFoundError: If the resolver finds no targets.
            StoreError: If target discovery fails.
            Exception: Whatever the authorizer raises, unchanged.
        """
        log = logger.bind(
            namespace=source.namespace,
            stage=source.name,
            freight=freight.name,
            actor=actor.name,
        )

        with create_span(
            "freightline.fanout",
            attributes={
                "freightline.namespace": source.namespace,
                "freightline.stage": source.name,
                "freightline.freight": freight.name,
            },
        ) as span:
            targets = resolver(source, freight.origin)
            if not targets:
                raise NotFoundError(
                    "Stage",
                    source.name,
                    source.namespace,
                    message=f"stage {source.name} has no {relation}",
                )
            span.set_attribute("freightline.targets", len(targets))

            for target in targets:
                self.authorizer.authorize(actor, PROMOTE, target)

            result = FanOutResult()
            memo = _TemplateMemo(self.templates, source.namespace)
            for target in targets:
                self._promote_target(target, freight, actor, memo, result, log)

            span.set_attribute("freightline.created", len(result.promotions))
            span.set_attribute("freightline.failed", len(result.failures))
            log.info(
                "fanout_completed",
                created=len(result.promotions),
                failed=len(result.failures),
                skipped=len(result.skipped),
            )
            return result

    def _promote_target(
        self,
        target: Stage,
        freight: Freight,
        actor: Actor,
        memo: _TemplateMemo,
        result: FanOutResult,
        log: Any,
    ) -> None:
        if target.is_control_flow():
            log.debug("fanout_target_skipped", target=target.name, reason="control_flow")
            result.skipped.append(target.name)
            return

        try:
            template = self._resolve_template(target, memo)
        except FreightlineError as e:
            log.warning("fanout_target_failed", target=target.name, error=str(e))
            result.failures.append(FanOutFailure(stage=target.name, cause=e))
            return

        promotion = build_promotion(target, freight.name, template, actor)
        try:
            created = create_promotion(self.creator, promotion)
        except FreightlineError as e:
            log.warning("fanout_target_failed", target=target.name, error=str(e))
            result.failures.append(FanOutFailure(stage=target.name, cause=e))
            return

        record_created(self.recorder, created, freight, actor)
        result.promotions.append(created)

    @staticmethod
    def _resolve_template(target: Stage, memo: _TemplateMemo) -> PromotionTemplateSpec:
        if target.spec.promotion_template is not None:
            return target.spec.promotion_template.spec.model_copy(deep=True)
        ref = target.spec.promotion_template_ref
        if ref is None:
            raise ValidationError("stage", f'Stage "{target.name}" has no promotion template')
        return memo.get(ref.name)


def create_promotion(creator: PromotionCreator, promotion: Promotion) -> Promotion:
    """Create a Promotion, treating an existing one with the same name as success.

    Raises:
        StoreError: If the write fails for any other reason.
    """
    try:
        return creator.create_promotion(promotion)
    except AlreadyExistsError:
        logger.debug(
            "promotion_already_exists",
            namespace=promotion.metadata.namespace,
            promotion=promotion.metadata.name,
        )
        return promotion
    except StoreError as e:
        raise StoreError(f"create promotion {promotion.metadata.name}", e) from e


def record_created(
    recorder: EventRecorder,
    promotion: Promotion,
    freight: Freight,
    actor: Actor,
) -> None:
    """Emit PromotionCreated; a recorder failure is logged, never raised."""
    event = PromotionCreatedEvent.from_promotion(promotion, freight, actor.name)
    try:
        recorder.record_promotion_created(event)
    except Exception as e:
        logger.error(
            "event_record_failed",
            promotion=promotion.metadata.name,
            error=str(e),
        )
    logger.info(
        "promotion_created",
        namespace=promotion.metadata.namespace,
        promotion=promotion.metadata.name,
        stage=promotion.spec.stage,
        freight=freight.name,
        actor=actor.name,
    )


__all__ = [
    "FanOutFailure",
    "FanOutResult",
    "PromotionFanOut",
    "create_promotion",
    "record_created",
]
