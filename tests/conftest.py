"""Shared pytest fixtures for freightline tests.

Factories build Stages and Freight in the ``shop`` Project with Warehouse
``web`` as the default origin. All timestamps are timezone-aware.

NOTE: Do NOT add __init__.py to test directories - pytest uses importlib mode
which can cause namespace collisions with __init__.py files.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import pytest

from freightline.schemas import (
    Actor,
    ApprovedStage,
    AvailabilityStrategy,
    Freight,
    FreightCollection,
    FreightOrigin,
    FreightReference,
    FreightRequest,
    FreightSources,
    ObjectMeta,
    PromotionStep,
    PromotionTemplate,
    PromotionTemplateRef,
    PromotionTemplateResource,
    PromotionTemplateSpec,
    Stage,
    StageSpec,
    StageStatus,
    StageSubscription,
    Subscriptions,
    VerificationInfo,
    VerifiedStage,
    Warehouse,
)

if TYPE_CHECKING:
    from collections.abc import Generator

    from freightline.store import InMemoryStore

PROJECT = "shop"
NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    """Fixed evaluation time for soak-window tests."""
    return NOW


@pytest.fixture
def clock() -> Callable[[], datetime]:
    return lambda: NOW


@pytest.fixture
def origin() -> FreightOrigin:
    return FreightOrigin(name="web")


@pytest.fixture
def actor() -> Actor:
    return Actor(name="alice@example.com", groups=["release-managers"])


@pytest.fixture
def make_stage() -> Callable[..., Stage]:
    """Factory for Stages.

    Usage:
        make_stage("uat", stages=["test"])               # ANY over test
        make_stage("prod", stages=["a", "b"], strategy="All", soak=timedelta(hours=1))
        make_stage("router", stages=["test"], control_flow=True)
        make_stage("legacy", subscribes_to=["test"])
    """

    def _make(
        name: str,
        *,
        namespace: str = PROJECT,
        origin_name: str = "web",
        direct: bool = False,
        stages: Iterable[str] = (),
        strategy: AvailabilityStrategy | str = AvailabilityStrategy.ANY,
        soak: timedelta | None = None,
        requests: list[FreightRequest] | None = None,
        template_ref: str | None = None,
        control_flow: bool = False,
        subscribes_to: Iterable[str] = (),
        verification: VerificationInfo | None = None,
        current_freight: str = "abc1234def",
        annotations: dict[str, str] | None = None,
    ) -> Stage:
        stages = list(stages)
        if requests is None:
            requests = []
            if direct or stages:
                requests.append(
                    FreightRequest(
                        origin=FreightOrigin(name=origin_name),
                        sources=FreightSources(
                            direct=direct,
                            stages=stages,
                            availability_strategy=AvailabilityStrategy(strategy),
                            required_soak_time=soak,
                        ),
                    )
                )

        spec = StageSpec(requested_freight=requests)
        if template_ref is not None:
            spec.promotion_template_ref = PromotionTemplateRef(name=template_ref)
        elif not control_flow:
            spec.promotion_template = PromotionTemplate(
                spec=PromotionTemplateSpec(
                    steps=[PromotionStep(uses="git-clone", config={"repo": "acme/web"})]
                )
            )
        subscribes_to = list(subscribes_to)
        if subscribes_to:
            spec.subscriptions = Subscriptions(
                upstream_stages=[StageSubscription(name=s) for s in subscribes_to]
            )

        status = StageStatus()
        if verification is not None:
            status.freight_history = [
                FreightCollection(
                    id="collection-1",
                    freight={
                        f"Warehouse/{origin_name}": FreightReference(
                            name=current_freight,
                            origin=FreightOrigin(name=origin_name),
                        )
                    },
                    verification_history=[verification],
                )
            ]

        return Stage(
            metadata=ObjectMeta(
                namespace=namespace,
                name=name,
                annotations=dict(annotations or {}),
            ),
            spec=spec,
            status=status,
        )

    return _make


@pytest.fixture
def make_freight() -> Callable[..., Freight]:
    """Factory for Freight.

    ``verified_in`` maps Stage name to verification time (None for unknown).
    """

    def _make(
        name: str = "abc1234def",
        *,
        namespace: str = PROJECT,
        origin_name: str = "web",
        alias: str | None = None,
        verified_in: dict[str, datetime | None] | None = None,
        approved_for: Iterable[str] = (),
    ) -> Freight:
        freight = Freight(
            metadata=ObjectMeta(namespace=namespace, name=name),
            alias=alias,
            origin=FreightOrigin(name=origin_name),
        )
        for stage, at in (verified_in or {}).items():
            freight.status.verified_in[stage] = VerifiedStage(verified_at=at)
        for stage in approved_for:
            freight.status.approved_for[stage] = ApprovedStage(approved_at=NOW)
        return freight

    return _make


@pytest.fixture
def store() -> InMemoryStore:
    """In-memory store seeded with Warehouse ``web`` in Project ``shop``."""
    from freightline.store import InMemoryStore

    s = InMemoryStore()
    s.add(Warehouse(metadata=ObjectMeta(namespace=PROJECT, name="web")))
    return s


@pytest.fixture
def named_template() -> PromotionTemplateResource:
    return PromotionTemplateResource(
        metadata=ObjectMeta(namespace=PROJECT, name="standard"),
        spec=PromotionTemplateSpec(steps=[PromotionStep(uses="helm-update", as_="deploy")]),
    )


@pytest.fixture
def reset_tracing() -> Generator[None, None, None]:
    """Clear cached tracers before and after a test."""
    from freightline.telemetry import reset_tracer

    reset_tracer()
    yield
    reset_tracer()
