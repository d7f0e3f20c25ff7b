"""Unit tests for PromotionService request handling and error mapping."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from freightline.promotion.authorization import AllowAllAuthorizer, PolicyAuthorizer
from freightline.promotion.errors import (
    FanOutError,
    IneligibleFreightError,
    NotFoundError,
    PermissionDeniedError,
    StatusCode,
    StoreError,
    ValidationError,
    VerificationStateError,
)
from freightline.promotion.events import InMemoryEventRecorder
from freightline.promotion.service import PromoteRequest, PromotionService, StageRequest
from freightline.schemas import VerificationInfo, VerificationPhase


@pytest.fixture
def recorder() -> InMemoryEventRecorder:
    return InMemoryEventRecorder()


@pytest.fixture
def service(store, recorder, clock) -> PromotionService:
    return PromotionService.from_store(store, AllowAllAuthorizer(), recorder, clock=clock)


class TestRequestValidation:
    """Tests for validation performed before any I/O."""

    @pytest.mark.parametrize(
        ("request_kwargs", "message"),
        [
            ({"stage": "test", "freight": "abc"}, "project should not be empty"),
            ({"project": "shop", "freight": "abc"}, "stage should not be empty"),
            ({"project": "shop", "stage": "test"}, "freight or freight_alias should not be empty"),
            (
                {"project": "shop", "stage": "test", "freight": "abc", "freight_alias": "x"},
                "only one of freight or freight_alias should be set",
            ),
        ],
    )
    def test_invalid_promote_requests(self, recorder, request_kwargs, message, actor) -> None:
        """Test malformed requests fail with InvalidArgument and touch no store."""
        store = MagicMock()
        service = PromotionService.from_store(store, AllowAllAuthorizer(), recorder)
        req = PromoteRequest(**request_kwargs)

        for operation in (
            service.promote_to_stage,
            service.promote_downstream,
            service.promote_subscribers,
        ):
            with pytest.raises(ValidationError, match=message) as exc_info:
                operation(req, actor)
            assert exc_info.value.code is StatusCode.INVALID_ARGUMENT
        assert store.method_calls == []

    def test_invalid_stage_requests(self, recorder) -> None:
        """Test stage-only operations validate project and stage."""
        store = MagicMock()
        service = PromotionService.from_store(store, AllowAllAuthorizer(), recorder)
        for operation in (
            service.reverify,
            service.abort_verification,
            service.list_available_freight,
        ):
            with pytest.raises(ValidationError, match="stage should not be empty"):
                operation(StageRequest(project="shop"))
        assert store.method_calls == []


class TestPromoteToStage:
    """Tests for single-target promotion."""

    def test_promotes_admissible_freight(
        self, store, service, recorder, make_stage, make_freight, actor, now
    ) -> None:
        """Test Freight verified upstream may be promoted into the Stage."""
        store.add(make_stage("uat", stages=["test"]), make_freight(verified_in={"test": now}))

        response = service.promote_to_stage(
            PromoteRequest(project="shop", stage="uat", freight="abc1234def"), actor
        )

        assert response.promotion.spec.stage == "uat"
        assert response.promotion.spec.freight == "abc1234def"
        assert store.get_promotion("shop", response.promotion.metadata.name) is not None
        assert [e.promotion for e in recorder.events] == [response.promotion.metadata.name]

    def test_by_alias(self, store, service, make_stage, make_freight, actor) -> None:
        """Test Freight may be addressed by alias."""
        store.add(make_stage("dev", direct=True), make_freight(alias="clever-otter"))
        response = service.promote_to_stage(
            PromoteRequest(project="shop", stage="dev", freight_alias="clever-otter"), actor
        )
        assert response.promotion.spec.freight == "abc1234def"

    def test_approved_freight(self, store, service, make_stage, make_freight, actor) -> None:
        """Test manually approved Freight may be promoted into that Stage."""
        store.add(
            make_stage("prod", stages=["uat"], soak=timedelta(days=1)),
            make_freight(approved_for=["prod"]),
        )
        response = service.promote_to_stage(
            PromoteRequest(project="shop", stage="prod", freight="abc1234def"), actor
        )
        assert response.promotion.spec.stage == "prod"

    def test_ineligible(self, store, service, make_stage, make_freight, actor) -> None:
        """Test Freight not available to the Stage is rejected."""
        store.add(make_stage("uat", stages=["test"]), make_freight())
        with pytest.raises(IneligibleFreightError) as exc_info:
            service.promote_to_stage(
                PromoteRequest(project="shop", stage="uat", freight="abc1234def"), actor
            )
        assert exc_info.value.code is StatusCode.INVALID_ARGUMENT
        assert store.list_promotions("shop") == []

    @pytest.mark.parametrize(("missing", "kind"), [("stage", "Stage"), ("freight", "Freight")])
    def test_not_found(
        self, store, service, make_stage, make_freight, actor, missing: str, kind: str
    ) -> None:
        """Test a missing Stage or Freight is NotFound."""
        if missing != "stage":
            store.add(make_stage("dev", direct=True))
        if missing != "freight":
            store.add(make_freight())
        with pytest.raises(NotFoundError, match=kind) as exc_info:
            service.promote_to_stage(
                PromoteRequest(project="shop", stage="dev", freight="abc1234def"), actor
            )
        assert exc_info.value.code is StatusCode.NOT_FOUND

    def test_control_flow_stage(self, store, service, make_stage, make_freight, actor) -> None:
        """Test a Stage without a template cannot be promoted into directly."""
        store.add(make_stage("router", direct=True, control_flow=True), make_freight())
        with pytest.raises(ValidationError, match="has no promotion template"):
            service.promote_to_stage(
                PromoteRequest(project="shop", stage="router", freight="abc1234def"), actor
            )

    def test_named_template(
        self, store, service, named_template, make_stage, make_freight, actor
    ) -> None:
        """Test a referenced template supplies the steps."""
        store.add(
            named_template,
            make_stage("dev", direct=True, template_ref="standard"),
            make_freight(),
        )
        response = service.promote_to_stage(
            PromoteRequest(project="shop", stage="dev", freight="abc1234def"), actor
        )
        assert [s.uses for s in response.promotion.spec.steps] == ["helm-update"]

    def test_permission_denied(
        self, store, recorder, make_stage, make_freight, actor
    ) -> None:
        """Test the policy authorizer's refusal propagates."""
        from freightline.config import AuthorizationConfig, AuthorizationPolicy

        policy = AuthorizationPolicy(stages={"dev": AuthorizationConfig(allowed_groups=["sre"])})
        service = PromotionService.from_store(store, PolicyAuthorizer(policy), recorder)
        store.add(make_stage("dev", direct=True), make_freight())

        with pytest.raises(PermissionDeniedError) as exc_info:
            service.promote_to_stage(
                PromoteRequest(project="shop", stage="dev", freight="abc1234def"), actor
            )
        assert exc_info.value.code is StatusCode.PERMISSION_DENIED
        assert store.list_promotions("shop") == []

    def test_store_failure(self, recorder, actor) -> None:
        """Test a failed Stage read is an internal error with context."""
        store = MagicMock()
        store.get_stage.side_effect = StoreError("get stages shop/dev", "(500) boom")
        service = PromotionService.from_store(store, AllowAllAuthorizer(), recorder)

        with pytest.raises(StoreError, match="get stage") as exc_info:
            service.promote_to_stage(
                PromoteRequest(project="shop", stage="dev", freight="abc1234def"), actor
            )
        assert exc_info.value.code is StatusCode.INTERNAL


class TestPromoteDownstream:
    """Tests for downstream fan-out through the service."""

    def test_control_flow_and_template_targets(
        self, store, service, make_stage, make_freight, actor
    ) -> None:
        """Test one control-flow and one templated target yield exactly one Promotion."""
        store.add(
            make_stage("test", stages=["dev"]),
            make_stage("router", stages=["test"], control_flow=True),
            make_stage("uat", stages=["test"]),
            make_freight(verified_in={"test": None}),
        )

        response = service.promote_downstream(
            PromoteRequest(project="shop", stage="test", freight="abc1234def"), actor
        )

        assert [p.spec.stage for p in response.promotions] == ["uat"]
        assert response.skipped == ["router"]
        assert response.error is None
        assert len(store.list_promotions("shop")) == 1

    def test_requires_availability_in_source(
        self, store, service, make_stage, make_freight, actor
    ) -> None:
        """Test approval for the source Stage does not license fan-out."""
        store.add(
            make_stage("test", stages=["dev"]),
            make_stage("uat", stages=["test"]),
            make_freight(approved_for=["test"]),
        )
        with pytest.raises(IneligibleFreightError):
            service.promote_downstream(
                PromoteRequest(project="shop", stage="test", freight="abc1234def"), actor
            )
        assert store.list_promotions("shop") == []

    def test_partial_success(self, store, service, make_stage, make_freight, actor) -> None:
        """Test failures come back alongside created Promotions."""
        store.add(
            make_stage("test", stages=["dev"]),
            make_stage("a", stages=["test"]),
            make_stage("b", stages=["test"], template_ref="missing"),
            make_stage("c", stages=["test"]),
            make_freight(verified_in={"test": None}),
        )

        response = service.promote_downstream(
            PromoteRequest(project="shop", stage="test", freight="abc1234def"), actor
        )

        assert [p.spec.stage for p in response.promotions] == ["a", "c"]
        assert [f.stage for f in response.failures] == ["b"]
        assert response.error is not None
        assert response.error.startswith("stage b:")

    def test_all_failed(self, store, service, make_stage, make_freight, actor) -> None:
        """Test a fan-out that created nothing raises the joined error."""
        store.add(
            make_stage("test", stages=["dev"]),
            make_stage("a", stages=["test"], template_ref="missing"),
            make_stage("b", stages=["test"], template_ref="gone"),
            make_freight(verified_in={"test": None}),
        )
        with pytest.raises(FanOutError) as exc_info:
            service.promote_downstream(
                PromoteRequest(project="shop", stage="test", freight="abc1234def"), actor
            )
        assert exc_info.value.stages == ["a", "b"]
        assert len(str(exc_info.value).splitlines()) == 2

    def test_no_downstream(self, store, service, make_stage, make_freight, actor) -> None:
        """Test a leaf Stage reports nothing downstream."""
        store.add(make_stage("prod", direct=True), make_freight())
        with pytest.raises(NotFoundError, match="stage prod has no downstream stages"):
            service.promote_downstream(
                PromoteRequest(project="shop", stage="prod", freight="abc1234def"), actor
            )


class TestPromoteSubscribers:
    """Tests for legacy subscriber fan-out."""

    def test_promotes_subscribers(self, store, service, make_stage, make_freight, actor) -> None:
        """Test subscribers of the source Stage receive Promotions."""
        store.add(
            make_stage("test", direct=True),
            make_stage("legacy", subscribes_to=["test"]),
            make_stage("uat", stages=["test"]),
            make_freight(),
        )

        response = service.promote_to_stage_subscribers(
            PromoteRequest(project="shop", stage="test", freight="abc1234def"), actor
        )

        assert [p.spec.stage for p in response.promotions] == ["legacy"]

    def test_no_subscribers(self, store, service, make_stage, make_freight, actor) -> None:
        """Test the relation is named in the not-found message."""
        store.add(make_stage("test", direct=True), make_freight())
        with pytest.raises(NotFoundError, match="stage test has no subscribers"):
            service.promote_subscribers(
                PromoteRequest(project="shop", stage="test", freight="abc1234def"), actor
            )


class TestVerificationOperations:
    """Tests for reverify and abort through the service."""

    def test_reverify_without_history(self, store, service, make_stage) -> None:
        """Test reverify fails when the current collection has no verifications."""
        stage = make_stage(
            "test", verification=VerificationInfo(id="v1", phase=VerificationPhase.RUNNING)
        )
        stage.status.freight_history[0].verification_history = []
        store.add(stage)

        with pytest.raises(VerificationStateError, match="stage has no current verification info") as exc_info:
            service.reverify(StageRequest(project="shop", stage="test"))
        assert exc_info.value.code is StatusCode.FAILED_PRECONDITION

    def test_abort_terminal_writes_nothing(self, store, service, make_stage) -> None:
        """Test abort of a finished verification succeeds without a write."""
        store.add(
            make_stage(
                "test", verification=VerificationInfo(id="v1", phase=VerificationPhase.SUCCESSFUL)
            )
        )

        response = service.abort_verification(StageRequest(project="shop", stage="test"))

        assert not response.written
        assert store.get_stage("shop", "test").metadata.annotations == {}

    def test_reverify_writes(self, store, service, make_stage, actor) -> None:
        """Test reverify reports the write."""
        store.add(
            make_stage("test", verification=VerificationInfo(id="v1", phase=VerificationPhase.FAILED))
        )
        assert service.reverify(StageRequest(project="shop", stage="test"), actor).written


class TestListAvailableFreight:
    """Tests for the availability listing operation."""

    def test_checkout_scenario(self, store, service, make_stage, make_freight, now) -> None:
        """Test Freight verified in test an hour ago is available to checkout."""
        store.add(
            make_stage("checkout", stages=["test"]),
            make_freight("abc", verified_in={"test": now - timedelta(hours=1)}),
            make_freight("def"),
        )

        response = service.list_available_freight(StageRequest(project="shop", stage="checkout"))

        assert [f.name for f in response.freight] == ["abc"]

    def test_unknown_stage(self, service) -> None:
        """Test listing for an unknown Stage is NotFound."""
        with pytest.raises(NotFoundError):
            service.list_available_freight(StageRequest(project="shop", stage="nope"))
