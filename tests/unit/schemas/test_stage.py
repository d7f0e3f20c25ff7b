"""Unit tests for Stage schemas, durations and verification signals."""

from __future__ import annotations

import json
from datetime import timedelta

import pytest
from pydantic import ValidationError

from freightline.schemas import (
    AvailabilityStrategy,
    FreightSources,
    Stage,
    VerificationInfo,
    VerificationPhase,
    VerificationRequest,
)
from freightline.schemas.stage import parse_duration


class TestParseDuration:
    """Tests for Go-style duration parsing."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("90s", timedelta(seconds=90)),
            ("1h30m", timedelta(hours=1, minutes=30)),
            ("250ms", timedelta(milliseconds=250)),
            ("1.5h", timedelta(minutes=90)),
        ],
    )
    def test_go_durations(self, value: str, expected: timedelta) -> None:
        """Test Go-style strings become timedeltas."""
        assert parse_duration(value) == expected

    def test_passes_through_other_values(self) -> None:
        """Test ISO strings and numbers are left for pydantic."""
        assert parse_duration("PT1H") == "PT1H"
        assert parse_duration(60) == 60

    def test_malformed(self) -> None:
        """Test garbage with a unit suffix is rejected."""
        with pytest.raises(ValueError, match="invalid duration"):
            parse_duration("1hour")

    def test_field_accepts_all_forms(self) -> None:
        """Test required_soak_time accepts Go, ISO and seconds."""
        assert FreightSources(required_soak_time="2h").required_soak_time == timedelta(hours=2)
        assert FreightSources(required_soak_time="PT2H").required_soak_time == timedelta(hours=2)
        assert FreightSources(required_soak_time=7200).required_soak_time == timedelta(hours=2)


class TestAvailabilityStrategy:
    """Tests for strategy parsing."""

    @pytest.mark.parametrize("value", ["", "OneOf", "oneof", "any", "ANY"])
    def test_any_spellings(self, value: str) -> None:
        """Test empty and OneOf spellings map to ANY."""
        assert AvailabilityStrategy(value) is AvailabilityStrategy.ANY

    @pytest.mark.parametrize("value", ["All", "all", "ALL"])
    def test_all_spellings(self, value: str) -> None:
        """Test All spellings map to ALL."""
        assert AvailabilityStrategy(value) is AvailabilityStrategy.ALL

    def test_unknown(self) -> None:
        """Test unknown strategies are rejected."""
        with pytest.raises(ValidationError):
            FreightSources(availability_strategy="Majority")

    def test_default_is_any(self) -> None:
        """Test sources default to ANY."""
        assert FreightSources().availability_strategy is AvailabilityStrategy.ANY

    def test_serialized_values(self) -> None:
        """Test strategies are written as All and OneOf."""
        assert FreightSources().to_api()["availabilityStrategy"] == "OneOf"
        sources = FreightSources(availability_strategy="all")
        assert sources.to_api()["availabilityStrategy"] == "All"


class TestStagePayload:
    """Tests for validating Stages from API payloads."""

    def test_camel_case_payload(self) -> None:
        """Test requested freight and template ref parse from camelCase."""
        stage = Stage.model_validate(
            {
                "metadata": {"namespace": "shop", "name": "prod"},
                "spec": {
                    "requestedFreight": [
                        {
                            "origin": {"kind": "Warehouse", "name": "web"},
                            "sources": {
                                "stages": ["uat"],
                                "availabilityStrategy": "All",
                                "requiredSoakTime": "1h",
                            },
                        }
                    ],
                    "promotionTemplateRef": {"name": "standard"},
                },
            }
        )
        sources = stage.spec.requested_freight[0].sources
        assert sources.availability_strategy is AvailabilityStrategy.ALL
        assert sources.required_soak_time == timedelta(hours=1)
        assert not stage.is_control_flow()

    def test_control_flow(self, make_stage) -> None:
        """Test a Stage without any template is control flow."""
        assert make_stage("router", stages=["test"], control_flow=True).is_control_flow()
        assert not make_stage("uat", stages=["test"]).is_control_flow()
        assert not make_stage("uat", stages=["test"], template_ref="standard").is_control_flow()


class TestVerificationPhase:
    """Tests for verification phase classification."""

    @pytest.mark.parametrize(
        ("phase", "terminal"),
        [
            (VerificationPhase.PENDING, False),
            (VerificationPhase.RUNNING, False),
            (VerificationPhase.SUCCESSFUL, True),
            (VerificationPhase.FAILED, True),
            (VerificationPhase.ERROR, True),
            (VerificationPhase.ABORTED, True),
            (VerificationPhase.INCONCLUSIVE, True),
        ],
    )
    def test_is_terminal(self, phase: VerificationPhase, terminal: bool) -> None:
        """Test only Pending and Running are non-terminal."""
        assert phase.is_terminal is terminal

    def test_unset_phase_is_not_terminal(self) -> None:
        """Test VerificationInfo without a phase is treated as active."""
        assert not VerificationInfo(id="v1").is_terminal


class TestVerificationRequest:
    """Tests for signal encoding."""

    def test_bare_id(self) -> None:
        """Test an ID-only request encodes as the bare ID."""
        assert VerificationRequest(id="v1").encode() == "v1"

    def test_json_when_actor_set(self) -> None:
        """Test an actor forces the JSON form."""
        encoded = VerificationRequest(id="v1", actor="alice").encode()
        assert json.loads(encoded) == {"id": "v1", "actor": "alice"}
        assert " " not in encoded

    def test_control_plane_flag(self) -> None:
        """Test the control-plane flag is carried in camelCase."""
        encoded = VerificationRequest(id="v1", control_plane=True).encode()
        assert json.loads(encoded) == {"id": "v1", "controlPlane": True}

    def test_empty_id_encodes_empty(self) -> None:
        """Test a request without an ID encodes to nothing."""
        assert VerificationRequest(actor="alice").encode() == ""

    def test_parse_both_forms(self) -> None:
        """Test parse accepts the bare and JSON encodings."""
        assert VerificationRequest.parse("v1") == VerificationRequest(id="v1")
        assert VerificationRequest.parse('{"id":"v1","actor":"alice"}') == VerificationRequest(
            id="v1", actor="alice"
        )

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_parse_empty(self, value: str | None) -> None:
        """Test empty annotations mean no signal."""
        assert VerificationRequest.parse(value) is None

    def test_same_target_ignores_actor(self) -> None:
        """Test target comparison is by ID only."""
        a = VerificationRequest(id="v1", actor="alice")
        assert a.same_target(VerificationRequest(id="v1", actor="bob"))
        assert not a.same_target(VerificationRequest(id="v2"))
        assert not a.same_target(None)
