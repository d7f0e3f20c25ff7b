"""Stage, its Freight requests, and its verification state.

A Stage declares which Freight it may receive (``spec.requested_freight``),
how it is promoted into (an inline template or a reference to a named one),
and optionally the legacy upstream subscriptions used for subscriber fan-out.
Its status records the Freight it holds and the verifications run against it;
this package reads that status but never owns it.
"""

from __future__ import annotations

import json
import re
from datetime import datetime, timedelta
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from freightline.schemas.freight import FreightOrigin, FreightReference
from freightline.schemas.meta import ObjectMeta, ResourceModel
from freightline.schemas.promotion import PromotionTemplate, PromotionTemplateRef

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_DURATION_UNITS = {
    "h": timedelta(hours=1),
    "m": timedelta(minutes=1),
    "s": timedelta(seconds=1),
    "ms": timedelta(milliseconds=1),
}


def parse_duration(value: Any) -> Any:
    """Parse Go-style duration strings such as ``"1h30m"`` or ``"90s"``.

    Values that are not such strings are returned untouched so pydantic's own
    timedelta parsing (seconds, ISO 8601) still applies.

    Raises:
        ValueError: If the string looks like a Go duration but is malformed.
    """
    if not isinstance(value, str):
        return value
    text = value.strip()
    if not text or text.startswith("P") or not text[-1].isalpha():
        return value
    parts = _DURATION_PART.findall(text)
    if not parts or "".join(n + u for n, u in parts) != text:
        raise ValueError(f"invalid duration {value!r}")
    total = timedelta()
    for number, unit in parts:
        total += _DURATION_UNITS[unit] * float(number)
    return total


Duration = Annotated[timedelta, BeforeValidator(parse_duration)]


class AvailabilityStrategy(str, Enum):
    """How verification across several upstream Stages is aggregated."""

    ALL = "All"
    ANY = "OneOf"

    @classmethod
    def _missing_(cls, value: object) -> AvailabilityStrategy | None:
        if isinstance(value, str):
            lowered = value.lower()
            if lowered in ("", "any", "oneof"):
                return cls.ANY
            if lowered == "all":
                return cls.ALL
        return None


class FreightSources(ResourceModel):
    """Where a Stage may take Freight of one origin from.

    Attributes:
        direct: Any Freight from the origin is admissible without verification.
        stages: Upstream Stages whose verification of the Freight counts.
        availability_strategy: Whether all or any of ``stages`` must agree.
        required_soak_time: How long Freight must have been verified upstream.
    """

    direct: bool = Field(default=False)
    stages: list[str] = Field(default_factory=list)
    availability_strategy: AvailabilityStrategy = Field(default=AvailabilityStrategy.ANY)
    required_soak_time: Duration | None = Field(default=None)


class FreightRequest(ResourceModel):
    """A Stage's request for Freight of one origin."""

    origin: FreightOrigin
    sources: FreightSources = Field(default_factory=FreightSources)


class StageSubscription(ResourceModel):
    name: str = Field(..., min_length=1, description="Upstream Stage name")


class Subscriptions(ResourceModel):
    """Legacy subscription block used for subscriber fan-out."""

    upstream_stages: list[StageSubscription] = Field(default_factory=list)


class StageSpec(ResourceModel):
    requested_freight: list[FreightRequest] = Field(default_factory=list)
    subscriptions: Subscriptions | None = Field(default=None)
    promotion_template: PromotionTemplate | None = Field(default=None)
    promotion_template_ref: PromotionTemplateRef | None = Field(default=None)


class VerificationPhase(str, Enum):
    PENDING = "Pending"
    RUNNING = "Running"
    SUCCESSFUL = "Successful"
    FAILED = "Failed"
    ERROR = "Error"
    ABORTED = "Aborted"
    INCONCLUSIVE = "Inconclusive"

    @property
    def is_terminal(self) -> bool:
        return self not in (VerificationPhase.PENDING, VerificationPhase.RUNNING)


class VerificationInfo(ResourceModel):
    """One verification run against a Stage's current Freight."""

    id: str = Field(default="")
    actor: str | None = Field(default=None)
    phase: VerificationPhase | None = Field(default=None)
    message: str | None = Field(default=None)
    start_time: datetime | None = Field(default=None)
    finish_time: datetime | None = Field(default=None)

    @property
    def is_terminal(self) -> bool:
        return self.phase is not None and self.phase.is_terminal


class FreightCollection(ResourceModel):
    """The Freight a Stage holds at one point in time, one entry per origin."""

    id: str = Field(default="")
    freight: dict[str, FreightReference] = Field(default_factory=dict)
    verification_history: list[VerificationInfo] = Field(default_factory=list)

    def current_verification(self) -> VerificationInfo | None:
        return self.verification_history[0] if self.verification_history else None


class StageStatus(ResourceModel):
    freight_history: list[FreightCollection] = Field(default_factory=list)

    def current_freight(self) -> FreightCollection | None:
        return self.freight_history[0] if self.freight_history else None


class Stage(ResourceModel):
    """A deployment target with a policy for which Freight it may receive."""

    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    spec: StageSpec = Field(default_factory=StageSpec)
    status: StageStatus = Field(default_factory=StageStatus)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace

    def is_control_flow(self) -> bool:
        """A Stage with no way to be promoted into only routes Freight."""
        return self.spec.promotion_template is None and self.spec.promotion_template_ref is None

    def requests_for(self, origin: FreightOrigin) -> list[FreightRequest]:
        return [r for r in self.spec.requested_freight if r.origin == origin]


class VerificationRequest(BaseModel):
    """A pending reverify/abort signal addressed to one verification run.

    Signals are single-slot: writing a new one replaces the previous value.
    The wire form is the bare ID when nothing else is set, otherwise a compact
    JSON object; :meth:`parse` accepts both.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(default="", description="Target VerificationInfo ID")
    actor: str | None = Field(default=None, description="Who asked")
    control_plane: bool = Field(default=False, description="Issued by the control plane")

    def encode(self) -> str:
        if not self.id:
            return ""
        if not self.actor and not self.control_plane:
            return self.id
        payload: dict[str, Any] = {"id": self.id}
        if self.actor:
            payload["actor"] = self.actor
        if self.control_plane:
            payload["controlPlane"] = True
        return json.dumps(payload, separators=(",", ":"))

    @classmethod
    def parse(cls, value: str | None) -> VerificationRequest | None:
        """Decode either signal encoding; empty input means no signal."""
        if not value or not value.strip():
            return None
        text = value.strip()
        if text.startswith("{"):
            data = json.loads(text)
            return cls(
                id=str(data.get("id", "")),
                actor=data.get("actor") or None,
                control_plane=bool(data.get("controlPlane", False)),
            )
        return cls(id=text)

    def same_target(self, other: VerificationRequest | None) -> bool:
        return other is not None and self.id == other.id


__all__ = [
    "AvailabilityStrategy",
    "Duration",
    "FreightCollection",
    "FreightRequest",
    "FreightSources",
    "Stage",
    "StageSpec",
    "StageStatus",
    "StageSubscription",
    "Subscriptions",
    "VerificationInfo",
    "VerificationPhase",
    "VerificationRequest",
    "parse_duration",
]
