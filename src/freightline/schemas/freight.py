"""Freight, its content references and its per-Stage status.

Freight is an immutable bundle of git commits, container images and Helm
chart versions produced by a Warehouse. Its name is derived from its content
(see :meth:`Freight.generate_id`), so the same content always yields the same
identity and repeated creates are idempotent. Only ``status`` ever changes,
and only additively, as Stages verify or operators approve it.

Example:
    >>> freight = Freight(
    ...     metadata=ObjectMeta(namespace="shop"),
    ...     origin=FreightOrigin(name="web"),
    ...     images=[Image(repo_url="ghcr.io/acme/web", tag="1.2.0", digest="sha256:ab")],
    ... )
    >>> freight.metadata.name = freight.generate_id()
"""

from __future__ import annotations

import hashlib
import posixpath
from datetime import datetime, timedelta, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from freightline.schemas.meta import ObjectMeta, ResourceModel


class FreightOriginKind(str, Enum):
    """Kinds of resource that can produce Freight."""

    WAREHOUSE = "Warehouse"


class FreightOrigin(BaseModel):
    """Reference to the Warehouse a piece of Freight came from.

    Equality and hashing are by kind and name, so origins can key dicts.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: FreightOriginKind = Field(
        default=FreightOriginKind.WAREHOUSE,
        description="Kind of the producing resource",
    )
    name: str = Field(..., min_length=1, description="Name of the producing resource")

    def __str__(self) -> str:
        return f"{self.kind.value}/{self.name}"


def normalize_git_url(url: str) -> str:
    """Normalize a git repository URL for identity comparisons."""
    normalized = url.strip().lower().rstrip("/")
    if normalized.endswith(".git"):
        normalized = normalized[: -len(".git")]
    return normalized


def normalize_chart_repo_url(url: str) -> str:
    """Normalize a Helm chart repository URL for identity comparisons."""
    return url.strip().lower().rstrip("/")


class GitCommit(ResourceModel):
    """A specific commit from a specific git repository."""

    repo_url: str = Field(..., alias="repoURL", description="Git repository URL")
    id: str = Field(..., description="Commit ID")
    branch: str | None = Field(default=None, description="Branch the commit was found on")
    tag: str | None = Field(default=None, description="Tag that resolved to this commit")
    message: str | None = Field(default=None, description="Commit subject line")

    def canonical(self) -> str:
        """Canonical form used for Freight identity.

        One commit can carry several tags, so the tag participates in the
        identity when present.
        """
        repo = normalize_git_url(self.repo_url)
        if self.tag:
            return f"{repo}:{self.tag}:{self.id}"
        return f"{repo}:{self.id}"


class Image(ResourceModel):
    """A specific container image version."""

    repo_url: str = Field(..., alias="repoURL", description="Image repository")
    tag: str = Field(default="", description="Image tag")
    digest: str = Field(default="", description="Image digest")

    def canonical(self) -> str:
        """Canonical form used for Freight identity.

        Both tag and digest participate: mutable tags can move to a new
        digest and a known digest can be re-tagged.
        """
        return f"{self.repo_url}:{self.tag}@{self.digest}"


class Chart(ResourceModel):
    """A specific Helm chart version."""

    repo_url: str = Field(..., alias="repoURL", description="Chart repository URL")
    name: str = Field(default="", description="Chart name (empty for OCI repos)")
    version: str = Field(..., description="Chart version")

    def canonical(self) -> str:
        """Canonical form used for Freight identity."""
        base = normalize_chart_repo_url(self.repo_url)
        path = posixpath.join(base, self.name) if self.name else base
        return f"{path}:{self.version}"


class ApprovedStage(ResourceModel):
    """Marker recording a manual approval of Freight for a Stage."""

    approved_at: datetime | None = Field(default=None)


class VerifiedStage(ResourceModel):
    """Marker recording that Freight was verified in a Stage."""

    verified_at: datetime | None = Field(
        default=None,
        description="When verification succeeded; absent means soak cannot be proven",
    )

    @field_validator("verified_at")
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        """Treat a timestamp without a zone as UTC."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class CurrentStage(ResourceModel):
    """Marker recording that a Stage currently uses the Freight."""

    since: datetime | None = Field(default=None)


class FreightStatus(ResourceModel):
    """Observed, additively mutated state of a piece of Freight."""

    approved_for: dict[str, ApprovedStage] = Field(default_factory=dict)
    verified_in: dict[str, VerifiedStage] = Field(default_factory=dict)
    currently_in: dict[str, CurrentStage] = Field(default_factory=dict)


class Freight(ResourceModel):
    """A content-identified bundle of artifacts eligible for promotion.

    Attributes:
        metadata: Name (the content ID) and Project.
        alias: Optional human-friendly name, unique within the Project.
        origin: Warehouse that produced the Freight.
        commits: Git commits in the bundle.
        images: Container images in the bundle.
        charts: Helm charts in the bundle.
        status: Approval, verification and usage markers keyed by Stage name.
    """

    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    alias: str | None = Field(default=None, description="Human-friendly alias")
    origin: FreightOrigin = Field(..., description="Producing Warehouse")
    commits: list[GitCommit] = Field(default_factory=list)
    images: list[Image] = Field(default_factory=list)
    charts: list[Chart] = Field(default_factory=list)
    status: FreightStatus = Field(default_factory=FreightStatus)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace

    def generate_id(self) -> str:
        """Derive the deterministic identity of this Freight from its content.

        Returns:
            Hex-encoded SHA-1 of the origin and the sorted canonical artifacts.
        """
        artifacts = [c.canonical() for c in self.commits]
        artifacts.extend(i.canonical() for i in self.images)
        artifacts.extend(c.canonical() for c in self.charts)
        artifacts.sort()
        payload = f"{self.origin}:{'|'.join(artifacts)}"
        return hashlib.sha1(payload.encode("utf-8"), usedforsecurity=False).hexdigest()

    def is_approved_for(self, stage: str) -> bool:
        return stage in self.status.approved_for

    def is_verified_in(self, stage: str) -> bool:
        return stage in self.status.verified_in

    def verified_at(self, stage: str) -> datetime | None:
        marker = self.status.verified_in.get(stage)
        return marker.verified_at if marker is not None else None

    def has_soaked_in(
        self,
        stage: str,
        soak: timedelta | None,
        now: datetime,
    ) -> bool:
        """Whether the Freight has been verified in ``stage`` for at least ``soak``.

        With no soak requirement, verification alone suffices. With one, a
        missing verification timestamp means the soak cannot be proven.
        """
        if not self.is_verified_in(stage):
            return False
        if not soak:
            return True
        verified_at = self.verified_at(stage)
        if verified_at is None:
            return False
        return now - verified_at >= soak


class FreightReference(ResourceModel):
    """A Stage's pointer to a piece of Freight it holds."""

    name: str = Field(..., description="Freight name")
    origin: FreightOrigin = Field(..., description="Producing Warehouse")


__all__ = [
    "ApprovedStage",
    "Chart",
    "CurrentStage",
    "Freight",
    "FreightOrigin",
    "FreightOriginKind",
    "FreightReference",
    "FreightStatus",
    "GitCommit",
    "Image",
    "VerifiedStage",
    "normalize_chart_repo_url",
    "normalize_git_url",
]
