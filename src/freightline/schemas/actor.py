"""Identity of whoever requested an operation."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

CONTROL_PLANE_ACTOR = "freightline:control-plane"


class Actor(BaseModel):
    """An authenticated caller.

    Examples:
        >>> Actor(name="alice@example.com", groups=["release-managers"]).name
        'alice@example.com'
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1, description="User or service identity")
    groups: list[str] = Field(default_factory=list, description="Group memberships")

    def __str__(self) -> str:
        return self.name

    @classmethod
    def control_plane(cls) -> Actor:
        return cls(name=CONTROL_PLANE_ACTOR)


__all__ = ["Actor", "CONTROL_PLANE_ACTOR"]
