"""Default policy-based authorizer for promotions.

Decisions come from :class:`~freightline.config.AuthorizationConfig` rules:
an actor is allowed if named in ``allowed_operators`` OR a member of any of
``allowed_groups``; with no rule or an empty rule everyone is allowed.

Example:
    >>> from freightline.config import AuthorizationConfig
    >>> checker = AuthorizationChecker(AuthorizationConfig(allowed_groups=["sre"]))
    >>> checker.check_authorization("alice@example.com", ["sre"]).authorized
    True
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog
from pydantic import BaseModel, ConfigDict, Field

from freightline.promotion.errors import PermissionDeniedError

if TYPE_CHECKING:
    from freightline.config import AuthorizationConfig, AuthorizationPolicy
    from freightline.schemas import Actor, Stage

logger = structlog.get_logger(__name__)

PROMOTE = "promote"
"""Verb authorized for every Promotion created."""


class AuthorizationResult(BaseModel):
    """Outcome of one authorization check, kept for audit logging.

    Attributes:
        authorized: Whether access was granted.
        operator: Identity that was checked.
        authorized_via: How access was granted (``group:<name>``, ``operator:<name>`` ...).
        reason: Why access was denied.
        groups_checked: Groups the identity presented.
        checked_at: When the check ran.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    authorized: bool = Field(..., description="Whether access was granted")
    operator: str = Field(..., description="Identity of the operator being checked")
    authorized_via: str | None = Field(default=None)
    reason: str | None = Field(default=None)
    groups_checked: list[str] = Field(default_factory=list)
    checked_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class AuthorizationChecker:
    """Evaluates one AuthorizationConfig rule."""

    def __init__(self, config: AuthorizationConfig | None) -> None:
        self.config = config

    def check_authorization(self, operator: str, groups: list[str]) -> AuthorizationResult:
        """Check ``operator`` against the rule with OR semantics.

        Args:
            operator: Identity of the actor.
            groups: Groups the actor belongs to.

        Returns:
            AuthorizationResult with the decision and audit details.
        """
        log = logger.bind(operator=operator, groups=groups)

        if self.config is None:
            log.debug("authorization_allowed_no_config")
            return AuthorizationResult(
                authorized=True,
                operator=operator,
                authorized_via="no_config",
                groups_checked=groups,
            )

        allowed_groups = self.config.allowed_groups
        allowed_operators = self.config.allowed_operators

        if not allowed_groups and not allowed_operators:
            log.debug("authorization_allowed_no_restrictions")
            return AuthorizationResult(
                authorized=True,
                operator=operator,
                authorized_via="no_restrictions",
                groups_checked=groups,
            )

        if allowed_operators and operator in allowed_operators:
            log.info("authorization_allowed_by_operator")
            return AuthorizationResult(
                authorized=True,
                operator=operator,
                authorized_via=f"operator:{operator}",
                groups_checked=groups,
            )

        if allowed_groups:
            for group in groups:
                if group in allowed_groups:
                    log.info("authorization_allowed_by_group", group=group)
                    return AuthorizationResult(
                        authorized=True,
                        operator=operator,
                        authorized_via=f"group:{group}",
                        groups_checked=groups,
                    )

        reason_parts = []
        if allowed_groups:
            reason_parts.append(f"not in allowed groups: {sorted(allowed_groups)}")
        if allowed_operators:
            reason_parts.append(f"not in allowed operators: {sorted(allowed_operators)}")
        reason = " and ".join(reason_parts)

        log.warning("authorization_denied", reason=reason)
        return AuthorizationResult(
            authorized=False,
            operator=operator,
            reason=reason,
            groups_checked=groups,
        )


class PolicyAuthorizer:
    """Authorizer backed by a per-Stage :class:`AuthorizationPolicy`.

    Raises :class:`PermissionDeniedError` on refusal, which the engine
    propagates verbatim.
    """

    def __init__(self, policy: AuthorizationPolicy) -> None:
        self.policy = policy

    def authorize(self, actor: Actor, verb: str, stage: Stage) -> None:
        rule = self.policy.for_stage(stage.name)
        result = AuthorizationChecker(rule).check_authorization(actor.name, list(actor.groups))
        if not result.authorized:
            raise PermissionDeniedError(
                actor=actor.name,
                verb=verb,
                stage=stage.name,
                reason=result.reason or "denied",
            )


class AllowAllAuthorizer:
    """Authorizer that permits everything; for local use and tests."""

    def authorize(self, actor: Actor, verb: str, stage: Stage) -> None:  # noqa: ARG002
        logger.debug("authorization_skipped", actor=actor.name, verb=verb, stage=stage.name)


__all__ = [
    "PROMOTE",
    "AllowAllAuthorizer",
    "AuthorizationChecker",
    "AuthorizationResult",
    "PolicyAuthorizer",
]
