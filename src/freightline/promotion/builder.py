"""Promotion naming and materialization.

Promotion names are ``<stage>.<ulid>.<freight[:7]>``, lowercased and at most
253 characters. The ULID segment makes names sortable by creation time, which
the phase comparator relies on.
"""

from __future__ import annotations

import secrets
import time

from freightline.schemas import (
    ANNOTATION_KEY_CREATE_ACTOR,
    Actor,
    ObjectMeta,
    Promotion,
    PromotionSpec,
    PromotionTemplateSpec,
    Stage,
)

MAX_NAME_LENGTH = 253
ULID_LENGTH = 26
SHORT_FREIGHT_LENGTH = 7
MAX_STAGE_PREFIX_LENGTH = MAX_NAME_LENGTH - 1 - ULID_LENGTH - 1 - SHORT_FREIGHT_LENGTH

_CROCKFORD = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"


def new_ulid(timestamp_ms: int | None = None) -> str:
    """Generate a 26-character Crockford base32 ULID.

    The first 10 characters encode a 48-bit millisecond timestamp, so ULIDs
    minted in later milliseconds sort lexically after earlier ones.

    Args:
        timestamp_ms: Milliseconds since the epoch; defaults to now.

    Returns:
        Uppercase ULID string.
    """
    if timestamp_ms is None:
        timestamp_ms = time.time_ns() // 1_000_000
    value = ((timestamp_ms & ((1 << 48) - 1)) << 80) | secrets.randbits(80)
    chars = []
    for _ in range(ULID_LENGTH):
        chars.append(_CROCKFORD[value & 0x1F])
        value >>= 5
    return "".join(reversed(chars))


def generate_promotion_name(stage: str, freight: str, ulid: str | None = None) -> str:
    """Build a Promotion name from its target Stage and Freight.

    Returns an empty string when either input is empty.

    Examples:
        >>> generate_promotion_name("Prod", "abc1234def", ulid="01J00000000000000000000000")
        'prod.01j00000000000000000000000.abc1234'
    """
    if not stage or not freight:
        return ""
    ulid = ulid or new_ulid()
    prefix = stage[:MAX_STAGE_PREFIX_LENGTH]
    name = f"{prefix}.{ulid}.{freight[:SHORT_FREIGHT_LENGTH]}"
    return name.lower()[:MAX_NAME_LENGTH]


def promotion_ulid(name: str) -> str:
    """Extract the ULID segment of a Promotion name, or "" if absent."""
    parts = name.split(".")
    if len(parts) < 3:
        return ""
    return parts[-2]


def build_promotion(
    stage: Stage,
    freight: str,
    template: PromotionTemplateSpec,
    actor: Actor | None = None,
) -> Promotion:
    """Materialize a Promotion of ``freight`` into ``stage`` from a template.

    The template is deep-copied so callers may reuse it across Promotions.
    """
    annotations: dict[str, str] = {}
    if actor is not None:
        annotations[ANNOTATION_KEY_CREATE_ACTOR] = actor.name
    spec = template.model_copy(deep=True)
    return Promotion(
        metadata=ObjectMeta(
            namespace=stage.namespace,
            name=generate_promotion_name(stage.name, freight),
            annotations=annotations,
        ),
        spec=PromotionSpec(
            stage=stage.name,
            freight=freight,
            vars=spec.vars,
            steps=spec.steps,
        ),
    )


__all__ = [
    "MAX_NAME_LENGTH",
    "MAX_STAGE_PREFIX_LENGTH",
    "build_promotion",
    "generate_promotion_name",
    "new_ulid",
    "promotion_ulid",
]
