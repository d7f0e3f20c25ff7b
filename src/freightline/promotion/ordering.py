"""Presentation order for Promotions.

Active work comes first, oldest first, since it is the most overdue. Finished
work follows, newest first. Creation order is read from the ULID segment of
the Promotion name.
"""

from __future__ import annotations

import functools
from collections.abc import Iterable

from freightline.promotion.builder import promotion_ulid
from freightline.schemas import Promotion, PromotionPhase

_RUNNING = 0
_OTHER_ACTIVE = 1
_TERMINAL = 2


def _phase_rank(phase: PromotionPhase | None) -> int:
    if phase is PromotionPhase.RUNNING:
        return _RUNNING
    if phase is None or not phase.is_terminal:
        return _OTHER_ACTIVE
    return _TERMINAL


def compare_promotion_phase(a: PromotionPhase | None, b: PromotionPhase | None) -> int:
    """Order phases Running < other non-terminal (Pending, unset) < terminal.

    Returns:
        Negative, zero or positive in the manner of a ``cmp`` function.
    """
    return _phase_rank(a) - _phase_rank(b)


def _cmp(x: str, y: str) -> int:
    return (x > y) - (x < y)


def compare_promotions(a: Promotion, b: Promotion) -> int:
    """Total order used to sort Promotions for display.

    Phase class decides first. Two Running Promotions sort by ascending ULID,
    two terminal ones by descending ULID. Anything else compares equal,
    including terminal Promotions whose names carry no ULID.
    """
    rank_a = _phase_rank(a.status.phase)
    rank_b = _phase_rank(b.status.phase)
    if rank_a != rank_b:
        return rank_a - rank_b

    ulid_a = promotion_ulid(a.metadata.name)
    ulid_b = promotion_ulid(b.metadata.name)
    if not ulid_a or not ulid_b:
        return 0
    if rank_a == _RUNNING:
        return _cmp(ulid_a, ulid_b)
    if rank_a == _TERMINAL:
        return _cmp(ulid_b, ulid_a)
    return 0


def sort_promotions(promotions: Iterable[Promotion]) -> list[Promotion]:
    """Return ``promotions`` in display order; the sort is stable."""
    return sorted(promotions, key=functools.cmp_to_key(compare_promotions))


__all__ = ["compare_promotion_phase", "compare_promotions", "sort_promotions"]
