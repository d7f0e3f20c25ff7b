"""Freight eligibility and Promotion fan-out engine.

Example:
    >>> from freightline.promotion import AvailabilityResolver, is_available
    >>> is_available(stage, freight)
    True
"""

from __future__ import annotations

from freightline.promotion.availability import (
    AvailabilityResolver,
    is_admissible,
    is_available,
)
from freightline.promotion.builder import build_promotion, generate_promotion_name
from freightline.promotion.errors import (
    AlreadyExistsError,
    ConflictError,
    FanOutError,
    FreightlineError,
    IneligibleFreightError,
    NotFoundError,
    PermissionDeniedError,
    StatusCode,
    StoreError,
    ValidationError,
    VerificationStateError,
)
from freightline.promotion.fanout import FanOutFailure, FanOutResult, PromotionFanOut
from freightline.promotion.ordering import (
    compare_promotion_phase,
    compare_promotions,
    sort_promotions,
)
from freightline.promotion.topology import (
    TopologyIndex,
    find_downstream_stages,
    find_subscribers,
)
from freightline.promotion.verification import VerificationSignaler, signal_requested

__all__ = [
    "AlreadyExistsError",
    "AvailabilityResolver",
    "ConflictError",
    "FanOutError",
    "FanOutFailure",
    "FanOutResult",
    "FreightlineError",
    "IneligibleFreightError",
    "NotFoundError",
    "PermissionDeniedError",
    "PromotionFanOut",
    "StatusCode",
    "StoreError",
    "TopologyIndex",
    "ValidationError",
    "VerificationSignaler",
    "VerificationStateError",
    "build_promotion",
    "compare_promotion_phase",
    "compare_promotions",
    "find_downstream_stages",
    "find_subscribers",
    "generate_promotion_name",
    "is_admissible",
    "is_available",
    "signal_requested",
    "sort_promotions",
]
