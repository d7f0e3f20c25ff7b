"""freightline: Freight eligibility and Promotion fan-out.

Decides which Freight a Stage may receive, finds the Stages downstream of a
promotion, creates their Promotions with partial-failure tolerance, and
signals reverify/abort requests to in-flight verifications.
"""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = ["__version__"]
