"""Command-line interface for freightline.

Example:
    $ freightline --help
    $ freightline --version
    $ freightline promote prod --project shop --freight 3f1c0a2

Exit Codes:
    0: Success (a fan-out that created at least one Promotion included)
    1: General error
    2: Usage or validation error
    3: Not found
    4: Freight not available to the Stage
    5: Permission denied
    6: Verification state error
    7: Store error
    8: Every fan-out target failed
"""

from __future__ import annotations

from freightline.cli.main import cli, main

__all__ = ["cli", "main"]
