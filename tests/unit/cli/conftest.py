"""CLI test fixtures.

The root command configures structlog against the runner's stderr; restore
the defaults so later tests do not log into a discarded stream.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
import structlog

if TYPE_CHECKING:
    from collections.abc import Generator


@pytest.fixture(autouse=True)
def reset_structlog() -> Generator[None, None, None]:
    yield
    structlog.reset_defaults()
