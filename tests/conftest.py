"""Shared fixtures: every test gets a respx router so no real HTTP is sent."""

from __future__ import annotations

import pytest
import respx


@pytest.fixture
def respx_router():
    # assert_all_called is off because branch reads fan out with
    # asyncio.gather and a failing sibling may finish first.
    with respx.mock(assert_all_called=False) as router:
        yield router
