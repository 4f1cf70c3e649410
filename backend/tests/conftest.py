"""
conftest.py — Shared pytest fixtures for the facade workbench test suite.

No collaborator service is needed: HTTP traffic is served by
``httpx.MockTransport`` inside the tests that exercise the preview client,
and timing is driven by a manual clock so debounce windows are stepped
deterministically.

Import-path bootstrapping:
    The ``backend/`` directory is inserted into sys.path so that all
    ``workbench.*`` imports resolve correctly regardless of where pytest is
    invoked.
"""

import sys
import os
import pytest

# ---------------------------------------------------------------------------
# Ensure ``backend/`` is on the import path before any workbench imports occur.
# ---------------------------------------------------------------------------
_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)


class ManualClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


# ---------------------------------------------------------------------------
# PhysicsEngine fixture
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def physics_engine():
    """PhysicsEngine with display rounding (1 / 3 / 2 decimals)."""
    from workbench.services.physics_engine import PhysicsEngine
    return PhysicsEngine()


# ---------------------------------------------------------------------------
# Scheduler fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def scheduler(clock):
    """
    DependencyScheduler on the manual clock.

    Windows: glass units 0.4 s, wind 0.5 s.
    """
    from workbench.services.dependency_scheduler import DependencyScheduler
    return DependencyScheduler(clock=clock, glass_window_s=0.4, wind_window_s=0.5)


# ---------------------------------------------------------------------------
# Catalog and session fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def catalog():
    """
    ProfileCatalog with three aluminium names, one steel name and section
    data for M-125 and T-80 only.
    """
    from workbench.services.catalog_engine import ProfileCatalog
    cat = ProfileCatalog()
    cat.load(
        alum_names=["M-125", "M-150", "T-80"],
        steel_names=["ST-100"],
        rows=[
            {"profile_name": "M-125", "I_xx": 1_250_000.0, "I_yy": 410_000.0, "phi_Mn": 3.5},
            {"profile_name": "T-80", "I_xx": 310_000.0},
        ],
    )
    return cat


@pytest.fixture
def session(catalog, scheduler):
    """WorkbenchSession without a collaborator client."""
    from workbench.services.workbench_session import WorkbenchSession
    return WorkbenchSession(catalog=catalog, scheduler=scheduler)


# ---------------------------------------------------------------------------
# Shared sample inputs
# ---------------------------------------------------------------------------

@pytest.fixture
def sgu_inputs():
    """
    1 m × 1 m single lite, 6 mm nominal (5.56 mm minimum), 1 kPa, four edges.

    load × area² = 0.749 × 1 × 1² = 0.749  → 0.7
    deflection   ≈ 2.89 mm                → 2.9
    """
    return {
        "length": 1000,
        "width": 1000,
        "thickness": 6,
        "wind_load": 1,
        "support_type": "Four Edges",
    }
