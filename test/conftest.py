import os
import sys

import pytest

# test/ on path so _helper is found (no "test" package: it would shadow stdlib)
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from _helper import (  # noqa: E402
    ADMIN_ID,
    HOSPITAL,
    PATIENT_ID,
    PATIENT_NO_COORDS_ID,
    MemoryDatabase,
    default_patients,
    default_users,
)
from meddelivery.orchestrator import OrderLifecycle  # noqa: E402


@pytest.fixture
def db():
    return MemoryDatabase()


@pytest.fixture
def lifecycle(db):
    return OrderLifecycle(db, default_users(), default_patients(), origin=HOSPITAL)


@pytest.fixture
async def order(lifecycle):
    """A pending order for a patient with known coordinates."""
    return await lifecycle.create_order(PATIENT_ID, "Amoxicillin 500mg x 10", ADMIN_ID)


@pytest.fixture
async def order_no_coords(lifecycle):
    return await lifecycle.create_order(PATIENT_NO_COORDS_ID, "Paracetamol 500mg x 20", ADMIN_ID)
