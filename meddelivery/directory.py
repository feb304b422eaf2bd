"""
Lookups into user and patient records owned by other parts of the hospital system.
The core only reads them: a user's role, and a patient's delivery coordinates.
"""
from typing import NamedTuple, Protocol

import asyncpg

from meddelivery.fees import Coordinates
from meddelivery.order_state import UserRole


class UserRef(NamedTuple):
    id: int
    role: UserRole


class PatientLocation(NamedTuple):
    id: int
    latitude: float | None
    longitude: float | None

    @property
    def coordinates(self) -> Coordinates | None:
        if self.latitude is None or self.longitude is None:
            return None
        return Coordinates(self.latitude, self.longitude)


class UserDirectory(Protocol):
    async def resolve(self, user_id: int) -> UserRef | None: ...


class PatientDirectory(Protocol):
    async def get(self, patient_id: int) -> PatientLocation | None: ...

    async def get_coordinates(self, patient_id: int) -> Coordinates | None: ...


class PostgresUserDirectory:
    def __init__(self, pool: asyncpg.Pool):
        self._pool = pool

    async def resolve(self, user_id: int) -> UserRef | None:
        row = await self._pool.fetchrow("SELECT id, role FROM users WHERE id = $1;", user_id)
        if row is None:
            return None
        return UserRef(row["id"], UserRole(row["role"]))


class PostgresPatientDirectory:
    def __init__(self, pool: asyncpg.Pool):
        self._pool = pool

    async def get(self, patient_id: int) -> PatientLocation | None:
        row = await self._pool.fetchrow(
            "SELECT id, latitude, longitude FROM patients WHERE id = $1;",
            patient_id,
        )
        if row is None:
            return None
        return PatientLocation(row["id"], row["latitude"], row["longitude"])

    async def get_coordinates(self, patient_id: int) -> Coordinates | None:
        patient = await self.get(patient_id)
        return patient.coordinates if patient else None
