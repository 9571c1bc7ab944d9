"""
Fixtures for SQLite-specific integration tests.
"""
import dataclasses
import datetime

import pytest


@dataclasses.dataclass
class User:
    id: int = None
    name: str = None
    age: int | None = None
    email: str | None = None
    created_at: datetime.datetime | None = None


@pytest.fixture
def user_type():
    return User
