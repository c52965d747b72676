from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path
from typing import Dict, Iterator

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[3]
BACKEND_ROOT = PROJECT_ROOT / "backend"

if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

TEST_DATABASE = Path(tempfile.gettempdir()) / "telehealth-tests.db"
if TEST_DATABASE.exists():
    TEST_DATABASE.unlink()
os.environ["DATABASE_URL"] = f"sqlite:///{TEST_DATABASE}"
os.environ.pop("REDIS_URL", None)

from sqlalchemy import text  # noqa: E402
from sqlmodel import Session  # noqa: E402

from telehealth.db.session import engine, init_db  # noqa: E402
from telehealth.models import User  # noqa: E402
from telehealth.models.user import ROLE_DOCTOR, ROLE_PATIENT  # noqa: E402
from telehealth.services import create_user, ensure_seed_data  # noqa: E402
from telehealth.services.reminders import (  # noqa: E402
    InMemoryReminderQueue,
    reset_reminder_queue,
    set_reminder_queue,
)

# Status rows are reference data and survive between tests.
WIPED_TABLES = (
    "appointment_status_history",
    "audit_events",
    "appointments",
    "availability_slots",
    "users",
    "roles",
)

PASSWORDS = {
    "doctor": "doctorpass",
    "other_doctor": "doctorpass2",
    "patient": "patientpass",
    "other_patient": "patientpass2",
}


def wipe_database() -> None:
    init_db()
    with Session(engine) as session:
        for table in WIPED_TABLES:
            session.exec(text(f"DELETE FROM {table}"))
        session.commit()
        ensure_seed_data(session)


@pytest.fixture
def session() -> Iterator[Session]:
    wipe_database()
    with Session(engine) as session:
        yield session


@pytest.fixture
def users(session: Session) -> Dict[str, User]:
    return {
        "doctor": create_user(
            session,
            username="doctor",
            password=PASSWORDS["doctor"],
            role_code=ROLE_DOCTOR,
            first_name="Grace",
            last_name="Hopper",
            email="grace@example.com",
        ),
        "other_doctor": create_user(
            session,
            username="other_doctor",
            password=PASSWORDS["other_doctor"],
            role_code=ROLE_DOCTOR,
            first_name="Alan",
            last_name="Turing",
        ),
        "patient": create_user(
            session,
            username="patient",
            password=PASSWORDS["patient"],
            role_code=ROLE_PATIENT,
            first_name="Ada",
            last_name="Lovelace",
            email="ada@example.com",
            phone="+358401234567",
        ),
        "other_patient": create_user(
            session,
            username="other_patient",
            password=PASSWORDS["other_patient"],
            role_code=ROLE_PATIENT,
            first_name="Edsger",
            last_name="Dijkstra",
        ),
    }


@pytest.fixture
def reminder_queue() -> Iterator[InMemoryReminderQueue]:
    queue = InMemoryReminderQueue()
    set_reminder_queue(queue)
    yield queue
    reset_reminder_queue()
