"""Root conftest for all tests.

Every test gets a fresh in-memory SQLite database and a FastAPI TestClient
wired to it. "Now" is pinned to NOW so date-dependent rules are reproducible.
"""

import os
from datetime import datetime

# Must be set before orthodesk.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from orthodesk import models_recurring, models_sterilization  # noqa: F401 - register tables
from orthodesk.auth import get_current_user, hash_token
from orthodesk.database import Base, get_db
from orthodesk.domain.scheduling.router import availability_rate_limit
from orthodesk.main import app
from orthodesk.models import (
    Appointment,
    AppointmentType,
    Chair,
    Clinic,
    Patient,
    Provider,
    Room,
    StaffUser,
)
from orthodesk.shared.clock import current_time

NOW = datetime(2025, 1, 1, 8, 0)
API_TOKEN = "test-token"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


# ============================================================================
# SEED DATA
# ============================================================================


@pytest.fixture
def clinic(db_session):
    clinic = Clinic(name="Bright Smiles Orthodontics")
    db_session.add(clinic)
    db_session.commit()
    return clinic


@pytest.fixture
def other_clinic(db_session):
    clinic = Clinic(name="Across Town Ortho")
    db_session.add(clinic)
    db_session.commit()
    return clinic


@pytest.fixture
def staff_user(db_session, clinic):
    user = StaffUser(
        clinic_id=clinic.id,
        email="frontdesk@brightsmiles.test",
        full_name="Front Desk",
        api_token_hash=hash_token(API_TOKEN),
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def patient(db_session, clinic):
    patient = Patient(clinic_id=clinic.id, first_name="Maya", last_name="Lopez")
    db_session.add(patient)
    db_session.commit()
    return patient


@pytest.fixture
def provider(db_session, clinic):
    provider = Provider(clinic_id=clinic.id, first_name="Sam", last_name="Reed", title="DDS")
    db_session.add(provider)
    db_session.commit()
    return provider


@pytest.fixture
def second_provider(db_session, clinic):
    provider = Provider(clinic_id=clinic.id, first_name="Ana", last_name="Cho", title="RDH")
    db_session.add(provider)
    db_session.commit()
    return provider


@pytest.fixture
def chair(db_session, clinic):
    chair = Chair(clinic_id=clinic.id, name="Chair 1")
    db_session.add(chair)
    db_session.commit()
    return chair


@pytest.fixture
def room(db_session, clinic):
    room = Room(clinic_id=clinic.id, name="Imaging")
    db_session.add(room)
    db_session.commit()
    return room


@pytest.fixture
def appointment_type(db_session, clinic):
    appointment_type = AppointmentType(
        clinic_id=clinic.id, code="ADJ", name="Adjustment", default_duration=30
    )
    db_session.add(appointment_type)
    db_session.commit()
    return appointment_type


@pytest.fixture
def make_appointment(db_session, clinic, patient, provider, appointment_type):
    """Insert an appointment directly, bypassing the availability check"""

    def _make(start_time: datetime, end_time: datetime, **overrides) -> Appointment:
        values = {
            "clinic_id": clinic.id,
            "patient_id": patient.id,
            "appointment_type_id": appointment_type.id,
            "provider_id": provider.id,
            "start_time": start_time,
            "end_time": end_time,
            "duration": int((end_time - start_time).total_seconds() // 60),
        }
        values.update(overrides)
        appointment = Appointment(**values)
        db_session.add(appointment)
        db_session.commit()
        return appointment

    return _make


# ============================================================================
# HTTP CLIENTS
# ============================================================================


@pytest.fixture
def unauthenticated_client(db_session):
    """Client with the real bearer-token dependency"""

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[current_time] = lambda: NOW
    app.dependency_overrides[availability_rate_limit] = lambda: None
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def client(unauthenticated_client, staff_user):
    """Client already signed in as staff_user"""
    app.dependency_overrides[get_current_user] = lambda: staff_user
    return unauthenticated_client
