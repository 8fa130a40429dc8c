"""Shared fixtures: an in-memory database, a seeded practice and an API client."""

import os
from datetime import date
from decimal import Decimal

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from dentalcore.database import Base, get_db
from dentalcore.main import app
from dentalcore.models import Business, Patient, Professional, Service
from dentalcore.models_treatment import InsuranceProfile, TariffCode

# A Monday
BOOKING_DAY = date(2026, 11, 16)


@pytest.fixture
def engine():
    """Fresh in-memory SQLite database shared by every session of a test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    """Test client whose requests use the test database."""

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def seed_practice(session) -> dict:
    """Create a practice: one professional, its business, a patient, services and tariffs."""
    professional = Professional(
        full_name="Dr. Anna Peeters",
        email="anna@example.com",
        working_hours_start="08:00",
        working_hours_end="20:00",
        slot_cadence_minutes=30,
    )
    session.add(professional)
    session.flush()

    business = Business(name="Peeters Dental", owner_id=professional.id)
    patient = Patient(first_name="Jan", last_name="Janssens", email="jan@example.com")
    checkup = Service(professional_id=professional.id, name="Checkup", duration_minutes=30, price_cents=5000)
    filling = Service(professional_id=professional.id, name="Filling", duration_minutes=45, price_cents=9000)
    session.add_all([business, patient, checkup, filling])
    session.flush()

    session.add_all(
        [
            TariffCode(
                code="CONSULT",
                description="Consultation",
                base_tariff_cents=4000,
                vat_rate=Decimal("6"),
                mutuality_share_pct=Decimal("75"),
                patient_share_pct=Decimal("25"),
                valid_from=date(2020, 1, 1),
            ),
            TariffCode(
                code="XRAY",
                description="Bitewing radiograph",
                base_tariff_cents=1999,
                vat_rate=Decimal("21"),
                mutuality_share_pct=Decimal("60"),
                patient_share_pct=Decimal("40"),
                valid_from=date(2020, 1, 1),
            ),
            TariffCode(
                code="OLDCODE",
                description="Withdrawn procedure",
                base_tariff_cents=2500,
                vat_rate=Decimal("0"),
                mutuality_share_pct=Decimal("50"),
                patient_share_pct=Decimal("50"),
                valid_from=date(2015, 1, 1),
                valid_to=date(2019, 12, 31),
            ),
        ]
    )
    session.commit()

    return {
        "professional_id": professional.id,
        "business_id": business.id,
        "patient_id": patient.id,
        "service_id": checkup.id,
        "filling_service_id": filling.id,
    }


@pytest.fixture
def practice(db):
    return seed_practice(db)


@pytest.fixture
def insured_patient(db, practice):
    """Patient covered by a regular mutuality profile for the booking day."""
    db.add(
        InsuranceProfile(
            patient_id=practice["patient_id"],
            mutuality_code="MUT-100",
            mutuality_name="Christian Mutuality",
            valid_from=date(2024, 1, 1),
        )
    )
    db.commit()
    return practice["patient_id"]


@pytest.fixture
def practice_seeder():
    """The seeding function, for tests that manage their own database."""
    return seed_practice
