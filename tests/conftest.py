import os
from datetime import time

os.environ["DISABLE_AUTH"] = "false"
os.environ.setdefault("ENVIRONMENT", "test")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core import security
from app.core.database import Base, get_db
from app.main import app
from app.models.academics import Batch, Enrollment, EnrollmentBatch, Instrument
from app.models.auth import RoleGrant, StudentGuardian, TeacherUser, User
from app.models.users import Student, Teacher, UserRole

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    def override_get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_user(db, email, roles=(), name=None):
    user = User(email=email, name=name or email.split("@")[0], is_active=True)
    db.add(user)
    db.flush()
    for role in roles:
        db.add(RoleGrant(user_id=user.id, role=UserRole(role)))
    db.commit()
    db.refresh(user)
    return user


def auth_header(user):
    token = security.create_access_token(user.id, user.email, user.active_roles)
    return {"Authorization": f"Bearer {token}"}


def make_batch(db, instrument, teacher=None, recurrence="MON 17:00-18:00, THU 17:00-18:00"):
    batch = Batch(
        instrument_id=instrument.id,
        teacher_id=teacher.id if teacher else None,
        recurrence=recurrence,
        start_time=time(17, 0),
        end_time=time(18, 0),
        capacity=8,
    )
    db.add(batch)
    db.commit()
    db.refresh(batch)
    return batch


def enroll(db, student, batch, classes_remaining=8, frequency="monthly"):
    enrollment = Enrollment(student_id=student.id, status="active")
    db.add(enrollment)
    db.flush()
    link = EnrollmentBatch(
        enrollment_id=enrollment.id,
        batch_id=batch.id,
        payment_frequency=frequency,
        classes_remaining=classes_remaining,
    )
    db.add(link)
    db.commit()
    db.refresh(link)
    return link


@pytest.fixture
def admin(db):
    return make_user(db, "admin@hsm.test", roles=["admin"], name="Admin")


@pytest.fixture
def admin_headers(admin):
    return auth_header(admin)


@pytest.fixture
def guitar(db):
    instrument = Instrument(name="Guitar", online_supported=True, max_batch_size=8)
    db.add(instrument)
    db.commit()
    db.refresh(instrument)
    return instrument


@pytest.fixture
def teacher(db):
    profile = Teacher(name="Ravi", email="ravi@hsm.test", payout_type="per_class", rate=500)
    db.add(profile)
    db.commit()
    db.refresh(profile)
    return profile


@pytest.fixture
def teacher_user(db, teacher):
    user = make_user(db, "ravi@hsm.test", roles=["teacher"], name="Ravi")
    db.add(TeacherUser(user_id=user.id, teacher_id=teacher.id))
    db.commit()
    return user


@pytest.fixture
def teacher_headers(teacher_user):
    return auth_header(teacher_user)


@pytest.fixture
def batch(db, guitar, teacher):
    return make_batch(db, guitar, teacher)


@pytest.fixture
def student(db):
    record = Student(
        name="Asha Rao",
        email="asha@hsm.test",
        phone="+91 98765 43210",
        meta={"email": "asha@hsm.test"},
        student_type="permanent",
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


@pytest.fixture
def parent_user(db, student):
    user = make_user(db, "parent@hsm.test", roles=["parent"], name="Parent")
    db.add(StudentGuardian(user_id=user.id, student_id=student.id, relationship_type="mother"))
    db.commit()
    return user


@pytest.fixture
def parent_headers(parent_user):
    return auth_header(parent_user)
