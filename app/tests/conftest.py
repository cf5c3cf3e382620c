"""
Pytest configuration and fixtures
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-leave-engine-tests")

from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.engine import Engine
from app.main import app
from app.db.base import Base
from app.core.deps import get_db
from app.services.escalation_scheduler import EscalationScheduler
from helpers import RecordingNotifier

# Import all models to ensure they're registered with Base.metadata
from app.models import (
    Department,
    Employee,
    OrgRole,
    LeaveTypeConfig,
)  # noqa


# Use in-memory SQLite for testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# Enable foreign keys for SQLite
@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test"""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db):
    """Test client fixture with database override"""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def test_department(db):
    dept = Department(name="Engineering", active=True)
    db.add(dept)
    db.commit()
    db.refresh(dept)
    return dept


@pytest.fixture
def make_employee(db, test_department):
    """Factory: make_employee("E001", OrgRole.EMPLOYEE, reporting_manager=..., department_director=...)"""
    def _make(emp_code, role, name=None, reporting_manager=None, department_director=None,
              join_date=date(2020, 1, 1), active=True):
        emp = Employee(
            emp_code=emp_code,
            name=name or emp_code,
            role=role,
            department_id=test_department.id,
            reporting_manager_id=reporting_manager.id if reporting_manager else None,
            department_director_id=department_director.id if department_director else None,
            join_date=join_date,
            active=active,
        )
        db.add(emp)
        db.commit()
        db.refresh(emp)
        return emp
    return _make


@pytest.fixture
def org(make_employee):
    """
    Reporting lines:

        exec1, exec2 (EXECUTIVE)
        director  -> exec1
        manager   -> director (director is also department director)
        employee  -> manager  (department director: director)
        lead      -> director, department director: director (MANAGER; same person twice)
        hr        -> exec1
        admin     -> exec1
    """
    exec1 = make_employee("EX001", OrgRole.EXECUTIVE, name="Executive One")
    exec2 = make_employee("EX002", OrgRole.EXECUTIVE, name="Executive Two")
    director = make_employee("DD001", OrgRole.DEPARTMENT_DIRECTOR, name="Director", reporting_manager=exec1)
    manager = make_employee(
        "MG001", OrgRole.MANAGER, name="Manager", reporting_manager=director, department_director=director
    )
    employee = make_employee(
        "EM001", OrgRole.EMPLOYEE, name="Employee", reporting_manager=manager, department_director=director
    )
    lead = make_employee(
        "MG002", OrgRole.MANAGER, name="Team Lead", reporting_manager=director, department_director=director
    )
    hr = make_employee("HR001", OrgRole.HR, name="HR Officer", reporting_manager=exec1)
    admin = make_employee("AD001", OrgRole.ADMIN, name="Administrator", reporting_manager=exec1)
    return SimpleNamespace(
        exec1=exec1, exec2=exec2, director=director, manager=manager,
        employee=employee, lead=lead, hr=hr, admin=admin,
    )


@pytest.fixture
def annual_leave(db):
    lt = LeaveTypeConfig(
        code="AL", name="Annual Leave", annual_entitlement=Decimal("20"),
        tracks_balance=True, allow_carry_forward=True,
    )
    db.add(lt)
    db.commit()
    db.refresh(lt)
    return lt


@pytest.fixture
def medical_leave(db):
    lt = LeaveTypeConfig(
        code="ML", name="Medical Leave", annual_entitlement=Decimal("10"),
        tracks_balance=True, allow_carry_forward=False, requires_hr_verification=True,
    )
    db.add(lt)
    db.commit()
    db.refresh(lt)
    return lt


@pytest.fixture
def unpaid_leave(db):
    lt = LeaveTypeConfig(code="UL", name="Unpaid Leave", annual_entitlement=Decimal("0"), tracks_balance=False)
    db.add(lt)
    db.commit()
    db.refresh(lt)
    return lt


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def escalation_scheduler(db):
    """Scheduler bound to the test database, swapped onto app.state for the API"""
    scheduler = EscalationScheduler(TestingSessionLocal, RecordingNotifier)
    previous = app.state.escalation_scheduler
    app.state.escalation_scheduler = scheduler
    yield scheduler
    scheduler.stop()
    app.state.escalation_scheduler = previous

