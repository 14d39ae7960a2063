from datetime import date, timedelta

import pytest

import lifecycle
from database import EntityStore
from schemas import CompanyRep, InternshipLevel, Staff, Student

TODAY = date(2025, 5, 1)


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def store():
    s = EntityStore()
    s.add_user(Student(id="U1", name="Alice", password="password", year=3, major="CSC"))
    s.add_user(Student(id="U2", name="Bob", password="password", year=1, major="CSC"))
    s.add_user(Student(id="U3", name="Cara", password="password", year=4, major="EEE"))
    s.add_user(
        CompanyRep(
            id="hr@acme.com",
            name="Rita",
            password="password",
            company_name="Acme",
            department="HR",
            position="Recruiter",
            approved=True,
        )
    )
    s.add_user(
        CompanyRep(
            id="hr@globex.com",
            name="Sam",
            password="password",
            company_name="Globex",
            approved=True,
        )
    )
    s.add_user(CompanyRep(id="new@initech.com", name="Ned", password="password", company_name="Initech"))
    s.add_user(Staff(id="staff1", name="Tom", password="password", department="CCDS"))
    return s


@pytest.fixture
def make_internship(store):
    """Create a posting through the engine; approved and visible unless told otherwise."""

    def factory(rep_id="hr@acme.com", approve=True, **fields):
        values = dict(
            title="Backend Intern",
            description="APIs",
            level=InternshipLevel.BASIC,
            preferred_major="CSC",
            open_date=TODAY - timedelta(days=10),
            close_date=TODAY + timedelta(days=10),
            slots=2,
        )
        values.update(fields)
        internship = lifecycle.create_internship(store, rep_id, **values)
        assert internship is not None
        if approve:
            assert lifecycle.decide_internship(store, "staff1", internship.id, True)
        return internship

    return factory
