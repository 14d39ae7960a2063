"""
CSV snapshot persistence

The store is loaded once at startup and written back at shutdown. Three
snapshot files live in the data directory:

    users.csv         role,id,name,password,year,major,company,department,position,approved
    internships.csv   id,title,description,level,preferred_major,open_date,close_date,
                      company_name,company_rep_id,slots,visible,status,confirmed_count
    applications.csv  id,internship_id,student_id,status,confirmed_by_student,listed

When any of them is missing the store is built from the seed files instead:
students.csv (id,name,major,year), staff.csv (id,name,role,department) and the
optional company_reps.csv (id,name,company,department,position,approved). Seed
files carry a header row that is skipped.

Applicant lists and the like are not written; they are derived from the
application table once it is back in memory.
"""

import csv
from datetime import date
from pathlib import Path
from typing import Iterable, List, Optional, Union

import structlog

from config import settings
from database import EntityStore
from schemas import (
    Application,
    ApplicationStatus,
    CompanyRep,
    Internship,
    InternshipLevel,
    InternshipStatus,
    Role,
    Staff,
    Student,
)

logger = structlog.get_logger(__name__)

USERS_FILE = "users.csv"
INTERNSHIPS_FILE = "internships.csv"
APPLICATIONS_FILE = "applications.csv"
SNAPSHOT_FILES = (USERS_FILE, INTERNSHIPS_FILE, APPLICATIONS_FILE)

USER_FIELDS = [
    "role", "id", "name", "password", "year", "major",
    "company", "department", "position", "approved",
]
INTERNSHIP_FIELDS = [
    "id", "title", "description", "level", "preferred_major", "open_date", "close_date",
    "company_name", "company_rep_id", "slots", "visible", "status", "confirmed_count",
]
APPLICATION_FIELDS = [
    "id", "internship_id", "student_id", "status", "confirmed_by_student", "listed",
]

PathLike = Union[str, Path]


# Field parsing
def _text(row: dict, key: str) -> str:
    return (row.get(key) or "").strip()


def _bool(value: str, default: bool = False) -> bool:
    value = (value or "").strip().lower()
    if not value:
        return default
    return value == "true"


def _int(value: str, default: int) -> int:
    try:
        return int((value or "").strip())
    except ValueError:
        return default


def _date(value: str) -> Optional[date]:
    value = (value or "").strip()
    return date.fromisoformat(value) if value else None


def _level(value: str) -> InternshipLevel:
    try:
        return InternshipLevel(value)
    except ValueError:
        return InternshipLevel.BASIC


def _internship_status(value: str) -> InternshipStatus:
    try:
        return InternshipStatus(value)
    except ValueError:
        return InternshipStatus.PENDING


def _application_status(value: str) -> ApplicationStatus:
    try:
        return ApplicationStatus(value)
    except ValueError:
        return ApplicationStatus.PENDING


def _read_rows(path: Path) -> List[dict]:
    with path.open(newline="", encoding="utf-8") as fh:
        return list(csv.DictReader(fh))


def _write_rows(path: Path, fields: List[str], rows: Iterable[dict]):
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as fh:
        writer = csv.DictWriter(fh, fieldnames=fields)
        writer.writeheader()
        writer.writerows(rows)


# Users
def user_from_row(row: dict):
    try:
        role = Role(_text(row, "role"))
    except ValueError:
        return None
    common = {
        "id": _text(row, "id"),
        "name": _text(row, "name"),
        "password": row.get("password") or settings.DEFAULT_PASSWORD,
    }
    if not common["id"]:
        return None
    if role == Role.STUDENT:
        return Student(**common, year=max(1, _int(row.get("year"), 1)), major=_text(row, "major"))
    if role == Role.COMPANY_REP:
        return CompanyRep(
            **common,
            company_name=_text(row, "company"),
            department=_text(row, "department"),
            position=_text(row, "position"),
            approved=_bool(row.get("approved")),
        )
    return Staff(**common, department=_text(row, "department"))


def user_to_row(user) -> dict:
    row = dict.fromkeys(USER_FIELDS, "")
    row.update(id=user.id, name=user.name, password=user.password)
    if isinstance(user, Student):
        row.update(role=Role.STUDENT.value, year=user.year, major=user.major)
    elif isinstance(user, CompanyRep):
        row.update(
            role=Role.COMPANY_REP.value,
            company=user.company_name,
            department=user.department,
            position=user.position,
            approved=str(user.approved).lower(),
        )
    else:
        row.update(role=Role.STAFF.value, department=user.department)
    return row


def load_users(store: EntityStore, path: PathLike) -> int:
    loaded = 0
    for row in _read_rows(Path(path)):
        user = user_from_row(row)
        if user is None or not store.add_user(user):
            logger.warning("user_row_skipped", id=row.get("id"), role=row.get("role"))
            continue
        loaded += 1
    return loaded


def save_users(store: EntityStore, path: PathLike):
    _write_rows(Path(path), USER_FIELDS, (user_to_row(u) for u in store.users()))


# Internships
def internship_from_row(row: dict) -> Optional[Internship]:
    try:
        open_date = _date(row.get("open_date"))
        close_date = _date(row.get("close_date"))
    except ValueError:
        return None
    if not _text(row, "id"):
        return None
    status = _internship_status(_text(row, "status"))
    return Internship(
        id=_text(row, "id"),
        title=_text(row, "title"),
        description=_text(row, "description"),
        level=_level(_text(row, "level")),
        preferred_major=_text(row, "preferred_major"),
        open_date=open_date,
        close_date=close_date,
        company_name=_text(row, "company_name"),
        company_rep_id=_text(row, "company_rep_id"),
        slots=_int(row.get("slots"), settings.MIN_SLOTS),
        status=status,
        visible=_bool(row.get("visible")) and status != InternshipStatus.FILLED,
        confirmed_count=_int(row.get("confirmed_count"), 0),
    )


def internship_to_row(internship: Internship) -> dict:
    return {
        "id": internship.id,
        "title": internship.title,
        "description": internship.description,
        "level": internship.level.value,
        "preferred_major": internship.preferred_major,
        "open_date": internship.open_date.isoformat() if internship.open_date else "",
        "close_date": internship.close_date.isoformat() if internship.close_date else "",
        "company_name": internship.company_name,
        "company_rep_id": internship.company_rep_id,
        "slots": internship.slots,
        "visible": str(internship.visible).lower(),
        "status": internship.status.value,
        "confirmed_count": internship.confirmed_count,
    }


def load_internships(store: EntityStore, path: PathLike) -> int:
    loaded = 0
    for row in _read_rows(Path(path)):
        internship = internship_from_row(row)
        if internship is None:
            logger.warning("internship_row_skipped", id=row.get("id"))
            continue
        store.add_internship(internship)
        loaded += 1
    return loaded


def save_internships(store: EntityStore, path: PathLike):
    _write_rows(Path(path), INTERNSHIP_FIELDS, (internship_to_row(i) for i in store.internships()))


# Applications
def application_from_row(row: dict) -> Optional[Application]:
    if not (_text(row, "id") and _text(row, "internship_id") and _text(row, "student_id")):
        return None
    return Application(
        id=_text(row, "id"),
        internship_id=_text(row, "internship_id"),
        student_id=_text(row, "student_id"),
        status=_application_status(_text(row, "status")),
        confirmed_by_student=_bool(row.get("confirmed_by_student")),
        listed=_bool(row.get("listed"), default=True),
    )


def application_to_row(application: Application) -> dict:
    return {
        "id": application.id,
        "internship_id": application.internship_id,
        "student_id": application.student_id,
        "status": application.status.value,
        "confirmed_by_student": str(application.confirmed_by_student).lower(),
        "listed": str(application.listed).lower(),
    }


def load_applications(store: EntityStore, path: PathLike) -> int:
    loaded = 0
    for row in _read_rows(Path(path)):
        application = application_from_row(row)
        if application is None:
            logger.warning("application_row_skipped", id=row.get("id"))
            continue
        store.add_application(application)
        loaded += 1
    return loaded


def save_applications(store: EntityStore, path: PathLike):
    _write_rows(
        Path(path), APPLICATION_FIELDS, (application_to_row(a) for a in store.applications())
    )


# Seed + snapshot
def _read_seed(path: Path) -> List[List[str]]:
    if not path.is_file():
        logger.warning("seed_file_missing", path=str(path))
        return []
    with path.open(newline="", encoding="utf-8") as fh:
        rows = list(csv.reader(fh))
    return [[cell.strip() for cell in r] for r in rows[1:] if any(cell.strip() for cell in r)]


def load_seed(store: EntityStore, data_dir: PathLike) -> int:
    """Create users from the seed files, all with the default password."""
    data_dir = Path(data_dir)
    password = settings.DEFAULT_PASSWORD
    loaded = 0

    for r in _read_seed(data_dir / "students.csv"):
        if len(r) < 4:
            continue
        student = Student(id=r[0], name=r[1], password=password, major=r[2], year=max(1, _int(r[3], 1)))
        loaded += store.add_user(student)

    for r in _read_seed(data_dir / "staff.csv"):
        if len(r) < 2:
            continue
        department = r[3] if len(r) >= 4 else ""
        loaded += store.add_user(Staff(id=r[0], name=r[1], password=password, department=department))

    reps_file = data_dir / "company_reps.csv"
    if reps_file.is_file():
        for r in _read_seed(reps_file):
            if len(r) < 3:
                continue
            r = r + [""] * (6 - len(r))
            rep = CompanyRep(
                id=r[0],
                name=r[1],
                password=password,
                company_name=r[2],
                department=r[3],
                position=r[4],
                approved=_bool(r[5]),
            )
            loaded += store.add_user(rep)

    logger.info("seed_loaded", data_dir=str(data_dir), users=loaded)
    return loaded


def load_all(store: EntityStore, data_dir: PathLike) -> bool:
    """Replace the store's contents from disk.

    Returns True when the snapshot was loaded, False when it fell back to seed
    data because a snapshot file was missing.
    """
    data_dir = Path(data_dir)
    store.clear()

    missing = [name for name in SNAPSHOT_FILES if not (data_dir / name).is_file()]
    if missing:
        logger.info("snapshot_incomplete", data_dir=str(data_dir), missing=missing)
        load_seed(store, data_dir)
        return False

    users = load_users(store, data_dir / USERS_FILE)
    internships = load_internships(store, data_dir / INTERNSHIPS_FILE)
    applications = load_applications(store, data_dir / APPLICATIONS_FILE)
    logger.info(
        "snapshot_loaded",
        data_dir=str(data_dir),
        users=users,
        internships=internships,
        applications=applications,
    )
    return True


def save_all(store: EntityStore, data_dir: PathLike):
    data_dir = Path(data_dir)
    save_users(store, data_dir / USERS_FILE)
    save_internships(store, data_dir / INTERNSHIPS_FILE)
    save_applications(store, data_dir / APPLICATIONS_FILE)
    logger.info(
        "snapshot_saved",
        data_dir=str(data_dir),
        users=len(store.users()),
        internships=len(store.internships()),
        applications=len(store.applications()),
    )
