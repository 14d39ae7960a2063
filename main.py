from contextlib import asynccontextmanager
from datetime import date
from typing import Any, Dict, List

import structlog
from fastapi import Depends, FastAPI, Header, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

import csv_store
import eligibility
import lifecycle
from config import settings
from database import EntityStore, get_db
from logging_setup import setup_logging
from reports import company_summary
from schemas import (
    Application,
    CompanyRep,
    CompanyRepRegistration,
    Decision,
    FilterPreferences,
    FilterUpdate,
    Internship,
    InternshipCreate,
    InternshipUpdate,
    LoginRequest,
    PasswordChange,
    Role,
    Staff,
    Student,
)

setup_logging()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    store = get_db()
    if settings.LOAD_ON_STARTUP:
        csv_store.load_all(store, settings.DATA_DIR)
    logger.info("store_ready", users=len(store.users()), internships=len(store.internships()))
    yield
    if settings.SAVE_ON_SHUTDOWN:
        csv_store.save_all(store, settings.DATA_DIR)


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Helpers
class IdModel(BaseModel):
    id: str


def get_today() -> date:
    return date.today()


def serialize_user(store: EntityStore, user) -> Dict[str, Any]:
    out = user.model_dump(mode="json", exclude={"password"})
    if isinstance(user, Student):
        out["applied_internship_ids"] = store.applied_internship_ids(user.id)
        out["accepted_internship_id"] = store.accepted_internship_id(user.id)
    elif isinstance(user, CompanyRep):
        out["created_internship_ids"] = store.created_internship_ids(user.id)
    return out


def serialize_internship(store: EntityStore, internship: Internship) -> Dict[str, Any]:
    out = internship.model_dump(mode="json")
    out["applicant_ids"] = store.applicant_ids(internship.id)
    return out


def serialize_application(store: EntityStore, application: Application) -> Dict[str, Any]:
    out = application.model_dump(mode="json")
    internship = store.get_internship(application.internship_id)
    out["internship_title"] = internship.title if internship else None
    student = store.get_user(application.student_id, Role.STUDENT)
    if student is not None:
        out["student"] = {"name": student.name, "major": student.major, "year": student.year}
    return out


def ensure(ok: bool, detail: str):
    if not ok:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail)


# Dependencies
def current_user(x_user_id: str = Header(...), store: EntityStore = Depends(get_db)):
    user = store.get_user(x_user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown user")
    return user


def _require(role_cls):
    def dependency(user=Depends(current_user)):
        if not isinstance(user, role_cls):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"{role_cls.__name__} access required",
            )
        return user

    return dependency


require_student = _require(Student)
require_rep = _require(CompanyRep)
require_staff = _require(Staff)


def internship_or_404(internship_id: str, store: EntityStore = Depends(get_db)) -> Internship:
    internship = store.get_internship(internship_id)
    if internship is None:
        raise HTTPException(status_code=404, detail="Internship not found")
    return internship


def application_or_404(application_id: str, store: EntityStore = Depends(get_db)) -> Application:
    application = store.get_application(application_id)
    if application is None:
        raise HTTPException(status_code=404, detail="Application not found")
    return application


@app.get("/")
def read_root():
    return {"message": "Internship Placement Tracker API running"}


@app.get("/test")
def test_store(store: EntityStore = Depends(get_db)):
    return {
        "backend": "✅ Running",
        "data_dir": settings.DATA_DIR,
        "users": len(store.users()),
        "internships": len(store.internships()),
        "applications": len(store.applications()),
    }


# Accounts
@app.post("/auth/login")
def login(payload: LoginRequest, store: EntityStore = Depends(get_db)):
    user = lifecycle.authenticate(store, payload.user_id, payload.password)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid username or password")
    return serialize_user(store, user)


@app.post("/auth/password")
def change_password(
    payload: PasswordChange, user=Depends(current_user), store: EntityStore = Depends(get_db)
):
    ensure(lifecycle.change_password(store, user.id, payload.new_password), "Password not changed")
    return {"id": user.id}


@app.get("/users/me")
def read_me(user=Depends(current_user), store: EntityStore = Depends(get_db)):
    return serialize_user(store, user)


@app.get("/users/me/filters", response_model=FilterPreferences)
def read_filters(user=Depends(current_user)):
    return user.filters


@app.put("/users/me/filters", response_model=FilterPreferences)
def update_filters(payload: FilterUpdate, user=Depends(current_user)):
    user.filters = eligibility.merge_preferences(user.filters, payload)
    return user.filters


@app.post("/company-reps", response_model=IdModel)
def register_company_rep(payload: CompanyRepRegistration, store: EntityStore = Depends(get_db)):
    rep = lifecycle.register_company_rep(
        store,
        payload.id,
        payload.name,
        payload.company_name,
        payload.department,
        payload.position,
    )
    ensure(rep is not None, "ID already exists")
    return {"id": rep.id}


@app.get("/company-reps/pending")
def list_pending_reps(staff=Depends(require_staff), store: EntityStore = Depends(get_db)):
    reps = lifecycle.pending_company_reps(store)
    return [serialize_user(store, r) for r in reps]


@app.patch("/company-reps/{rep_id}")
def decide_company_rep(
    rep_id: str,
    payload: Decision,
    staff=Depends(require_staff),
    store: EntityStore = Depends(get_db),
):
    if store.get_user(rep_id, Role.COMPANY_REP) is None:
        raise HTTPException(status_code=404, detail="Company representative not found")
    ensure(lifecycle.approve_company_rep(store, staff.id, rep_id, payload.approve), "Decision rejected")
    return serialize_user(store, store.get_user(rep_id))


# Internships
@app.get("/internships")
def list_internships(
    user=Depends(current_user),
    store: EntityStore = Depends(get_db),
    today: date = Depends(get_today),
):
    if isinstance(user, Student):
        items = eligibility.visible_internships_for(store, user, today)
    elif isinstance(user, CompanyRep):
        items = eligibility.filter_internships(store.internships_for_rep(user.id))
    else:
        items = eligibility.filter_internships(store.internships())
    return [serialize_internship(store, i) for i in items]


@app.get("/internships/filter")
def filter_internships(user=Depends(current_user), store: EntityStore = Depends(get_db)):
    criteria = eligibility.criteria_for(user)
    return [
        serialize_internship(store, i)
        for i in eligibility.filter_internships(store.internships(), criteria)
    ]


@app.get("/internships/pending")
def list_pending_internships(staff=Depends(require_staff), store: EntityStore = Depends(get_db)):
    pending = eligibility.filter_internships(store.internships(), FilterPreferences(status="Pending"))
    return [serialize_internship(store, i) for i in pending]


@app.post("/internships", response_model=IdModel)
def create_internship(
    payload: InternshipCreate, rep=Depends(require_rep), store: EntityStore = Depends(get_db)
):
    internship = lifecycle.create_internship(store, rep.id, **payload.model_dump())
    ensure(internship is not None, "Cannot create internship: account not approved or limit reached")
    return {"id": internship.id}


@app.get("/internships/{internship_id}")
def read_internship(
    internship: Internship = Depends(internship_or_404), store: EntityStore = Depends(get_db)
):
    return serialize_internship(store, internship)


@app.patch("/internships/{internship_id}")
def edit_internship(
    payload: InternshipUpdate,
    internship: Internship = Depends(internship_or_404),
    rep=Depends(require_rep),
    store: EntityStore = Depends(get_db),
):
    changes = payload.model_dump(exclude_unset=True)
    ensure(
        lifecycle.edit_internship(store, rep.id, internship.id, **changes),
        "Only the owner may edit, and only while Pending",
    )
    return serialize_internship(store, internship)


@app.post("/internships/{internship_id}/decision")
def decide_internship(
    payload: Decision,
    internship: Internship = Depends(internship_or_404),
    staff=Depends(require_staff),
    store: EntityStore = Depends(get_db),
):
    ensure(
        lifecycle.decide_internship(store, staff.id, internship.id, payload.approve),
        "Internship is not Pending",
    )
    return serialize_internship(store, internship)


@app.post("/internships/{internship_id}/visibility")
def toggle_visibility(
    internship: Internship = Depends(internship_or_404),
    rep=Depends(require_rep),
    store: EntityStore = Depends(get_db),
):
    ensure(lifecycle.toggle_visibility(store, rep.id, internship.id), "Visibility not changed")
    return serialize_internship(store, internship)


@app.delete("/internships/{internship_id}")
def delete_internship(
    internship: Internship = Depends(internship_or_404),
    rep=Depends(require_rep),
    store: EntityStore = Depends(get_db),
):
    ensure(lifecycle.delete_internship(store, rep.id, internship.id), "Internship not deleted")
    return {"id": internship.id}


# Applications
@app.post("/internships/{internship_id}/applications", response_model=IdModel)
def apply_to_internship(
    internship: Internship = Depends(internship_or_404),
    student=Depends(require_student),
    store: EntityStore = Depends(get_db),
    today: date = Depends(get_today),
):
    application = lifecycle.apply(store, student.id, internship.id, today)
    ensure(application is not None, "Cannot apply to this internship")
    return {"id": application.id}


@app.get("/internships/{internship_id}/applications")
def list_internship_applications(
    internship: Internship = Depends(internship_or_404),
    user=Depends(current_user),
    store: EntityStore = Depends(get_db),
):
    allowed = isinstance(user, Staff) or (
        isinstance(user, CompanyRep) and internship.company_rep_id == user.id
    )
    if not allowed:
        raise HTTPException(status_code=403, detail="Not your internship")
    return [serialize_application(store, a) for a in store.applications_for_internship(internship.id)]


@app.get("/applications")
def list_applications(user=Depends(current_user), store: EntityStore = Depends(get_db)):
    if isinstance(user, Student):
        items: List[Application] = store.applications_for_student(user.id)
    elif isinstance(user, Staff):
        items = store.applications()
    else:
        raise HTTPException(status_code=403, detail="Student or Staff access required")
    return [serialize_application(store, a) for a in items]


@app.get("/applications/withdrawals")
def list_withdrawal_requests(staff=Depends(require_staff), store: EntityStore = Depends(get_db)):
    return [serialize_application(store, a) for a in lifecycle.withdrawal_requests(store)]


@app.patch("/applications/{application_id}/decision")
def decide_application(
    payload: Decision,
    application: Application = Depends(application_or_404),
    rep=Depends(require_rep),
    store: EntityStore = Depends(get_db),
):
    ensure(
        lifecycle.decide_application(store, rep.id, application.id, payload.approve),
        "Only Pending applications to your internships can be decided",
    )
    return serialize_application(store, application)


@app.post("/applications/{application_id}/accept")
def accept_placement(
    application: Application = Depends(application_or_404),
    student=Depends(require_student),
    store: EntityStore = Depends(get_db),
):
    ensure(lifecycle.accept_placement(store, student.id, application.id), "Placement not accepted")
    return serialize_application(store, application)


@app.post("/applications/{application_id}/withdrawal")
def request_withdrawal(
    application: Application = Depends(application_or_404),
    student=Depends(require_student),
    store: EntityStore = Depends(get_db),
):
    ensure(
        lifecycle.request_withdrawal(store, student.id, application.id),
        "Withdrawal can only be requested on your Pending or Successful applications",
    )
    return serialize_application(store, application)


@app.patch("/applications/{application_id}/withdrawal")
def decide_withdrawal(
    payload: Decision,
    application: Application = Depends(application_or_404),
    staff=Depends(require_staff),
    store: EntityStore = Depends(get_db),
):
    ensure(
        lifecycle.decide_withdrawal(store, staff.id, application.id, payload.approve),
        "No withdrawal requested",
    )
    return serialize_application(store, application)


# Reports
@app.get("/reports/companies")
def read_company_summary(staff=Depends(require_staff), store: EntityStore = Depends(get_db)):
    return company_summary(store)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
