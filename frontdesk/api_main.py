from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import Any, AsyncIterator

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from pydantic import BaseModel, ConfigDict

from frontdesk import clock
from frontdesk.auth_security import create_access_token, get_claims
from frontdesk.auth_service import CredentialVerifier, Principal, authenticate, get_verifier
from frontdesk.errors import FrontDeskError
from frontdesk.logging_setup import setup_logging
from frontdesk.models import VisitStatus
from frontdesk.services import (
    complete_visit,
    create_visit,
    get_dashboard_stats,
    get_patient,
    get_visit,
    init_db,
    list_patient_visits,
    list_patients,
    list_visits,
    register_patient,
)
from frontdesk.tokens import current_token

# OAuth2 Bearer (Authorization: Bearer <token>)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


# Startup: logging e tabelle (idempotente)

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    setup_logging()
    init_db()
    yield


app = FastAPI(title="Clinic Front Desk API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(FrontDeskError)
async def frontdesk_error_handler(request: Request, exc: FrontDeskError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})



# Schemi Auth

class UserOut(BaseModel):
    username: str
    role: str


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut



# Schemi Domain

class PatientCreateIn(BaseModel):
    name: str
    date_of_birth: str
    phone: str
    email: str | None = None
    address: str
    medical_history: str


class PatientOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    date_of_birth: str
    phone: str
    email: str | None = None
    address: str
    medical_history: str
    created_at: datetime


class PatientRowOut(PatientOut):
    # ultima visita del giorno (tutti None se il paziente non ne ha)
    visit_id: int | None = None
    token_number: int | None = None
    reason_for_visit: str | None = None
    status: VisitStatus | None = None
    consultation_fee: float | None = None
    issue_time: datetime | None = None
    completion_time: datetime | None = None
    visit_date: date | None = None


class VisitCreateIn(BaseModel):
    patient_id: str
    reason_for_visit: str


class VisitCompleteIn(BaseModel):
    consultation_fee: float


class VisitOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    patient_id: str
    token_number: int
    reason_for_visit: str
    status: VisitStatus
    consultation_fee: float | None = None
    issue_time: datetime
    completion_time: datetime | None = None
    visit_date: date


class VisitCompleteOut(BaseModel):
    ok: bool
    message: str
    visit: VisitOut


class DashboardStatsOut(BaseModel):
    total_patients_today: int
    pending_patients: int
    completed_today: int


class TokenCounterOut(BaseModel):
    day: date
    last_token: int



# Dipendenze auth

def get_current_user(token: str = Depends(oauth2_scheme)) -> Principal:
    # protezione extra: elimina spazi / virgolette accidentali
    token = token.strip().strip('"').strip("'")

    claims = get_claims(token)
    if not claims:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token non valido",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return Principal(username=claims["sub"], role=claims.get("role", "admin"))



# PUBLIC endpoints

@app.get("/api/health")
def health() -> dict[str, Any]:
    return {"status": "OK", "message": "Clinic Front Desk API attiva"}


@app.post("/api/auth/login", response_model=TokenOut)
def login(
    form: OAuth2PasswordRequestForm = Depends(),
    verifier: CredentialVerifier = Depends(get_verifier),
) -> TokenOut:
    principal = authenticate(verifier, form.username, form.password)
    if principal is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Credenziali non valide")

    token = create_access_token(subject=principal.username, extra={"role": principal.role})
    return TokenOut(access_token=token, user=UserOut(username=principal.username, role=principal.role))


# PROTECTED endpoints (JWT)

@app.get("/api/me", response_model=UserOut)
def me(user: Principal = Depends(get_current_user)) -> UserOut:
    return UserOut(username=user.username, role=user.role)


@app.get("/api/dashboard/stats", response_model=DashboardStatsOut)
def api_dashboard_stats(
    day: date | None = Query(None),
    user: Principal = Depends(get_current_user),
) -> dict[str, int]:
    return get_dashboard_stats(day)


@app.get("/api/patients", response_model=list[PatientRowOut])
def api_patients(
    search: str | None = Query(None),
    user: Principal = Depends(get_current_user),
) -> list[dict]:
    return list_patients(search=search)


@app.post("/api/patients", response_model=PatientOut, status_code=status.HTTP_201_CREATED)
def api_register_patient(payload: PatientCreateIn, user: Principal = Depends(get_current_user)):
    return register_patient(
        name=payload.name,
        date_of_birth=payload.date_of_birth,
        phone=payload.phone,
        address=payload.address,
        medical_history=payload.medical_history,
        email=payload.email,
    )


@app.get("/api/patients/{patient_id}", response_model=PatientOut)
def api_patient(patient_id: str, user: Principal = Depends(get_current_user)):
    return get_patient(patient_id)


@app.get("/api/patients/{patient_id}/visits", response_model=list[VisitOut])
def api_patient_visits(patient_id: str, user: Principal = Depends(get_current_user)):
    return list_patient_visits(patient_id)


@app.post("/api/visits", response_model=VisitOut, status_code=status.HTTP_201_CREATED)
def api_create_visit(payload: VisitCreateIn, user: Principal = Depends(get_current_user)):
    return create_visit(payload.patient_id, payload.reason_for_visit)


@app.get("/api/visits", response_model=list[VisitOut])
def api_visits(
    day: date | None = Query(None),
    visit_status: VisitStatus | None = Query(None, alias="status"),
    user: Principal = Depends(get_current_user),
):
    return list_visits(day=day, status=visit_status)


@app.get("/api/visits/{visit_id}", response_model=VisitOut)
def api_visit(visit_id: int, user: Principal = Depends(get_current_user)):
    return get_visit(visit_id)


@app.put("/api/visits/{visit_id}/complete", response_model=VisitCompleteOut)
def api_complete_visit(
    visit_id: int,
    payload: VisitCompleteIn,
    user: Principal = Depends(get_current_user),
) -> VisitCompleteOut:
    v = complete_visit(visit_id, payload.consultation_fee)
    return VisitCompleteOut(ok=True, message="Visita completata.", visit=VisitOut.model_validate(v))


@app.get("/api/tokens", response_model=TokenCounterOut)
def api_token_counter(
    day: date | None = Query(None),
    user: Principal = Depends(get_current_user),
) -> TokenCounterOut:
    day = day or clock.today()
    return TokenCounterOut(day=day, last_token=current_token(day))
