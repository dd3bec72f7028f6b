from __future__ import annotations

import logging
import math
import threading
from datetime import date
from decimal import Decimal
from typing import Any

from sqlalchemy import case, func, or_, select, update

from . import clock
from .db import Base, db_session, get_engine
from .errors import ConflictError, NotFoundError, ValidationError
from .models import Patient, Visit, VisitStatus, format_patient_id
from .tokens import issue_lock, issue_token

log = logging.getLogger(__name__)

# Assegnazione id paziente (conteggio + 1) serializzata nel processo
registry_lock = threading.Lock()


# =========================
# Bootstrap DB
# =========================
def init_db() -> None:
    """Crea le tabelle se non esistono."""
    Base.metadata.create_all(bind=get_engine())


# =========================
# Helper
# =========================
def _required(value: str | None, field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"Il campo '{field}' è obbligatorio.")
    return str(value).strip()


def _validate_fee(fee: Any) -> float:
    if isinstance(fee, bool) or not isinstance(fee, (int, float, Decimal)):
        raise ValidationError("La tariffa deve essere un numero.")
    fee = float(fee)
    if not math.isfinite(fee):
        raise ValidationError("La tariffa deve essere un numero finito.")
    if fee < 0:
        raise ValidationError("La tariffa non può essere negativa.")
    return fee


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


# =========================
# Registro pazienti
# =========================
def register_patient(
    name: str,
    date_of_birth: str,
    phone: str,
    address: str,
    medical_history: str,
    email: str | None = None,
) -> Patient:
    """
    Registra un paziente e gli assegna l'id progressivo (P001, P002, ...)
    calcolato dal numero di pazienti già presenti.
    """
    fields = {
        "name": _required(name, "name"),
        "date_of_birth": _required(date_of_birth, "date_of_birth"),
        "phone": _required(phone, "phone"),
        "address": _required(address, "address"),
        "medical_history": _required(medical_history, "medical_history"),
    }
    try:
        date.fromisoformat(fields["date_of_birth"])
    except ValueError:
        raise ValidationError("date_of_birth deve essere nel formato YYYY-MM-DD.") from None

    email = (email or "").strip() or None

    with registry_lock, db_session() as s:
        ordinal = s.scalar(select(func.count()).select_from(Patient)) + 1
        # salta eventuali id già occupati (es. inseriti a mano)
        while s.get(Patient, format_patient_id(ordinal)) is not None:
            ordinal += 1

        p = Patient(id=format_patient_id(ordinal), email=email, **fields)
        s.add(p)
        s.flush()

    log.info("Paziente registrato: %s", p.id)
    return p


def get_patient(patient_id: str) -> Patient:
    with db_session() as s:
        p = s.get(Patient, patient_id)
        if p is None:
            raise NotFoundError(f"Paziente {patient_id} non trovato.")
        return p


def list_patients(search: str | None = None, day: date | None = None) -> list[dict]:
    """
    Elenco pazienti (più recenti prima) con i dati dell'ultima visita del giorno.
    ``search``: sottostringa, case-insensitive, su nome, id o telefono.
    """
    day = day or clock.today()

    latest = (
        select(Visit.patient_id, func.max(Visit.id).label("visit_id"))
        .where(Visit.visit_date == day)
        .group_by(Visit.patient_id)
        .subquery()
    )

    q = (
        select(Patient, Visit)
        .select_from(Patient)
        .outerjoin(latest, latest.c.patient_id == Patient.id)
        .outerjoin(Visit, Visit.id == latest.c.visit_id)
        .order_by(Patient.created_at.desc(), Patient.id.desc())
    )

    term = (search or "").strip()
    if term:
        pattern = _like_pattern(term)
        q = q.where(
            or_(
                Patient.name.ilike(pattern, escape="\\"),
                Patient.id.ilike(pattern, escape="\\"),
                Patient.phone.ilike(pattern, escape="\\"),
            )
        )

    with db_session() as s:
        rows = s.execute(q).all()
        return [_patient_row(p, v) for p, v in rows]


def _patient_row(p: Patient, v: Visit | None) -> dict:
    return {
        "id": p.id,
        "name": p.name,
        "date_of_birth": p.date_of_birth,
        "phone": p.phone,
        "email": p.email,
        "address": p.address,
        "medical_history": p.medical_history,
        "created_at": p.created_at,
        "visit_id": v.id if v else None,
        "token_number": v.token_number if v else None,
        "reason_for_visit": v.reason_for_visit if v else None,
        "status": v.status.value if v else None,
        "consultation_fee": v.consultation_fee if v else None,
        "issue_time": v.issue_time if v else None,
        "completion_time": v.completion_time if v else None,
        "visit_date": v.visit_date if v else None,
    }


# =========================
# Ciclo di vita visite (use case core)
# =========================
def create_visit(patient_id: str, reason_for_visit: str) -> Visit:
    """
    Use case: accettazione paziente.
    - verifica che il paziente esista (prima di consumare un token)
    - emette il token del giorno
    - registra la visita in stato pending
    Token e visita vengono salvati nella stessa transazione.
    """
    patient_id = _required(patient_id, "patient_id")
    reason = _required(reason_for_visit, "reason_for_visit")

    with issue_lock, db_session() as s:
        if s.get(Patient, patient_id) is None:
            raise NotFoundError(f"Paziente {patient_id} non trovato.")

        issued_at = clock.now()
        day = issued_at.date()
        token = issue_token(s, day)

        v = Visit(
            patient_id=patient_id,
            token_number=token,
            reason_for_visit=reason,
            status=VisitStatus.PENDING,
            issue_time=issued_at,
            visit_date=day,
        )
        s.add(v)
        s.flush()

    log.info("Visita %s creata: paziente %s, token %s del %s", v.id, patient_id, token, day.isoformat())
    return v


def complete_visit(visit_id: int, consultation_fee: float) -> Visit:
    """
    Use case: chiusura visita.
    - solo da pending a completed (una visita completata non si riapre né si ricompleta)
    - registra tariffa e ora di completamento
    """
    fee = _validate_fee(consultation_fee)

    with db_session() as s:
        res = s.execute(
            update(Visit)
            .where(Visit.id == visit_id, Visit.status == VisitStatus.PENDING)
            .values(status=VisitStatus.COMPLETED, consultation_fee=fee, completion_time=clock.now())
            .execution_options(synchronize_session=False)
        )
        v = s.get(Visit, visit_id)
        if v is None:
            raise NotFoundError(f"Visita {visit_id} non trovata.")
        if res.rowcount == 0:
            raise ConflictError(f"La visita {visit_id} è già stata completata.")

    log.info("Visita %s completata (tariffa %.2f)", visit_id, fee)
    return v


def get_visit(visit_id: int) -> Visit:
    with db_session() as s:
        v = s.get(Visit, visit_id)
        if v is None:
            raise NotFoundError(f"Visita {visit_id} non trovata.")
        return v


# =========================
# Query visite
# =========================
def list_visits(day: date | None = None, status: VisitStatus | None = None) -> list[Visit]:
    q = select(Visit)
    if day is not None:
        q = q.where(Visit.visit_date == day)
    if status is not None:
        q = q.where(Visit.status == status)
    q = q.order_by(Visit.visit_date.asc(), Visit.token_number.asc())

    with db_session() as s:
        return list(s.scalars(q))


def list_visits_for_date(day: date) -> list[Visit]:
    return list_visits(day=day)


def list_pending(day: date | None = None) -> list[Visit]:
    return list_visits(day=day, status=VisitStatus.PENDING)


def list_completed(day: date | None = None) -> list[Visit]:
    return list_visits(day=day, status=VisitStatus.COMPLETED)


def list_patient_visits(patient_id: str) -> list[Visit]:
    with db_session() as s:
        if s.get(Patient, patient_id) is None:
            raise NotFoundError(f"Paziente {patient_id} non trovato.")
        q = select(Visit).where(Visit.patient_id == patient_id).order_by(Visit.id.desc())
        return list(s.scalars(q))


# =========================
# Dashboard
# =========================
def get_dashboard_stats(day: date | None = None) -> dict[str, int]:
    """Conteggi del giorno: visite totali, in attesa, completate."""
    day = day or clock.today()

    q = select(
        func.count(Visit.id),
        func.count(case((Visit.status == VisitStatus.PENDING, 1))),
        func.count(case((Visit.status == VisitStatus.COMPLETED, 1))),
    ).where(Visit.visit_date == day)

    with db_session() as s:
        total, pending, completed = s.execute(q).one()

    return {
        "total_patients_today": total,
        "pending_patients": pending,
        "completed_today": completed,
    }
