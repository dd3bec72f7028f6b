from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime

import pytest
from sqlalchemy import func, select, text

from frontdesk import db
from frontdesk.errors import ConflictError, NotFoundError, StorageError, ValidationError
from frontdesk.models import Visit, VisitStatus
from frontdesk.services import (
    complete_visit,
    create_visit,
    get_dashboard_stats,
    get_visit,
    list_completed,
    list_patient_visits,
    list_pending,
    list_visits,
    list_visits_for_date,
    register_patient,
)
from frontdesk.tokens import current_token

TODAY = date(2026, 3, 10)


@pytest.fixture
def patient(jane, fake_clock):
    return register_patient(**jane)


def _visit_count() -> int:
    with db.db_session() as s:
        return s.scalar(select(func.count()).select_from(Visit))


def test_create_visit_is_pending_with_first_token(patient):
    v = create_visit(patient.id, "Checkup")

    assert v.token_number == 1
    assert v.status is VisitStatus.PENDING
    assert v.visit_date == TODAY
    assert v.issue_time == datetime(2026, 3, 10, 9, 30)
    assert v.completion_time is None
    assert v.consultation_fee is None
    assert current_token(TODAY) == 1


def test_visit_ids_are_monotonic(patient):
    ids = [create_visit(patient.id, "Checkup").id for _ in range(3)]
    assert ids == sorted(ids)
    assert len(set(ids)) == 3


def test_unknown_patient_consumes_no_token(patient):
    with pytest.raises(NotFoundError):
        create_visit("P999", "Checkup")

    assert current_token(TODAY) == 0
    assert _visit_count() == 0


def test_blank_reason_is_rejected(patient):
    with pytest.raises(ValidationError):
        create_visit(patient.id, "   ")
    assert current_token(TODAY) == 0


def test_failed_insert_rolls_back_the_token(patient):
    with db.get_engine().begin() as conn:
        conn.execute(text("DROP TABLE visits"))

    with pytest.raises(StorageError):
        create_visit(patient.id, "Checkup")

    assert current_token(TODAY) == 0


def test_token_failure_creates_no_visit(patient):
    with db.get_engine().begin() as conn:
        conn.execute(text("DROP TABLE token_counters"))

    with pytest.raises(StorageError):
        create_visit(patient.id, "Checkup")

    assert _visit_count() == 0


def test_tokens_restart_after_midnight(patient, fake_clock):
    create_visit(patient.id, "Checkup")
    create_visit(patient.id, "Checkup")
    fake_clock.current = datetime(2026, 3, 11, 0, 0, 1)

    v = create_visit(patient.id, "Checkup")
    assert v.token_number == 1
    assert v.visit_date == date(2026, 3, 11)


def test_concurrent_visits_get_unique_tokens(patient):
    n = 20
    with ThreadPoolExecutor(max_workers=6) as pool:
        visits = list(pool.map(lambda _: create_visit(patient.id, "Checkup"), range(n)))

    assert sorted(v.token_number for v in visits) == list(range(1, n + 1))
    assert current_token(TODAY) == n


def test_complete_visit(patient, fake_clock):
    v = create_visit(patient.id, "Checkup")
    fake_clock.advance(minutes=20)

    done = complete_visit(v.id, 150)

    assert done.status is VisitStatus.COMPLETED
    assert done.consultation_fee == 150
    assert done.completion_time == datetime(2026, 3, 10, 9, 50)
    assert get_visit(v.id).status is VisitStatus.COMPLETED


def test_zero_fee_is_accepted(patient):
    v = create_visit(patient.id, "Checkup")
    assert complete_visit(v.id, 0).consultation_fee == 0


@pytest.mark.parametrize("fee", [-1, -0.01, float("nan"), float("inf"), "150", None, True])
def test_invalid_fee_is_rejected(patient, fee):
    v = create_visit(patient.id, "Checkup")

    with pytest.raises(ValidationError):
        complete_visit(v.id, fee)

    after = get_visit(v.id)
    assert after.status is VisitStatus.PENDING
    assert after.consultation_fee is None
    assert after.completion_time is None


def test_complete_unknown_visit(patient):
    v = create_visit(patient.id, "Checkup")

    with pytest.raises(NotFoundError):
        complete_visit(v.id + 100, 150)

    assert get_visit(v.id).status is VisitStatus.PENDING


def test_completing_twice_is_a_conflict(patient, fake_clock):
    v = create_visit(patient.id, "Checkup")
    complete_visit(v.id, 150)
    fake_clock.advance(hours=1)

    with pytest.raises(ConflictError):
        complete_visit(v.id, 999)

    after = get_visit(v.id)
    assert after.consultation_fee == 150
    assert after.completion_time == datetime(2026, 3, 10, 9, 30)


def test_get_unknown_visit():
    with pytest.raises(NotFoundError):
        get_visit(12345)


def test_filtered_views(patient, fake_clock):
    a = create_visit(patient.id, "Checkup")
    b = create_visit(patient.id, "Fever")
    complete_visit(a.id, 100)
    fake_clock.advance(days=1)
    c = create_visit(patient.id, "Follow-up")

    assert [v.id for v in list_visits_for_date(TODAY)] == [a.id, b.id]
    assert [v.id for v in list_pending()] == [b.id, c.id]
    assert [v.id for v in list_pending(TODAY)] == [b.id]
    assert [v.id for v in list_completed()] == [a.id]
    assert [v.id for v in list_visits(day=date(2026, 3, 11))] == [c.id]
    assert [v.id for v in list_visits(status=VisitStatus.COMPLETED, day=date(2026, 3, 11))] == []


def test_patient_visit_history(patient):
    a = create_visit(patient.id, "Checkup")
    b = create_visit(patient.id, "Fever")

    assert [v.id for v in list_patient_visits(patient.id)] == [b.id, a.id]
    with pytest.raises(NotFoundError):
        list_patient_visits("P404")


def test_dashboard_end_to_end(patient):
    assert get_dashboard_stats() == {"total_patients_today": 0, "pending_patients": 0, "completed_today": 0}

    v = create_visit(patient.id, "Checkup")
    assert v.token_number == 1
    assert get_dashboard_stats() == {"total_patients_today": 1, "pending_patients": 1, "completed_today": 0}

    complete_visit(v.id, 150)
    assert get_dashboard_stats() == {"total_patients_today": 1, "pending_patients": 0, "completed_today": 1}


def test_dashboard_counts_only_the_requested_day(patient, fake_clock):
    create_visit(patient.id, "Checkup")
    fake_clock.advance(days=1)
    create_visit(patient.id, "Checkup")
    create_visit(patient.id, "Checkup")

    assert get_dashboard_stats()["total_patients_today"] == 2
    assert get_dashboard_stats(TODAY)["total_patients_today"] == 1
