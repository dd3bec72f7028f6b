from __future__ import annotations

import logging
import threading
from datetime import date

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from . import clock
from .db import db_session
from .models import TokenCounter

log = logging.getLogger(__name__)

# Serializza l'emissione nel processo; tra processi diversi vale l'upsert atomico sul DB.
issue_lock = threading.Lock()

_UPSERT_INSERTS = {
    "sqlite": sqlite_insert,
    "postgresql": pg_insert,
}


def issue_token(s: Session, day: date) -> int:
    """
    Incrementa il contatore di ``day`` dentro la transazione del chiamante e
    ritorna il nuovo valore (il primo token del giorno è 1).

    Il contatore è aggiornato con un'unica istruzione
    INSERT ... ON CONFLICT DO UPDATE ... RETURNING, quindi due chiamanti non
    possono leggere lo stesso ``last_token``. Sui backend senza upsert si usa
    SELECT ... FOR UPDATE.
    """
    dialect = s.get_bind().dialect
    insert = _UPSERT_INSERTS.get(dialect.name)

    if insert is not None and dialect.insert_returning:
        t = TokenCounter.__table__
        stmt = (
            insert(t)
            .values({t.c.date: day, t.c.last_token: 1})
            .on_conflict_do_update(
                index_elements=[t.c.date],
                set_={t.c.last_token: t.c.last_token + 1},
            )
            .returning(t.c.last_token)
        )
        return s.execute(stmt).scalar_one()

    counter = s.execute(
        select(TokenCounter).where(TokenCounter.day == day).with_for_update()
    ).scalar_one_or_none()
    if counter is None:
        counter = TokenCounter(day=day, last_token=0)
        s.add(counter)
    counter.last_token += 1
    s.flush()
    return counter.last_token


def next_token(day: date | None = None) -> int:
    """Emette e rende persistente il prossimo token per ``day`` (default: oggi)."""
    day = day or clock.today()
    with issue_lock, db_session() as s:
        token = issue_token(s, day)
    log.info("Token %s emesso per il %s", token, day.isoformat())
    return token


def current_token(day: date | None = None) -> int:
    """Ultimo token emesso per ``day``; 0 se non ne è stato emesso nessuno."""
    day = day or clock.today()
    with db_session() as s:
        last = s.execute(select(TokenCounter.last_token).where(TokenCounter.day == day)).scalar_one_or_none()
        return last or 0
