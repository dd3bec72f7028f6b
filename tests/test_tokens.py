from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import date

import pytest
from sqlalchemy import text

from frontdesk import db
from frontdesk.errors import StorageError
from frontdesk.tokens import current_token, next_token


def test_first_token_of_the_day_is_one():
    assert next_token(date(2026, 3, 10)) == 1
    assert current_token(date(2026, 3, 10)) == 1


def test_tokens_increase_by_one():
    day = date(2026, 3, 10)
    assert [next_token(day) for _ in range(5)] == [1, 2, 3, 4, 5]
    assert current_token(day) == 5


def test_days_have_independent_sequences():
    d1, d2 = date(2026, 3, 10), date(2026, 3, 11)
    next_token(d1)
    next_token(d1)
    next_token(d1)

    assert next_token(d2) == 1
    assert next_token(d1) == 4
    assert current_token(d1) == 4
    assert current_token(d2) == 1


def test_current_token_is_zero_when_nothing_issued():
    assert current_token(date(2030, 1, 1)) == 0


def test_default_day_follows_the_clock(fake_clock):
    assert next_token() == 1
    fake_clock.advance(hours=15)  # 00:30 del giorno dopo
    assert next_token() == 1
    assert current_token(date(2026, 3, 10)) == 1
    assert current_token(date(2026, 3, 11)) == 1


def test_concurrent_calls_get_distinct_gapless_tokens():
    day = date(2026, 3, 10)
    n = 40

    with ThreadPoolExecutor(max_workers=8) as pool:
        tokens = list(pool.map(lambda _: next_token(day), range(n)))

    assert sorted(tokens) == list(range(1, n + 1))
    assert current_token(day) == n


def test_storage_failure_raises_storage_error_and_issues_nothing():
    with db.get_engine().begin() as conn:
        conn.execute(text("DROP TABLE token_counters"))

    with pytest.raises(StorageError):
        next_token(date(2026, 3, 10))
