from __future__ import annotations

import base64
import json
import os
from datetime import datetime, timezone

import requests

API_BASE = os.getenv("API_BASE", "http://127.0.0.1:8000")
TIMEOUT = 10



# JWT helpers (solo per UI, senza verifica firma)

def _b64url_decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def jwt_payload(token: str) -> dict:
    try:
        parts = token.split(".")
        if len(parts) != 3:
            return {}
        payload = json.loads(_b64url_decode(parts[1]).decode("utf-8"))
        return payload if isinstance(payload, dict) else {}
    except (ValueError, UnicodeDecodeError):
        return {}


def jwt_is_expired(token: str) -> bool:
    p = jwt_payload(token)
    try:
        exp_int = int(p.get("exp"))
    except (TypeError, ValueError):
        return False

    now = int(datetime.now(tz=timezone.utc).timestamp())
    return now >= (exp_int - 5)


def jwt_username(token: str) -> str:
    p = jwt_payload(token)
    return str(p.get("sub") or "utente")



# HTTP client (con JWT)

class ApiError(Exception):
    """Errore applicativo restituito dall'API (4xx/5xx con campo 'detail')."""

    def __init__(self, status_code: int, detail: str) -> None:
        super().__init__(f"{status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


def _headers(token: str | None) -> dict:
    headers = {}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


def _handle(r: requests.Response) -> dict | list:
    if r.status_code == 401:
        raise PermissionError("401 Unauthorized (token non valido/scaduto oppure backend riavviato).")

    if r.status_code >= 400:
        try:
            detail = r.json().get("detail")
        except ValueError:
            detail = None
        if isinstance(detail, str):
            raise ApiError(r.status_code, detail)

    r.raise_for_status()
    return r.json()


def api_get(path: str, token: str | None = None, params: dict | None = None) -> dict | list:
    r = requests.get(f"{API_BASE}{path}", headers=_headers(token), params=params, timeout=TIMEOUT)
    return _handle(r)


def api_post(path: str, payload: dict, token: str | None = None) -> dict:
    r = requests.post(f"{API_BASE}{path}", headers=_headers(token), json=payload, timeout=TIMEOUT)
    return _handle(r)


def api_put(path: str, payload: dict, token: str | None = None) -> dict:
    r = requests.put(f"{API_BASE}{path}", headers=_headers(token), json=payload, timeout=TIMEOUT)
    return _handle(r)


def api_login(username: str, password: str) -> str:
    # OAuth2PasswordRequestForm => x-www-form-urlencoded
    r = requests.post(
        f"{API_BASE}/api/auth/login",
        data={"username": username, "password": password},
        timeout=TIMEOUT,
    )
    r.raise_for_status()
    return r.json()["access_token"]
