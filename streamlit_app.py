from __future__ import annotations

from datetime import date

import requests
import streamlit as st

from frontdesk.client import (
    API_BASE,
    ApiError,
    api_get,
    api_login,
    api_post,
    api_put,
    jwt_is_expired,
    jwt_username,
)

st.set_page_config(page_title="Front Desk Ambulatorio", layout="wide")


def is_logged_in() -> bool:
    token = st.session_state.get("token")
    return bool(token) and isinstance(token, str) and len(token) > 0


def do_logout() -> None:
    st.session_state.pop("token", None)
    st.session_state.pop("auth_error", None)
    st.rerun()


def require_auth() -> str | None:
    token = st.session_state.get("token")
    if not token:
        st.warning("Sezione riservata. Effettua il login dalla sidebar.")
        return None

    if jwt_is_expired(token):
        st.error("Sessione scaduta. Effettua Logout dalla sidebar e rifai login.")
        return None

    return token


def session_lost(e: PermissionError) -> None:
    st.session_state["auth_error"] = str(e)
    st.error("Sessione non valida. Premi Logout e rifai login.")



# Sidebar login

with st.sidebar:
    st.header("Accesso")

    token = st.session_state.get("token")

    if not is_logged_in():
        u = st.text_input("Username", key="login_user")
        p = st.text_input("Password", type="password", key="login_pass")

        if st.button("Login", key="login_btn"):
            try:
                new_token = api_login(u.strip().lower(), p)
                st.session_state["token"] = new_token
                st.session_state.pop("auth_error", None)
                st.success("Login effettuato.")
                st.rerun()
            except requests.HTTPError:
                st.error("Credenziali non valide.")
            except requests.RequestException as e:
                st.error(f"API non raggiungibile: {e}")
    else:
        # Mostro info dal token senza chiamare /api/me (evita logout su rerun)
        user = jwt_username(token)
        st.write(f"Utente: **{user}**")

        if st.session_state.get("auth_error"):
            st.error(st.session_state["auth_error"])

        if st.button("Logout", key="logout_btn"):
            do_logout()

    st.divider()
    st.caption(f"API: {API_BASE}")



# UI

st.title("Front Desk Ambulatorio")

token = require_auth()
if not token:
    st.stop()

tab1, tab2, tab3 = st.tabs(["Dashboard", "Pazienti", "Coda visite"])



# TAB 1 - Dashboard

with tab1:
    st.subheader(f"Oggi, {date.today().strftime('%d/%m/%Y')}")

    try:
        stats = api_get("/api/dashboard/stats", token=token)
        counter = api_get("/api/tokens", token=token)

        c1, c2, c3, c4 = st.columns(4)
        c1.metric("Visite oggi", stats["total_patients_today"])
        c2.metric("In attesa", stats["pending_patients"])
        c3.metric("Completate", stats["completed_today"])
        c4.metric("Ultimo token", counter["last_token"])
    except PermissionError as e:
        session_lost(e)
    except (ApiError, requests.RequestException) as e:
        st.error(f"Errore dashboard: {e}")



# TAB 2 - Pazienti

with tab2:
    with st.expander("Registra nuovo paziente"):
        c1, c2 = st.columns(2)
        name = c1.text_input("Nome e cognome", key="paz_name")
        dob = c2.date_input("Data di nascita", value=None, min_value=date(1900, 1, 1), key="paz_dob")
        phone = c1.text_input("Telefono", key="paz_phone")
        email = c2.text_input("Email (opzionale)", key="paz_email")
        address = st.text_area("Indirizzo", height=68, key="paz_address")
        history = st.text_area("Anamnesi", height=100, key="paz_history")
        reason = st.text_input("Motivo della visita (se compilato emette subito il token)", key="paz_reason")

        if st.button("Registra paziente", key="paz_submit"):
            payload = {
                "name": name.strip(),
                "date_of_birth": dob.isoformat() if dob else "",
                "phone": phone.strip(),
                "email": email.strip() or None,
                "address": address.strip(),
                "medical_history": history.strip(),
            }
            try:
                res = api_post("/api/patients", payload, token=token)
                st.success(f"Paziente registrato: {res['id']}")
                if reason.strip():
                    visit = api_post(
                        "/api/visits",
                        {"patient_id": res["id"], "reason_for_visit": reason.strip()},
                        token=token,
                    )
                    st.success(f"Token #{visit['token_number']} emesso per {res['name']}")
            except PermissionError as e:
                session_lost(e)
            except (ApiError, requests.RequestException) as e:
                st.error(str(e))

    st.divider()
    search = st.text_input("Cerca per nome, id o telefono", key="paz_search")

    try:
        pazienti = api_get("/api/patients", token=token, params={"search": search} if search.strip() else None)
    except PermissionError as e:
        session_lost(e)
        pazienti = []
    except (ApiError, requests.RequestException) as e:
        st.error(f"Errore caricamento pazienti: {e}")
        pazienti = []

    if not pazienti:
        st.info("Nessun paziente trovato.")

    for p in pazienti:
        with st.container(border=True):
            left, right = st.columns([3, 2])
            left.write(f"**{p['name']}** ({p['id']}) | {p['phone']} | {p.get('email') or '-'}")
            left.caption(f"Nato il {p['date_of_birth']} | {p['address']} | Anamnesi: {p['medical_history']}")

            if p.get("token_number"):
                right.write(f"Token **#{p['token_number']}** | {p['status']} | {p['reason_for_visit']}")
            else:
                motivo = right.text_input("Motivo", value="Consulting", key=f"reason_{p['id']}")
                if right.button("Emetti token", key=f"issue_{p['id']}"):
                    try:
                        visit = api_post(
                            "/api/visits",
                            {"patient_id": p["id"], "reason_for_visit": motivo},
                            token=token,
                        )
                        st.success(f"Token #{visit['token_number']} emesso per {p['name']}")
                        st.rerun()
                    except PermissionError as e:
                        session_lost(e)
                    except (ApiError, requests.RequestException) as e:
                        st.error(str(e))



# TAB 3 - Coda visite del giorno

with tab3:
    giorno = st.date_input("Giorno", value=date.today(), key="coda_giorno")
    in_attesa, completate = st.tabs(["In attesa", "Completate"])

    try:
        pending = api_get("/api/visits", token=token, params={"day": giorno.isoformat(), "status": "pending"})
        done = api_get("/api/visits", token=token, params={"day": giorno.isoformat(), "status": "completed"})
    except PermissionError as e:
        session_lost(e)
        pending, done = [], []
    except (ApiError, requests.RequestException) as e:
        st.error(f"Errore coda: {e}")
        pending, done = [], []

    with in_attesa:
        if not pending:
            st.info("Nessuna visita in attesa.")
        for v in pending:
            c1, c2, c3 = st.columns([3, 1, 1])
            c1.write(f"**#{v['token_number']}** | {v['patient_id']} | {v['reason_for_visit']} | emesso {v['issue_time'][11:16]}")
            fee = c2.number_input("Tariffa", min_value=0.0, step=5.0, key=f"fee_{v['id']}")
            if c3.button("Completa", key=f"done_{v['id']}"):
                try:
                    api_put(f"/api/visits/{v['id']}/complete", {"consultation_fee": fee}, token=token)
                    st.rerun()
                except PermissionError as e:
                    session_lost(e)
                except (ApiError, requests.RequestException) as e:
                    st.error(str(e))

    with completate:
        if not done:
            st.info("Nessuna visita completata.")
        for v in done:
            st.write(
                f"- **#{v['token_number']}** | {v['patient_id']} | {v['reason_for_visit']} | "
                f"completata {v['completion_time'][11:16]} | Tariffa: {v['consultation_fee']:.2f}"
            )
