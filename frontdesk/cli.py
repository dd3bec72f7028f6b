from __future__ import annotations

import argparse
import sys
from datetime import date

from frontdesk.db import get_engine
from frontdesk.errors import FrontDeskError
from frontdesk.logging_setup import setup_logging
from frontdesk.models import VisitStatus
from frontdesk.services import (
    complete_visit,
    create_visit,
    get_dashboard_stats,
    init_db,
    list_patients,
    list_visits,
    register_patient,
)
from frontdesk.tokens import current_token


def _day(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"data non valida: {value!r} (formato YYYY-MM-DD)") from None


def cmd_init(args: argparse.Namespace) -> None:
    init_db()
    print("DB inizializzato.")


def cmd_add_patient(args: argparse.Namespace) -> None:
    p = register_patient(
        name=args.name,
        date_of_birth=args.dob,
        phone=args.phone,
        address=args.address,
        medical_history=args.history,
        email=args.email,
    )
    print(f"Paziente creato: {p.id}")


def cmd_patients(args: argparse.Namespace) -> None:
    rows = list_patients(search=args.search)
    if not rows:
        print("Nessun paziente trovato.")
        return
    for r in rows:
        visita = f"token #{r['token_number']} ({r['status']})" if r["token_number"] else "-"
        print(f"{r['id']} | {r['name']} | {r['phone']} | {visita}")


def cmd_issue(args: argparse.Namespace) -> None:
    v = create_visit(args.patient_id, args.reason)
    print(f"Token #{v.token_number} emesso (visita {v.id}, {v.visit_date.isoformat()}).")


def cmd_complete(args: argparse.Namespace) -> None:
    v = complete_visit(args.visit_id, args.fee)
    print(f"Visita {v.id} completata. Tariffa: {v.consultation_fee:.2f}")


def cmd_visits(args: argparse.Namespace) -> None:
    status = VisitStatus(args.status) if args.status else None
    visits = list_visits(day=args.day, status=status)
    if not visits:
        print("Nessuna visita.")
        return
    for v in visits:
        fee = f"{v.consultation_fee:.2f}" if v.consultation_fee is not None else "-"
        print(
            f"[{v.id}] {v.visit_date.isoformat()} #{v.token_number} | {v.patient_id} | "
            f"{v.status.value} | {v.reason_for_visit} | {fee}"
        )


def cmd_stats(args: argparse.Namespace) -> None:
    stats = get_dashboard_stats(args.day)
    print(f"Visite oggi : {stats['total_patients_today']}")
    print(f"In attesa   : {stats['pending_patients']}")
    print(f"Completate  : {stats['completed_today']}")


def cmd_token(args: argparse.Namespace) -> None:
    print(f"Ultimo token emesso: {current_token(args.day)}")


def cmd_db_info(args: argparse.Namespace) -> None:
    engine = get_engine()
    print("ENGINE URL:", engine.url)
    print("DB FILE   :", engine.url.database)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="frontdesk", description="CLI banco accettazione ambulatorio")
    sub = p.add_subparsers(required=True)

    p_init = sub.add_parser("init", help="Crea le tabelle del DB")
    p_init.set_defaults(func=cmd_init)

    p_addp = sub.add_parser("add-patient", help="Registra paziente")
    p_addp.add_argument("--name", required=True)
    p_addp.add_argument("--dob", required=True, help="Data di nascita YYYY-MM-DD")
    p_addp.add_argument("--phone", required=True)
    p_addp.add_argument("--address", required=True)
    p_addp.add_argument("--history", required=True, help="Anamnesi")
    p_addp.add_argument("--email", default=None)
    p_addp.set_defaults(func=cmd_add_patient)

    p_pat = sub.add_parser("patients", help="Elenco pazienti con la visita di oggi")
    p_pat.add_argument("--search", default=None, help="Filtro su nome, id o telefono")
    p_pat.set_defaults(func=cmd_patients)

    p_issue = sub.add_parser("issue", help="Emette il token del giorno e apre la visita")
    p_issue.add_argument("--patient-id", required=True)
    p_issue.add_argument("--reason", default="Consulting")
    p_issue.set_defaults(func=cmd_issue)

    p_done = sub.add_parser("complete", help="Completa una visita registrando la tariffa")
    p_done.add_argument("--visit-id", type=int, required=True)
    p_done.add_argument("--fee", type=float, required=True)
    p_done.set_defaults(func=cmd_complete)

    p_vis = sub.add_parser("visits", help="Elenco visite")
    p_vis.add_argument("--day", type=_day, default=None)
    p_vis.add_argument("--status", choices=[s.value for s in VisitStatus], default=None)
    p_vis.set_defaults(func=cmd_visits)

    p_stats = sub.add_parser("stats", help="Conteggi della giornata")
    p_stats.add_argument("--day", type=_day, default=None)
    p_stats.set_defaults(func=cmd_stats)

    p_tok = sub.add_parser("token", help="Ultimo token emesso nella giornata")
    p_tok.add_argument("--day", type=_day, default=None)
    p_tok.set_defaults(func=cmd_token)

    p_info = sub.add_parser("db-info", help="Mostra il DB in uso")
    p_info.set_defaults(func=cmd_db_info)

    return p


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging()
    init_db()  # garantisce tabelle
    try:
        args.func(args)
    except FrontDeskError as e:
        print(f"Errore: {e.message}", file=sys.stderr)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
