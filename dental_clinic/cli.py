from __future__ import annotations

import argparse
import datetime as dt
import sys
from pathlib import Path
from typing import Any

import requests

from .config import API_BASE, HTTP_TIMEOUT


# =========================
# Helpers HTTP
# =========================
def api_get(path: str, params: dict | None = None) -> Any:
    r = requests.get(f"{API_BASE}{path}", params=params, timeout=HTTP_TIMEOUT)
    r.raise_for_status()
    return r.json()


def api_get_text(path: str) -> str:
    r = requests.get(f"{API_BASE}{path}", timeout=HTTP_TIMEOUT)
    r.raise_for_status()
    return r.text


def api_post(path: str, payload: dict | None = None) -> Any:
    r = requests.post(f"{API_BASE}{path}", json=payload or {}, timeout=HTTP_TIMEOUT)
    r.raise_for_status()
    return r.json()


def _error_detail(e: requests.HTTPError) -> str:
    if e.response is None:
        return str(e)
    try:
        body = e.response.json()
    except ValueError:
        return str(e)
    detail = body.get("detail") if isinstance(body, dict) else None
    return str(detail or e)


# =========================
# Commandes (accueil du cabinet)
# =========================
def cmd_patients(args: argparse.Namespace) -> None:
    for p in api_get("/api/patients"):
        print(f"{p['id']} | {p['lastName']} {p['firstName']} | CIN {p['cin']} | {p.get('phone') or '-'}")


def cmd_add_patient(args: argparse.Namespace) -> None:
    payload = {
        "firstName": args.first_name,
        "lastName": args.last_name,
        "cin": args.cin,
        "dateOfBirth": args.born.isoformat(),
        "phone": args.phone,
        "email": args.email,
    }
    p = api_post("/api/patients", payload)
    print(f"Patient créé: {p['id']}")


def _print_entry(e: dict) -> None:
    flags = "".join(["[URGENT] " if e["isUrgent"] else "", "[passager] " if e["isPassenger"] else ""])
    print(f"  {e['time'][:5]} | RDV {e['appointmentId']} | {flags}{e['patientName']} | {e.get('reason') or '-'}")


def cmd_waiting_room(args: argparse.Namespace) -> None:
    """
    Affichage salle d'attente:
    - en consultation
    - en attente (urgences d'abord)
    """
    params = {"day": args.day} if args.day else None
    room = api_get("/api/waiting-room", params=params)

    print(f"Salle d'attente du {room['day']}")
    print("En consultation:")
    for e in room["inConsultation"]:
        _print_entry(e)
    if not room["inConsultation"]:
        print("  (personne)")

    print("En attente:")
    for e in room["waiting"]:
        _print_entry(e)
    if not room["waiting"]:
        print("  (personne)")


def cmd_call(args: argparse.Namespace) -> None:
    a = api_post(f"/api/appointments/{args.appointment_id}/call")
    print(f"Rendez-vous {a['id']}: patient appelé ({a['status']}).")


def cmd_finish(args: argparse.Namespace) -> None:
    a = api_post(f"/api/appointments/{args.appointment_id}/finish")
    print(f"Rendez-vous {a['id']}: consultation terminée ({a['status']}).")


def cmd_low_stock(args: argparse.Namespace) -> None:
    meds = api_get("/api/medications/low-stock")
    if not meds:
        print("Aucun médicament en stock bas.")
        return
    for m in meds:
        print(f"{m['id']} | {m['name']} | {m['currentStock']} {m['unit']} (minimum {m['minimumStock']})")


def cmd_print_document(args: argparse.Namespace) -> None:
    document = api_get(f"/api/documents/{args.document_id}")
    html_out = api_get_text(f"/api/documents/{args.document_id}/render")

    output = Path(args.output or f"{document['number']}.html")
    output.write_text(html_out, encoding="utf-8")
    print(f"Document {document['number']} écrit dans {output}")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="dental-clinic-cli", description="CLI Cabinet Dentaire (accueil)")
    sub = p.add_subparsers(required=True)

    p_pat = sub.add_parser("patients", help="Liste des patients")
    p_pat.set_defaults(func=cmd_patients)

    p_addp = sub.add_parser("add-patient", help="Crée un patient")
    p_addp.add_argument("--first-name", required=True)
    p_addp.add_argument("--last-name", required=True)
    p_addp.add_argument("--cin", required=True)
    p_addp.add_argument("--born", required=True, type=dt.date.fromisoformat, help="date ISO ex: 1985-04-12")
    p_addp.add_argument("--phone", default=None)
    p_addp.add_argument("--email", default=None)
    p_addp.set_defaults(func=cmd_add_patient)

    p_wait = sub.add_parser("waiting-room", help="Salle d'attente du jour")
    p_wait.add_argument("--day", default=None, help="date ISO, aujourd'hui par défaut")
    p_wait.set_defaults(func=cmd_waiting_room)

    p_call = sub.add_parser("call", help="Appelle le patient d'un rendez-vous")
    p_call.add_argument("appointment_id", type=int)
    p_call.set_defaults(func=cmd_call)

    p_fin = sub.add_parser("finish", help="Termine la consultation")
    p_fin.add_argument("appointment_id", type=int)
    p_fin.set_defaults(func=cmd_finish)

    p_low = sub.add_parser("low-stock", help="Médicaments sous le seuil minimum")
    p_low.set_defaults(func=cmd_low_stock)

    p_doc = sub.add_parser("print-document", help="Écrit le HTML d'un document dans un fichier")
    p_doc.add_argument("document_id", type=int)
    p_doc.add_argument("--output", default=None, help="fichier de sortie (NUMERO.html par défaut)")
    p_doc.set_defaults(func=cmd_print_document)

    return p


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        args.func(args)
    except requests.HTTPError as e:
        print(f"Erreur API: {_error_detail(e)}", file=sys.stderr)
        raise SystemExit(1)
    except requests.ConnectionError:
        print(f"API injoignable: {API_BASE}", file=sys.stderr)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
