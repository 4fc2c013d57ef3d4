from __future__ import annotations

import argparse
import logging
import sys
from datetime import date

from ambulatorio.config import LOG_FORMAT, LOG_LEVEL
from ambulatorio.errors import ErroreAmbulatorio
from ambulatorio.finanze import bilancio
from ambulatorio.moduli import CAMPI, StatoModulo, invia, nuovo_modulo, riduci
from ambulatorio.models import StatoPrenotazione
from ambulatorio.prenotazioni import (
    agenda_giornaliera,
    aggiorna_appuntamento,
    aggiorna_consulto,
    crea_appuntamento,
    crea_consulto,
)
from ambulatorio.schemas import AppuntamentoIn, AppuntamentoUpdate, ConsultoUpdate, PazienteIn
from ambulatorio.seed import seed_base
from ambulatorio.services import (
    crea_paziente,
    init_db,
    lista_pazienti,
    lista_specialisti,
    lista_trattamenti,
)


def cmd_init(args: argparse.Namespace) -> None:
    init_db()
    seed_base()
    print("DB inizializzato e seed completato.")


def cmd_list(args: argparse.Namespace) -> None:
    if args.entity == "pazienti":
        for p in lista_pazienti():
            print(f"{p['id']} | {p['cognome']} {p['nome']} | {p['documento']} | {p['email'] or '-'}")
    elif args.entity == "specialisti":
        for m in lista_specialisti():
            print(f"{m['id']} | {m['cognome']} {m['nome']} | {'attiva' if m['attivo'] else 'non attiva'}")
    elif args.entity == "trattamenti":
        for t in lista_trattamenti():
            print(f"{t['id']} | {t['nome']} ({t['prezzo_base']:.2f} EUR)")


def cmd_add_patient(args: argparse.Namespace) -> None:
    p = crea_paziente(
        PazienteIn(
            nome=args.nome,
            cognome=args.cognome,
            documento=args.documento,
            email=args.email,
            telefono=args.telefono,
        )
    )
    print(f"Paziente creato: {p['id']}")


def cmd_book(args: argparse.Namespace) -> int:
    """
    Prenotazione tramite lo stesso modulo usato dal front end:
    ogni opzione aggiorna lo stato del modulo, poi invio con validazione completa.
    """
    stato: StatoModulo = nuovo_modulo(args.variante)
    for campo in CAMPI[args.variante]:
        valore = getattr(args, campo, None)
        if valore is not None:
            stato = riduci(stato, campo, valore)

    esito = invia(stato)
    if isinstance(esito, StatoModulo):
        for campo, errore in esito.errori.items():
            print(f"{campo}: {errore}", file=sys.stderr)
        return 1

    if isinstance(esito, AppuntamentoIn):
        creato = crea_appuntamento(esito)
    else:
        creato = crea_consulto(esito)
    print(f"Prenotazione creata: {creato['id']} ({creato['data']} {creato['ora_inizio']}-{creato['ora_fine']})")
    return 0


def cmd_agenda(args: argparse.Namespace) -> None:
    giorno = date.fromisoformat(args.giorno)
    attivita = agenda_giornaliera(args.specialista_id, giorno)
    if not attivita:
        print("Nessuna attività in agenda.")
        return

    for a in attivita:
        paziente = a["paziente"]
        descrizione = a["trattamento"]["nome"] if a["tipo"] == "appuntamento" else a["motivo"]
        print(
            f"{a['ora_inizio']}-{a['ora_fine']} | {a['tipo']} | {paziente['cognome']} {paziente['nome']} "
            f"| {descrizione} | {a['stato']}"
        )


def cmd_cancel(args: argparse.Namespace) -> None:
    if args.variante == "appuntamento":
        aggiorna_appuntamento(args.id, AppuntamentoUpdate(stato=StatoPrenotazione.ANNULLATO))
    else:
        aggiorna_consulto(args.id, ConsultoUpdate(stato=StatoPrenotazione.ANNULLATO))
    print("Annullato.")


def cmd_balance(args: argparse.Namespace) -> None:
    inizio = date.fromisoformat(args.inizio) if args.inizio else None
    fine = date.fromisoformat(args.fine) if args.fine else None
    b = bilancio(inizio, fine)
    print(f"Incassi consulti     : {b['incassi']['consulti']:.2f}")
    print(f"Incassi appuntamenti : {b['incassi']['appuntamenti']:.2f}")
    print(f"Spese                : {b['spese']:.2f}")
    print(f"Utile                : {b['utile']:.2f}")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="ambulatorio", description="CLI Ambulatorio")
    sub = p.add_subparsers(required=True)

    p_init = sub.add_parser("init", help="Crea DB e carica seed")
    p_init.set_defaults(func=cmd_init)

    p_list = sub.add_parser("list", help="Lista entità")
    p_list.add_argument("entity", choices=["pazienti", "specialisti", "trattamenti"])
    p_list.set_defaults(func=cmd_list)

    p_addp = sub.add_parser("add-patient", help="Crea paziente")
    p_addp.add_argument("--nome", required=True)
    p_addp.add_argument("--cognome", required=True)
    p_addp.add_argument("--documento", required=True)
    p_addp.add_argument("--email", default=None)
    p_addp.add_argument("--telefono", default=None)
    p_addp.set_defaults(func=cmd_add_patient)

    p_book = sub.add_parser("book", help="Prenota appuntamento o consulto")
    p_book.add_argument("variante", choices=["appuntamento", "consulto"])
    p_book.add_argument("--paziente-id", dest="paziente_id")
    p_book.add_argument("--specialista-id", dest="specialista_id")
    p_book.add_argument("--trattamento-id", dest="trattamento_id", help="solo appuntamento")
    p_book.add_argument("--consulto-origine-id", dest="consulto_origine_id", help="solo appuntamento")
    p_book.add_argument("--motivo", help="solo consulto")
    p_book.add_argument("--diagnosi", help="solo consulto")
    p_book.add_argument("--trattamento-consigliato-id", dest="trattamento_consigliato_id", help="solo consulto")
    p_book.add_argument("--data", help="YYYY-MM-DD")
    p_book.add_argument("--ora-inizio", dest="ora_inizio", help="HH:MM")
    p_book.add_argument("--ora-fine", dest="ora_fine", help="HH:MM")
    p_book.add_argument("--prezzo")
    p_book.add_argument("--note")
    p_book.set_defaults(func=cmd_book)

    p_agenda = sub.add_parser("agenda", help="Agenda giornaliera di una specialista")
    p_agenda.add_argument("--specialista-id", required=True)
    p_agenda.add_argument("--giorno", required=True, help="YYYY-MM-DD")
    p_agenda.set_defaults(func=cmd_agenda)

    p_cancel = sub.add_parser("cancel", help="Annulla appuntamento o consulto")
    p_cancel.add_argument("variante", choices=["appuntamento", "consulto"])
    p_cancel.add_argument("--id", required=True)
    p_cancel.set_defaults(func=cmd_cancel)

    p_bal = sub.add_parser("balance", help="Bilancio incassi/spese")
    p_bal.add_argument("--inizio", default=None, help="YYYY-MM-DD")
    p_bal.add_argument("--fine", default=None, help="YYYY-MM-DD")
    p_bal.set_defaults(func=cmd_balance)

    return p


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
    parser = build_parser()
    args = parser.parse_args(argv)
    init_db()  # garantisce tabelle
    try:
        return args.func(args) or 0
    except ErroreAmbulatorio as e:
        print(f"Errore: {e.messaggio}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
