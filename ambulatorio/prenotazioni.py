"""
Prenotazioni: appuntamenti (trattamento) e consulti (visita con motivo).

Creazione e modifica passano tutte da qui:
- data "YYYY-MM-DD" + ore "HH:MM" combinate in timestamp locali
- fine successiva all'inizio
- specialista libera (vedi disponibilita.py), verificata nella stessa
  transazione della scrittura e con la riga della specialista bloccata
"""
from __future__ import annotations

import calendar
import logging
from datetime import date, datetime, time
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .db import db_session
from .disponibilita import conflitti, fine_effettiva
from .errors import ErroreConflitto, ErroreNonTrovato, ErroreValidazione
from .models import Appuntamento, Consulto, Paziente, Specialista, StatoPrenotazione, Trattamento
from .schemas import AppuntamentoIn, AppuntamentoUpdate, ConsultoIn, ConsultoUpdate
from .services import trattamento_flat

logger = logging.getLogger(__name__)

MSG_DATE_NON_VALIDE = "Data e ore non valide."
MSG_FINE_NON_SUCCESSIVA = "L'ora di fine deve essere successiva a quella di inizio."
MSG_SPECIALISTA_OCCUPATA = "La specialista ha già un'attività (appuntamento o consulto) in quella fascia oraria."
MSG_CONFLITTO_MODIFICA = "Conflitto di orario con un'altra attività."

# campi che non accettano null in modifica (null inviato = campo ignorato)
_NON_NULLABILI = {"stato", "prezzo", "pagato", "importo_pagato", "motivo", "trattamento_id"}


# =========================
# Date / orari
# =========================
def combina_data_ora(data: str | None, ora: str | None) -> datetime | None:
    """'2024-05-01' + '09:30' -> datetime locale (naive). None se mancante o non leggibile."""
    if not data or not ora:
        return None
    try:
        giorno = datetime.strptime(data.strip(), "%Y-%m-%d").date()
    except ValueError:
        return None

    for formato in ("%H:%M", "%H:%M:%S"):
        try:
            orario = datetime.strptime(ora.strip(), formato).time()
            break
        except ValueError:
            continue
    else:
        return None

    # precisione al minuto
    return datetime.combine(giorno, orario.replace(second=0))


def intervallo(data: str | None, ora_inizio: str | None, ora_fine: str | None) -> tuple[datetime, datetime]:
    inizio = combina_data_ora(data, ora_inizio)
    fine = combina_data_ora(data, ora_fine)
    if not inizio or not fine:
        raise ErroreValidazione(MSG_DATE_NON_VALIDE)
    if fine <= inizio:
        raise ErroreValidazione(MSG_FINE_NON_SUCCESSIVA)
    return inizio, fine


def _periodo(data: str | None, mese: str | None) -> tuple[datetime, datetime] | None:
    """Filtro lista: giorno esatto (priorità) oppure mese intero 'YYYY-MM'."""
    try:
        if data:
            giorno = datetime.strptime(data.strip(), "%Y-%m-%d").date()
            return datetime.combine(giorno, time.min), datetime.combine(giorno, time(23, 59, 59))
        if mese:
            primo = datetime.strptime(mese.strip(), "%Y-%m").date()
            ultimo = primo.replace(day=calendar.monthrange(primo.year, primo.month)[1])
            return datetime.combine(primo, time.min), datetime.combine(ultimo, time(23, 59, 59))
    except ValueError as e:
        raise ErroreValidazione("Filtro data non valido (attesi YYYY-MM-DD o YYYY-MM).") from e
    return None


def _id_o_none(valore: str | None) -> str | None:
    if valore is None:
        return None
    return valore.strip() or None


# =========================
# Serializzazione
# =========================
def _persona(p) -> dict[str, Any] | None:
    if p is None:
        return None
    return {"id": p.id, "nome": p.nome, "cognome": p.cognome}


def _orari(p: Appuntamento | Consulto) -> dict[str, Any]:
    fine = fine_effettiva(p.inizio, p.fine)
    return {
        "inizio": p.inizio.isoformat(),
        "fine": fine.isoformat(),
        "data": p.inizio.date().isoformat(),
        "ora_inizio": p.inizio.strftime("%H:%M"),
        "ora_fine": fine.strftime("%H:%M"),
    }


def appuntamento_flat(a: Appuntamento) -> dict[str, Any]:
    """Dict serializzabile: da costruire dentro la sessione (relazioni lazy)."""
    return {
        "id": a.id,
        "tipo": "appuntamento",
        "paziente_id": a.paziente_id,
        "paziente": _persona(a.paziente),
        "specialista_id": a.specialista_id,
        "specialista": _persona(a.specialista),
        "trattamento_id": a.trattamento_id,
        "trattamento": trattamento_flat(a.trattamento),
        "consulto_origine_id": a.consulto_origine_id,
        **_orari(a),
        "stato": a.stato.value,
        "prezzo": a.prezzo,
        "pagato": a.pagato,
        "importo_pagato": a.importo_pagato,
        "note": a.note,
    }


def consulto_flat(c: Consulto) -> dict[str, Any]:
    return {
        "id": c.id,
        "tipo": "consulto",
        "paziente_id": c.paziente_id,
        "paziente": _persona(c.paziente),
        "specialista_id": c.specialista_id,
        "specialista": _persona(c.specialista),
        "motivo": c.motivo,
        "diagnosi": c.diagnosi,
        "trattamento_consigliato_id": c.trattamento_consigliato_id,
        "trattamento_consigliato": trattamento_flat(c.trattamento_consigliato) if c.trattamento_consigliato else None,
        **_orari(c),
        "stato": c.stato.value,
        "prezzo": c.prezzo,
        "pagato": c.pagato,
        "importo_pagato": c.importo_pagato,
        "note": c.note,
    }


# =========================
# Verifiche comuni
# =========================
def _richiedi(s: Session, modello, chiave, messaggio: str):
    obj = s.get(modello, chiave)
    if obj is None:
        raise ErroreValidazione(messaggio)
    return obj


def _verifica_specialista(
    s: Session,
    specialista_id: str,
    inizio: datetime,
    fine: datetime,
    messaggio: str,
    escludi_id: str | None = None,
) -> None:
    # SELECT ... FOR UPDATE: due prenotazioni concorrenti per la stessa specialista
    # si serializzano qui fino al commit
    if s.get(Specialista, specialista_id, with_for_update=True) is None:
        raise ErroreValidazione("Specialista non trovata.")

    trovati = conflitti(s, specialista_id, inizio, fine, escludi_id=escludi_id)
    if trovati:
        logger.warning(
            "Prenotazione rifiutata: specialista %s occupata %s-%s (conflitti: %s)",
            specialista_id,
            inizio.isoformat(),
            fine.isoformat(),
            ", ".join(p.id for p in trovati),
        )
        raise ErroreConflitto(messaggio)


def _nuovo_intervallo(dati: AppuntamentoUpdate | ConsultoUpdate) -> tuple[datetime, datetime] | None:
    inviati = [
        getattr(dati, campo)
        for campo in ("data", "ora_inizio", "ora_fine")
        if campo in dati.model_fields_set and getattr(dati, campo)
    ]
    if not inviati:
        return None
    if len(inviati) < 3:
        raise ErroreValidazione("Per spostare una prenotazione servono data, ora di inizio e ora di fine.")
    return intervallo(dati.data, dati.ora_inizio, dati.ora_fine)


def _applica_modifica(s: Session, record: Appuntamento | Consulto, dati, campi: tuple[str, ...]) -> None:
    """
    Merge parziale di `dati` su `record`.

    La disponibilità viene ricontrollata (escludendo la prenotazione stessa) quando
    cambia l'orario, la specialista o la prenotazione torna attiva da annullata,
    purché alla fine ci sia una specialista assegnata e lo stato non sia ANNULLATO.
    """
    inviati = dati.model_fields_set
    nuovo = _nuovo_intervallo(dati)

    assegnazione_inviata = "specialista_id" in inviati
    specialista_id = _id_o_none(dati.specialista_id) if assegnazione_inviata else record.specialista_id
    cambio_specialista = assegnazione_inviata and specialista_id != record.specialista_id

    stato = dati.stato if "stato" in inviati and dati.stato is not None else record.stato
    riattivata = record.stato == StatoPrenotazione.ANNULLATO and stato != StatoPrenotazione.ANNULLATO

    inizio, fine = nuovo if nuovo else (record.inizio, fine_effettiva(record.inizio, record.fine))

    if specialista_id and stato != StatoPrenotazione.ANNULLATO and (nuovo or cambio_specialista or riattivata):
        _verifica_specialista(s, specialista_id, inizio, fine, MSG_CONFLITTO_MODIFICA, escludi_id=record.id)
    elif cambio_specialista and specialista_id:
        _richiedi(s, Specialista, specialista_id, "Specialista non trovata.")

    if nuovo:
        record.inizio, record.fine = nuovo
    if assegnazione_inviata:
        record.specialista_id = specialista_id

    for campo in campi:
        if campo not in inviati:
            continue
        valore = getattr(dati, campo)
        if valore is None and campo in _NON_NULLABILI:
            continue
        setattr(record, campo, valore)

    s.flush()
    s.refresh(record)


def _elimina(modello, prenotazione_id: str, messaggio_non_trovato: str) -> None:
    try:
        with db_session() as s:
            p = s.get(modello, prenotazione_id)
            if not p:
                raise ErroreNonTrovato(messaggio_non_trovato)
            s.delete(p)
    except IntegrityError as e:
        raise ErroreConflitto("Impossibile eliminare: la prenotazione è collegata ad altri record.") from e
    logger.info("%s %s eliminato", modello.__name__, prenotazione_id)


# =========================
# Appuntamenti
# =========================
def crea_appuntamento(dati: AppuntamentoIn) -> dict[str, Any]:
    inizio, fine = intervallo(dati.data, dati.ora_inizio, dati.ora_fine)
    specialista_id = _id_o_none(dati.specialista_id)

    with db_session() as s:
        _richiedi(s, Paziente, dati.paziente_id, "Paziente non trovato.")
        trattamento = _richiedi(s, Trattamento, dati.trattamento_id, "Trattamento non trovato.")
        consulto_origine_id = _id_o_none(dati.consulto_origine_id)
        if consulto_origine_id:
            _richiedi(s, Consulto, consulto_origine_id, "Consulto di origine non trovato.")

        if specialista_id and dati.stato != StatoPrenotazione.ANNULLATO:
            _verifica_specialista(s, specialista_id, inizio, fine, MSG_SPECIALISTA_OCCUPATA)
        elif specialista_id:
            _richiedi(s, Specialista, specialista_id, "Specialista non trovata.")

        app = Appuntamento(
            paziente_id=dati.paziente_id,
            specialista_id=specialista_id,
            trattamento_id=trattamento.id,
            consulto_origine_id=consulto_origine_id,
            inizio=inizio,
            fine=fine,
            stato=dati.stato,
            prezzo=dati.prezzo if dati.prezzo is not None else trattamento.prezzo_base,
            pagato=dati.pagato,
            importo_pagato=dati.importo_pagato,
            note=dati.note,
        )
        s.add(app)
        s.flush()

        logger.info("Appuntamento %s creato (specialista=%s, %s-%s)", app.id, specialista_id, inizio, fine)
        return appuntamento_flat(app)


def aggiorna_appuntamento(appuntamento_id: str, dati: AppuntamentoUpdate) -> dict[str, Any]:
    with db_session() as s:
        app = s.get(Appuntamento, appuntamento_id)
        if not app:
            raise ErroreNonTrovato("Appuntamento non trovato.")

        if dati.trattamento_id is not None:
            _richiedi(s, Trattamento, dati.trattamento_id, "Trattamento non trovato.")

        _applica_modifica(
            s,
            app,
            dati,
            ("trattamento_id", "stato", "prezzo", "pagato", "importo_pagato", "note"),
        )
        logger.info("Appuntamento %s aggiornato (%s)", app.id, ", ".join(sorted(dati.model_fields_set)))
        return appuntamento_flat(app)


def elimina_appuntamento(appuntamento_id: str) -> None:
    _elimina(Appuntamento, appuntamento_id, "Appuntamento non trovato.")


def get_appuntamento(appuntamento_id: str) -> dict[str, Any]:
    with db_session() as s:
        app = s.get(Appuntamento, appuntamento_id)
        if not app:
            raise ErroreNonTrovato("Appuntamento non trovato.")
        return appuntamento_flat(app)


def lista_appuntamenti(
    data: str | None = None,
    mese: str | None = None,
    paziente_id: str | None = None,
    specialista_id: str | None = None,
) -> list[dict[str, Any]]:
    """Anche gli annullati: restano nello storico."""
    return _lista(Appuntamento, appuntamento_flat, data, mese, paziente_id, specialista_id)


# =========================
# Consulti
# =========================
def crea_consulto(dati: ConsultoIn) -> dict[str, Any]:
    inizio, fine = intervallo(dati.data, dati.ora_inizio, dati.ora_fine)
    specialista_id = _id_o_none(dati.specialista_id)

    with db_session() as s:
        _richiedi(s, Paziente, dati.paziente_id, "Paziente non trovato.")
        if dati.trattamento_consigliato_id is not None:
            _richiedi(s, Trattamento, dati.trattamento_consigliato_id, "Trattamento consigliato non trovato.")

        if specialista_id and dati.stato != StatoPrenotazione.ANNULLATO:
            _verifica_specialista(s, specialista_id, inizio, fine, MSG_SPECIALISTA_OCCUPATA)
        elif specialista_id:
            _richiedi(s, Specialista, specialista_id, "Specialista non trovata.")

        con = Consulto(
            paziente_id=dati.paziente_id,
            specialista_id=specialista_id,
            trattamento_consigliato_id=dati.trattamento_consigliato_id,
            inizio=inizio,
            fine=fine,
            motivo=dati.motivo.strip(),
            diagnosi=dati.diagnosi or None,
            stato=dati.stato,
            prezzo=dati.prezzo,
            pagato=dati.pagato,
            importo_pagato=dati.importo_pagato,
            note=dati.note or None,
        )
        s.add(con)
        s.flush()

        logger.info("Consulto %s creato (specialista=%s, %s-%s)", con.id, specialista_id, inizio, fine)
        return consulto_flat(con)


def aggiorna_consulto(consulto_id: str, dati: ConsultoUpdate) -> dict[str, Any]:
    with db_session() as s:
        con = s.get(Consulto, consulto_id)
        if not con:
            raise ErroreNonTrovato("Consulto non trovato.")

        if dati.trattamento_consigliato_id is not None:
            _richiedi(s, Trattamento, dati.trattamento_consigliato_id, "Trattamento consigliato non trovato.")

        _applica_modifica(
            s,
            con,
            dati,
            (
                "motivo",
                "diagnosi",
                "trattamento_consigliato_id",
                "stato",
                "prezzo",
                "pagato",
                "importo_pagato",
                "note",
            ),
        )
        logger.info("Consulto %s aggiornato (%s)", con.id, ", ".join(sorted(dati.model_fields_set)))
        return consulto_flat(con)


def elimina_consulto(consulto_id: str) -> None:
    _elimina(Consulto, consulto_id, "Consulto non trovato.")


def get_consulto(consulto_id: str) -> dict[str, Any]:
    with db_session() as s:
        con = s.get(Consulto, consulto_id)
        if not con:
            raise ErroreNonTrovato("Consulto non trovato.")
        return consulto_flat(con)


def lista_consulti(
    data: str | None = None,
    mese: str | None = None,
    paziente_id: str | None = None,
    specialista_id: str | None = None,
) -> list[dict[str, Any]]:
    return _lista(Consulto, consulto_flat, data, mese, paziente_id, specialista_id)


def _lista(modello, flat, data, mese, paziente_id, specialista_id) -> list[dict[str, Any]]:
    condizioni = []
    periodo = _periodo(data, mese)
    if periodo:
        condizioni += [modello.inizio >= periodo[0], modello.inizio <= periodo[1]]
    if paziente_id:
        condizioni.append(modello.paziente_id == paziente_id)
    if specialista_id:
        condizioni.append(modello.specialista_id == specialista_id)

    with db_session() as s:
        q = select(modello).order_by(modello.inizio.asc())
        if condizioni:
            q = q.where(*condizioni)
        return [flat(p) for p in s.scalars(q)]


# =========================
# Agenda / disponibilità
# =========================
def agenda_giornaliera(specialista_id: str, giorno: date) -> list[dict[str, Any]]:
    """Appuntamenti e consulti non annullati della specialista, in ordine di orario."""
    data = giorno.isoformat()
    attivita = lista_appuntamenti(data=data, specialista_id=specialista_id) + lista_consulti(
        data=data, specialista_id=specialista_id
    )
    attivita = [a for a in attivita if a["stato"] != StatoPrenotazione.ANNULLATO.value]
    return sorted(attivita, key=lambda a: a["inizio"])


def verifica_disponibilita(
    specialista_id: str | None,
    data: str,
    ora_inizio: str,
    ora_fine: str,
    escludi_id: str | None = None,
) -> dict[str, Any]:
    inizio, fine = intervallo(data, ora_inizio, ora_fine)
    with db_session() as s:
        trovati = conflitti(s, _id_o_none(specialista_id), inizio, fine, escludi_id=escludi_id)
        return {
            "disponibile": not trovati,
            "conflitti": [
                {
                    "id": p.id,
                    "tipo": "appuntamento" if isinstance(p, Appuntamento) else "consulto",
                    **_orari(p),
                }
                for p in trovati
            ],
        }
