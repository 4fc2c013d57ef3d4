"""
Verifica disponibilità di una specialista.

Regola: nello stesso giorno di calendario dell'inizio richiesto, nessun
appuntamento o consulto non annullato della specialista può sovrapporsi
all'intervallo [inizio, fine). Intervalli adiacenti (uno finisce alle 10:00,
l'altro inizia alle 10:00) non sono in conflitto.

Sola lettura: nessuna scrittura sul DB.
"""
from __future__ import annotations

from datetime import datetime, time
from typing import Union

from sqlalchemy import and_, select
from sqlalchemy.orm import Session

from .models import Appuntamento, Consulto, StatoPrenotazione

Prenotazione = Union[Appuntamento, Consulto]

_FINE_GIORNATA = time(23, 59, 59, 999000)


def limiti_giorno(momento: datetime) -> tuple[datetime, datetime]:
    """Mezzanotte locale e 23:59:59.999 del giorno di `momento`."""
    giorno = momento.date()
    return datetime.combine(giorno, time.min), datetime.combine(giorno, _FINE_GIORNATA)


def fine_effettiva(inizio: datetime, fine: datetime | None) -> datetime:
    """
    Ricostruisce la fine assoluta di una prenotazione salvata:
    data dell'inizio + ora di fine. Senza fine -> evento di durata zero.
    """
    if fine is None:
        return inizio
    return datetime.combine(inizio.date(), fine.time())


def si_sovrappongono(inizio_a: datetime, fine_a: datetime, inizio_b: datetime, fine_b: datetime) -> bool:
    # sovrapposizione [start,end)
    return inizio_a < fine_b and fine_a > inizio_b


def _attivita_del_giorno(s: Session, modello, specialista_id: str, giorno: tuple[datetime, datetime], escludi_id: str | None):
    condizioni = [
        modello.specialista_id == specialista_id,
        modello.stato != StatoPrenotazione.ANNULLATO,
        modello.inizio >= giorno[0],
        modello.inizio <= giorno[1],
    ]
    if escludi_id:
        condizioni.append(modello.id != escludi_id)

    q = select(modello).where(and_(*condizioni)).order_by(modello.inizio.asc())
    return list(s.scalars(q))


def conflitti(
    s: Session,
    specialista_id: str | None,
    inizio: datetime,
    fine: datetime,
    escludi_id: str | None = None,
) -> list[Prenotazione]:
    """
    Prenotazioni (appuntamenti e consulti) che si sovrappongono a [inizio, fine).

    escludi_id: prenotazione in modifica, da non confrontare con se stessa.
    """
    if not specialista_id:
        return []

    giorno = limiti_giorno(inizio)
    trovate: list[Prenotazione] = []
    for modello in (Appuntamento, Consulto):
        for p in _attivita_del_giorno(s, modello, specialista_id, giorno, escludi_id):
            if si_sovrappongono(inizio, fine, p.inizio, fine_effettiva(p.inizio, p.fine)):
                trovate.append(p)
    return trovate


def specialista_disponibile(
    s: Session,
    specialista_id: str | None,
    inizio: datetime,
    fine: datetime,
    escludi_id: str | None = None,
) -> bool:
    """True se nessuna attività della specialista si sovrappone; senza specialista sempre True."""
    return not conflitti(s, specialista_id, inizio, fine, escludi_id=escludi_id)
