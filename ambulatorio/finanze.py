from __future__ import annotations

import logging
from datetime import date, datetime, time
from typing import Any

from sqlalchemy import func, select

from .db import db_session
from .errors import ErroreNonTrovato, ErroreValidazione
from .models import Appuntamento, Consulto, Spesa, Specialista
from .schemas import SpesaIn

logger = logging.getLogger(__name__)


def _intervallo_date(inizio: date | None, fine: date | None) -> tuple[datetime, datetime] | None:
    """Filtro solo se arrivano entrambe le date; fine inclusa fino a 23:59:59."""
    if not inizio or not fine:
        return None
    if fine < inizio:
        raise ErroreValidazione("La data di fine periodo precede quella di inizio.")
    return datetime.combine(inizio, time.min), datetime.combine(fine, time(23, 59, 59))


def spesa_flat(sp: Spesa) -> dict[str, Any]:
    return {
        "id": sp.id,
        "importo": sp.importo,
        "motivo": sp.motivo,
        "data": sp.data.isoformat(),
        "specialista_id": sp.specialista_id,
        "specialista": (
            {"id": sp.specialista.id, "nome": sp.specialista.nome, "cognome": sp.specialista.cognome}
            if sp.specialista
            else None
        ),
    }


# =========================
# Spese
# =========================
def registra_spesa(dati: SpesaIn) -> dict[str, Any]:
    with db_session() as s:
        specialista_id = (dati.specialista_id or "").strip() or None
        if specialista_id and s.get(Specialista, specialista_id) is None:
            raise ErroreValidazione("Specialista non trovata.")

        sp = Spesa(importo=dati.importo, motivo=dati.motivo.strip(), data=dati.data, specialista_id=specialista_id)
        s.add(sp)
        s.flush()
        logger.info("Spesa %s registrata: %.2f (%s)", sp.id, sp.importo, sp.motivo)
        return spesa_flat(sp)


def lista_spese(inizio: date | None = None, fine: date | None = None) -> list[dict[str, Any]]:
    q = select(Spesa).order_by(Spesa.data.desc(), Spesa.id.desc())
    periodo = _intervallo_date(inizio, fine)
    if periodo:
        q = q.where(Spesa.data >= periodo[0].date(), Spesa.data <= periodo[1].date())

    with db_session() as s:
        return [spesa_flat(sp) for sp in s.scalars(q)]


def elimina_spesa(spesa_id: int) -> None:
    with db_session() as s:
        sp = s.get(Spesa, spesa_id)
        if not sp:
            raise ErroreNonTrovato("Spesa non trovata.")
        s.delete(sp)


# =========================
# Report
# =========================
def _incassato(s, modello, periodo: tuple[datetime, datetime] | None) -> float:
    """Somma degli importi pagati delle prenotazioni segnate come pagate."""
    q = select(func.coalesce(func.sum(modello.importo_pagato), 0)).where(modello.pagato.is_(True))
    if periodo:
        q = q.where(modello.inizio >= periodo[0], modello.inizio <= periodo[1])
    return float(s.scalar(q) or 0)


def report_incassi(inizio: date | None = None, fine: date | None = None) -> dict[str, float]:
    """Senza date: tutto lo storico."""
    periodo = _intervallo_date(inizio, fine)
    with db_session() as s:
        consulti = _incassato(s, Consulto, periodo)
        appuntamenti = _incassato(s, Appuntamento, periodo)
    return {
        "incassi_consulti": consulti,
        "incassi_appuntamenti": appuntamenti,
        "totale": consulti + appuntamenti,
    }


def bilancio(inizio: date | None = None, fine: date | None = None) -> dict[str, Any]:
    periodo = _intervallo_date(inizio, fine)
    with db_session() as s:
        consulti = _incassato(s, Consulto, periodo)
        appuntamenti = _incassato(s, Appuntamento, periodo)

        q = select(func.coalesce(func.sum(Spesa.importo), 0))
        if periodo:
            q = q.where(Spesa.data >= periodo[0].date(), Spesa.data <= periodo[1].date())
        spese = float(s.scalar(q) or 0)

    incassi = consulti + appuntamenti
    return {
        "incassi": {"totale": incassi, "consulti": consulti, "appuntamenti": appuntamenti},
        "spese": spese,
        "utile": incassi - spese,
    }
