from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .db import Base, db_session, engine
from .errors import ErroreConflitto, ErroreNonTrovato
from .models import Appuntamento, Consulto, Paziente, Spesa, Specialista, Trattamento
from .schemas import (
    PazienteIn,
    PazienteUpdate,
    SpecialistaIn,
    SpecialistaUpdate,
    TrattamentoIn,
    TrattamentoUpdate,
)

logger = logging.getLogger(__name__)


# =========================
# Bootstrap DB
# =========================
def init_db() -> None:
    """Crea le tabelle se non esistono."""
    Base.metadata.create_all(bind=engine)


# =========================
# Helper
# =========================
def _vuoto_a_none(valore: str | None) -> str | None:
    """Stringhe vuote salvate come NULL (non devono collidere con i vincoli unique)."""
    if valore is None:
        return None
    valore = valore.strip()
    return valore or None


def _conta(s: Session, *query) -> int:
    return sum(s.scalar(q) or 0 for q in query)


def paziente_flat(p: Paziente) -> dict[str, Any]:
    return {
        "id": p.id,
        "nome": p.nome,
        "cognome": p.cognome,
        "documento": p.documento,
        "genere": p.genere,
        "data_nascita": p.data_nascita.isoformat() if p.data_nascita else None,
        "telefono": p.telefono,
        "email": p.email,
        "indirizzo": p.indirizzo,
    }


def specialista_flat(m: Specialista) -> dict[str, Any]:
    d = paziente_flat(m)  # stessi campi anagrafici
    d["attivo"] = m.attivo
    return d


def trattamento_flat(t: Trattamento) -> dict[str, Any]:
    return {"id": t.id, "nome": t.nome, "descrizione": t.descrizione, "prezzo_base": t.prezzo_base}


# =========================
# Pazienti
# =========================
def crea_paziente(dati: PazienteIn) -> dict[str, Any]:
    with db_session() as s:
        documento = dati.documento.strip()
        if s.execute(select(Paziente.id).where(Paziente.documento == documento)).first():
            raise ErroreConflitto(f"Il documento {documento} è già registrato.")

        p = Paziente(
            nome=dati.nome.strip(),
            cognome=dati.cognome.strip(),
            documento=documento,
            genere=dati.genere,
            data_nascita=dati.data_nascita,
            telefono=_vuoto_a_none(dati.telefono),
            email=_vuoto_a_none(dati.email),
            indirizzo=_vuoto_a_none(dati.indirizzo),
        )
        s.add(p)
        s.flush()
        logger.info("Paziente creato %s", p.id)
        return paziente_flat(p)


def lista_pazienti(cerca: str | None = None) -> list[dict[str, Any]]:
    with db_session() as s:
        q = select(Paziente).order_by(Paziente.cognome, Paziente.nome)
        if cerca:
            like = f"%{cerca.strip()}%"
            q = q.where(or_(Paziente.nome.ilike(like), Paziente.cognome.ilike(like), Paziente.documento.ilike(like)))
        return [paziente_flat(p) for p in s.scalars(q)]


def get_paziente(paziente_id: str) -> dict[str, Any]:
    with db_session() as s:
        p = s.get(Paziente, paziente_id)
        if not p:
            raise ErroreNonTrovato("Paziente non trovato.")
        return paziente_flat(p)


def aggiorna_paziente(paziente_id: str, dati: PazienteUpdate) -> dict[str, Any]:
    with db_session() as s:
        p = s.get(Paziente, paziente_id)
        if not p:
            raise ErroreNonTrovato("Paziente non trovato.")

        valori = dati.model_dump(exclude_unset=True)
        if valori.get("documento"):
            documento = valori["documento"].strip()
            altro = s.execute(select(Paziente.id).where(Paziente.documento == documento)).scalar_one_or_none()
            if altro and altro != p.id:
                raise ErroreConflitto(f"Il documento {documento} appartiene a un'altra persona.")
            valori["documento"] = documento

        for campo in ("telefono", "email", "indirizzo"):
            if campo in valori:
                valori[campo] = _vuoto_a_none(valori[campo])

        for campo, valore in valori.items():
            if valore is None and campo in ("nome", "cognome", "documento"):
                continue
            setattr(p, campo, valore)
        return paziente_flat(p)


def elimina_paziente(paziente_id: str) -> None:
    with db_session() as s:
        p = s.get(Paziente, paziente_id)
        if not p:
            raise ErroreNonTrovato("Paziente non trovato.")

        usati = _conta(
            s,
            select(func.count()).select_from(Appuntamento).where(Appuntamento.paziente_id == paziente_id),
            select(func.count()).select_from(Consulto).where(Consulto.paziente_id == paziente_id),
        )
        if usati:
            raise ErroreConflitto("Impossibile eliminare: il paziente ha appuntamenti o consulti registrati.")
        s.delete(p)


# =========================
# Specialisti
# =========================
def crea_specialista(dati: SpecialistaIn) -> dict[str, Any]:
    with db_session() as s:
        documento = dati.documento.strip()
        if s.execute(select(Specialista.id).where(Specialista.documento == documento)).first():
            raise ErroreConflitto(f"Il documento {documento} è già registrato.")

        email = _vuoto_a_none(dati.email)
        if email and s.execute(select(Specialista.id).where(Specialista.email == email)).first():
            raise ErroreConflitto(f"L'email {email} è già registrata.")

        m = Specialista(
            nome=dati.nome.strip(),
            cognome=dati.cognome.strip(),
            documento=documento,
            genere=dati.genere,
            data_nascita=dati.data_nascita,
            telefono=_vuoto_a_none(dati.telefono),
            email=email,
            indirizzo=_vuoto_a_none(dati.indirizzo),
        )
        s.add(m)
        s.flush()
        logger.info("Specialista creata %s", m.id)
        return specialista_flat(m)


def lista_specialisti(solo_attivi: bool = False) -> list[dict[str, Any]]:
    with db_session() as s:
        q = select(Specialista).order_by(Specialista.cognome, Specialista.nome)
        if solo_attivi:
            q = q.where(Specialista.attivo.is_(True))
        return [specialista_flat(m) for m in s.scalars(q)]


def get_specialista(specialista_id: str) -> dict[str, Any]:
    with db_session() as s:
        m = s.get(Specialista, specialista_id)
        if not m:
            raise ErroreNonTrovato("Specialista non trovata.")
        return specialista_flat(m)


def aggiorna_specialista(specialista_id: str, dati: SpecialistaUpdate) -> dict[str, Any]:
    with db_session() as s:
        m = s.get(Specialista, specialista_id)
        if not m:
            raise ErroreNonTrovato("Specialista non trovata.")

        valori = dati.model_dump(exclude_unset=True)

        # unicità in modifica: esclusa la persona stessa
        if valori.get("documento"):
            documento = valori["documento"].strip()
            altro = s.execute(select(Specialista.id).where(Specialista.documento == documento)).scalar_one_or_none()
            if altro and altro != m.id:
                raise ErroreConflitto(f"Il documento {documento} appartiene a un'altra persona.")
            valori["documento"] = documento

        for campo in ("telefono", "email", "indirizzo"):
            if campo in valori:
                valori[campo] = _vuoto_a_none(valori[campo])

        if valori.get("email"):
            altro = s.execute(select(Specialista.id).where(Specialista.email == valori["email"])).scalar_one_or_none()
            if altro and altro != m.id:
                raise ErroreConflitto(f"L'email {valori['email']} appartiene a un'altra persona.")

        for campo, valore in valori.items():
            if valore is None and campo in ("nome", "cognome", "documento", "attivo"):
                continue
            setattr(m, campo, valore)
        return specialista_flat(m)


def elimina_specialista(specialista_id: str) -> None:
    with db_session() as s:
        m = s.get(Specialista, specialista_id)
        if not m:
            raise ErroreNonTrovato("Specialista non trovata.")

        usata = _conta(
            s,
            select(func.count()).select_from(Appuntamento).where(Appuntamento.specialista_id == specialista_id),
            select(func.count()).select_from(Consulto).where(Consulto.specialista_id == specialista_id),
            select(func.count()).select_from(Spesa).where(Spesa.specialista_id == specialista_id),
        )
        if usata:
            raise ErroreConflitto("Impossibile eliminare: la specialista ha attività o spese registrate.")
        s.delete(m)


# =========================
# Trattamenti
# =========================
def crea_trattamento(dati: TrattamentoIn) -> dict[str, Any]:
    with db_session() as s:
        t = Trattamento(
            nome=dati.nome.strip(),
            descrizione=_vuoto_a_none(dati.descrizione),
            prezzo_base=dati.prezzo_base,
        )
        s.add(t)
        s.flush()
        return trattamento_flat(t)


def lista_trattamenti() -> list[dict[str, Any]]:
    with db_session() as s:
        return [trattamento_flat(t) for t in s.scalars(select(Trattamento).order_by(Trattamento.nome))]


def get_trattamento(trattamento_id: int) -> dict[str, Any]:
    with db_session() as s:
        t = s.get(Trattamento, trattamento_id)
        if not t:
            raise ErroreNonTrovato("Trattamento non trovato.")
        return trattamento_flat(t)


def aggiorna_trattamento(trattamento_id: int, dati: TrattamentoUpdate) -> dict[str, Any]:
    with db_session() as s:
        t = s.get(Trattamento, trattamento_id)
        if not t:
            raise ErroreNonTrovato("Trattamento non trovato.")

        valori = dati.model_dump(exclude_unset=True)
        if valori.get("nome"):
            t.nome = valori["nome"].strip()
        if "descrizione" in valori:
            t.descrizione = _vuoto_a_none(valori["descrizione"])
        if valori.get("prezzo_base") is not None:
            t.prezzo_base = valori["prezzo_base"]
        return trattamento_flat(t)


def elimina_trattamento(trattamento_id: int) -> None:
    try:
        with db_session() as s:
            t = s.get(Trattamento, trattamento_id)
            if not t:
                raise ErroreNonTrovato("Trattamento non trovato.")

            usato = _conta(
                s,
                select(func.count()).select_from(Appuntamento).where(Appuntamento.trattamento_id == trattamento_id),
                select(func.count())
                .select_from(Consulto)
                .where(Consulto.trattamento_consigliato_id == trattamento_id),
            )
            if usato:
                raise ErroreConflitto(
                    "Impossibile eliminare: il trattamento è già stato usato in appuntamenti o consulti."
                )
            s.delete(t)
    except IntegrityError as e:
        # vincolo di chiave esterna violato tra la verifica e il commit
        raise ErroreConflitto(
            "Impossibile eliminare: il trattamento è già stato usato in appuntamenti o consulti."
        ) from e
