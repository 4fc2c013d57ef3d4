from __future__ import annotations

from sqlalchemy import select

from .db import db_session
from .models import Specialista, Trattamento


def seed_base() -> None:
    """
    Popola dati minimi (idempotente):
    - catalogo trattamenti
    - specialiste
    """
    with db_session() as s:
        # Trattamenti
        trattamenti = [
            ("Podologia generale", "Taglio unghie, rimozione ipercheratosi e callosità.", 35.0),
            ("Onicocriptosi", "Trattamento dell'unghia incarnita.", 50.0),
            ("Plantari su misura", "Esame del passo e realizzazione plantari.", 120.0),
            ("Verruca plantare", "Trattamento ambulatoriale della verruca.", 45.0),
        ]
        for nome, descrizione, prezzo in trattamenti:
            if s.execute(select(Trattamento).where(Trattamento.nome == nome)).scalar_one_or_none() is None:
                s.add(Trattamento(nome=nome, descrizione=descrizione, prezzo_base=prezzo))

        # Specialiste
        specialisti = [
            ("Giulia", "Verdi", "VRDGLI85A41H501X", "g.verdi@ambulatorio.local"),
            ("Francesca", "Gallo", "GLLFNC90B52F205Y", "f.gallo@ambulatorio.local"),
        ]
        for nome, cognome, documento, email in specialisti:
            exists = s.execute(select(Specialista).where(Specialista.documento == documento)).scalar_one_or_none()
            if exists is None:
                s.add(Specialista(nome=nome, cognome=cognome, documento=documento, genere="femminile", email=email))
