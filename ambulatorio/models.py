from __future__ import annotations

import enum
import uuid
from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, Enum, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base


def new_uuid() -> str:
    return str(uuid.uuid4())


# importi in euro: float lato Python (serializzazione JSON diretta)
Importo = Numeric(10, 2, asdecimal=False)


class StatoPrenotazione(enum.Enum):
    IN_ATTESA = "IN_ATTESA"
    COMPLETATO = "COMPLETATO"
    ANNULLATO = "ANNULLATO"
    NON_PRESENTATO = "NON_PRESENTATO"


class Paziente(Base):
    __tablename__ = "pazienti"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    nome: Mapped[str] = mapped_column(String(80), nullable=False)
    cognome: Mapped[str] = mapped_column(String(80), nullable=False)
    documento: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    genere: Mapped[str | None] = mapped_column(String(20), nullable=True)
    data_nascita: Mapped[date | None] = mapped_column(Date, nullable=True)
    telefono: Mapped[str | None] = mapped_column(String(30), nullable=True)
    email: Mapped[str | None] = mapped_column(String(120), nullable=True)
    indirizzo: Mapped[str | None] = mapped_column(String(200), nullable=True)

    def __repr__(self) -> str:
        return f"Paziente({self.nome} {self.cognome})"


class Specialista(Base):
    __tablename__ = "specialisti"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    nome: Mapped[str] = mapped_column(String(80), nullable=False)
    cognome: Mapped[str] = mapped_column(String(80), nullable=False)
    documento: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    genere: Mapped[str | None] = mapped_column(String(20), nullable=True)
    data_nascita: Mapped[date | None] = mapped_column(Date, nullable=True)
    telefono: Mapped[str | None] = mapped_column(String(30), nullable=True)
    # NULL per chi non ha email: l'unicità vale solo sui valori presenti
    email: Mapped[str | None] = mapped_column(String(120), nullable=True, unique=True)
    indirizzo: Mapped[str | None] = mapped_column(String(200), nullable=True)
    attivo: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"Specialista({self.nome} {self.cognome})"


class Trattamento(Base):
    __tablename__ = "trattamenti"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    nome: Mapped[str] = mapped_column(String(120), nullable=False)
    descrizione: Mapped[str | None] = mapped_column(Text, nullable=True)
    prezzo_base: Mapped[float] = mapped_column(Importo, nullable=False)


class Consulto(Base):
    __tablename__ = "consulti"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)

    paziente_id: Mapped[str] = mapped_column(ForeignKey("pazienti.id"), nullable=False)
    specialista_id: Mapped[str | None] = mapped_column(ForeignKey("specialisti.id"), nullable=True)
    trattamento_consigliato_id: Mapped[int | None] = mapped_column(ForeignKey("trattamenti.id"), nullable=True)

    inizio: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    # nullable solo per righe storiche: senza fine il consulto dura zero minuti
    fine: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    motivo: Mapped[str] = mapped_column(Text, nullable=False)
    diagnosi: Mapped[str | None] = mapped_column(Text, nullable=True)

    stato: Mapped[StatoPrenotazione] = mapped_column(
        Enum(StatoPrenotazione), default=StatoPrenotazione.IN_ATTESA, nullable=False
    )

    prezzo: Mapped[float] = mapped_column(Importo, default=0, nullable=False)
    pagato: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    importo_pagato: Mapped[float] = mapped_column(Importo, default=0, nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    paziente: Mapped["Paziente"] = relationship()
    specialista: Mapped[Specialista | None] = relationship()
    trattamento_consigliato: Mapped[Trattamento | None] = relationship()


class Appuntamento(Base):
    __tablename__ = "appuntamenti"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)

    paziente_id: Mapped[str] = mapped_column(ForeignKey("pazienti.id"), nullable=False)
    specialista_id: Mapped[str | None] = mapped_column(ForeignKey("specialisti.id"), nullable=True)
    trattamento_id: Mapped[int] = mapped_column(ForeignKey("trattamenti.id"), nullable=False)
    # consulto da cui nasce l'appuntamento (trattamento consigliato)
    consulto_origine_id: Mapped[str | None] = mapped_column(ForeignKey("consulti.id"), nullable=True)

    inizio: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    fine: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    stato: Mapped[StatoPrenotazione] = mapped_column(
        Enum(StatoPrenotazione), default=StatoPrenotazione.IN_ATTESA, nullable=False
    )

    prezzo: Mapped[float] = mapped_column(Importo, nullable=False)
    pagato: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    importo_pagato: Mapped[float] = mapped_column(Importo, default=0, nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    paziente: Mapped["Paziente"] = relationship()
    specialista: Mapped[Specialista | None] = relationship()
    trattamento: Mapped["Trattamento"] = relationship()
    consulto_origine: Mapped[Consulto | None] = relationship()


class Spesa(Base):
    __tablename__ = "spese"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    importo: Mapped[float] = mapped_column(Importo, nullable=False)
    motivo: Mapped[str] = mapped_column(Text, nullable=False)
    data: Mapped[date] = mapped_column(Date, nullable=False)
    specialista_id: Mapped[str | None] = mapped_column(ForeignKey("specialisti.id"), nullable=True)

    specialista: Mapped[Specialista | None] = relationship()
