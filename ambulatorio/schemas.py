from __future__ import annotations

from datetime import date
from typing import Literal

from pydantic import BaseModel, Field

from .models import StatoPrenotazione

Genere = Literal["maschile", "femminile", "altro"]


# Anagrafiche

class PazienteIn(BaseModel):
    nome: str = Field(..., min_length=1)
    cognome: str = Field(..., min_length=1)
    documento: str = Field(..., min_length=1)
    genere: Genere | None = None
    data_nascita: date | None = None
    telefono: str | None = None
    email: str | None = None
    indirizzo: str | None = None


class PazienteUpdate(BaseModel):
    nome: str | None = Field(default=None, min_length=1)
    cognome: str | None = Field(default=None, min_length=1)
    documento: str | None = Field(default=None, min_length=1)
    genere: Genere | None = None
    data_nascita: date | None = None
    telefono: str | None = None
    email: str | None = None
    indirizzo: str | None = None


class SpecialistaIn(PazienteIn):
    pass


class SpecialistaUpdate(PazienteUpdate):
    attivo: bool | None = None


class TrattamentoIn(BaseModel):
    nome: str = Field(..., min_length=1)
    descrizione: str | None = None
    prezzo_base: float = Field(..., ge=0)


class TrattamentoUpdate(BaseModel):
    nome: str | None = Field(default=None, min_length=1)
    descrizione: str | None = None
    prezzo_base: float | None = Field(default=None, ge=0)


# Prenotazioni
#
# data = "YYYY-MM-DD", ore = "HH:MM": restano stringhe e vengono combinate
# dal servizio, che risponde con un errore di validazione se non leggibili.

class AppuntamentoIn(BaseModel):
    paziente_id: str = Field(..., min_length=1)
    specialista_id: str | None = None          # vuoto / null = non assegnato
    trattamento_id: int
    consulto_origine_id: str | None = None

    data: str
    ora_inizio: str
    ora_fine: str

    stato: StatoPrenotazione = StatoPrenotazione.IN_ATTESA
    prezzo: float | None = Field(default=None, ge=0)   # default: prezzo base del trattamento
    pagato: bool = False
    importo_pagato: float = Field(default=0, ge=0)
    note: str | None = None


class AppuntamentoUpdate(BaseModel):
    """
    Aggiornamento parziale: contano solo i campi inviati (model_fields_set).
    specialista_id inviato vuoto o null rimuove l'assegnazione.
    """
    specialista_id: str | None = None
    trattamento_id: int | None = None

    data: str | None = None
    ora_inizio: str | None = None
    ora_fine: str | None = None

    stato: StatoPrenotazione | None = None
    prezzo: float | None = Field(default=None, ge=0)
    pagato: bool | None = None
    importo_pagato: float | None = Field(default=None, ge=0)
    note: str | None = None


class ConsultoIn(BaseModel):
    paziente_id: str = Field(..., min_length=1)
    specialista_id: str | None = None
    motivo: str = Field(..., min_length=1)
    diagnosi: str | None = None
    trattamento_consigliato_id: int | None = None

    data: str
    ora_inizio: str
    ora_fine: str

    stato: StatoPrenotazione = StatoPrenotazione.IN_ATTESA
    prezzo: float = Field(default=0, ge=0)
    pagato: bool = False
    importo_pagato: float = Field(default=0, ge=0)
    note: str | None = None


class ConsultoUpdate(BaseModel):
    specialista_id: str | None = None
    motivo: str | None = Field(default=None, min_length=1)
    diagnosi: str | None = None
    trattamento_consigliato_id: int | None = None

    data: str | None = None
    ora_inizio: str | None = None
    ora_fine: str | None = None

    stato: StatoPrenotazione | None = None
    prezzo: float | None = Field(default=None, ge=0)
    pagato: bool | None = None
    importo_pagato: float | None = Field(default=None, ge=0)
    note: str | None = None


# Finanze

class SpesaIn(BaseModel):
    importo: float = Field(..., gt=0)
    motivo: str = Field(..., min_length=1)
    data: date
    specialista_id: str | None = None
