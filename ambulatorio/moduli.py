"""
Stato del modulo di prenotazione (appuntamento / consulto).

Lo stato è un valore immutabile: `riduci` restituisce un nuovo stato con un
campo aggiornato, `invia` rivalida tutto il modulo e produce l'input del
servizio (AppuntamentoIn / ConsultoIn) oppure un nuovo stato con gli errori
per campo.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Mapping

from pydantic import ValidationError

from .prenotazioni import MSG_DATE_NON_VALIDE, MSG_FINE_NON_SUCCESSIVA, combina_data_ora
from .schemas import AppuntamentoIn, ConsultoIn

CAMPI = {
    "appuntamento": (
        "paziente_id",
        "specialista_id",
        "trattamento_id",
        "consulto_origine_id",
        "data",
        "ora_inizio",
        "ora_fine",
        "prezzo",
        "note",
    ),
    "consulto": (
        "paziente_id",
        "specialista_id",
        "motivo",
        "diagnosi",
        "trattamento_consigliato_id",
        "data",
        "ora_inizio",
        "ora_fine",
        "prezzo",
        "note",
    ),
}

OBBLIGATORI = {
    "appuntamento": ("paziente_id", "trattamento_id", "data", "ora_inizio", "ora_fine"),
    "consulto": ("paziente_id", "motivo", "data", "ora_inizio", "ora_fine"),
}


@dataclass(frozen=True)
class StatoModulo:
    variante: str
    valori: Mapping[str, str]
    errori: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    def valore(self, campo: str) -> str:
        return self.valori[campo]

    @property
    def valido(self) -> bool:
        return not self.errori


def nuovo_modulo(variante: str, **iniziali: str) -> StatoModulo:
    if variante not in CAMPI:
        raise ValueError(f"Variante sconosciuta: {variante}")
    stato = StatoModulo(variante, MappingProxyType({campo: "" for campo in CAMPI[variante]}))
    for campo, valore in iniziali.items():
        stato = riduci(stato, campo, valore)
    return stato


def riduci(stato: StatoModulo, campo: str, valore: str | None) -> StatoModulo:
    """Nuovo stato con `campo` = `valore`; l'errore su quel campo viene azzerato."""
    if campo not in stato.valori:
        raise KeyError(campo)
    valori = dict(stato.valori)
    valori[campo] = "" if valore is None else str(valore)
    errori = {k: v for k, v in stato.errori.items() if k != campo}
    return replace(stato, valori=MappingProxyType(valori), errori=MappingProxyType(errori))


def _errori_orari(valori: Mapping[str, str]) -> dict[str, str]:
    inizio = combina_data_ora(valori["data"], valori["ora_inizio"])
    fine = combina_data_ora(valori["data"], valori["ora_fine"])
    if not inizio or not fine:
        campo = "ora_fine" if inizio else "ora_inizio"
        if combina_data_ora(valori["data"], "00:00") is None:
            campo = "data"
        return {campo: MSG_DATE_NON_VALIDE}
    if fine <= inizio:
        return {"ora_fine": MSG_FINE_NON_SUCCESSIVA}
    return {}


def invia(stato: StatoModulo) -> AppuntamentoIn | ConsultoIn | StatoModulo:
    """Validazione completa al momento dell'invio."""
    valori = {campo: stato.valore(campo).strip() for campo in CAMPI[stato.variante]}

    errori: dict[str, str] = {}
    for campo in OBBLIGATORI[stato.variante]:
        if not valori[campo]:
            errori[campo] = "Campo obbligatorio."
    if not any(c in errori for c in ("data", "ora_inizio", "ora_fine")):
        errori.update(_errori_orari(valori))
    if errori:
        return replace(stato, errori=MappingProxyType(errori))

    # i campi vuoti opzionali non vengono passati: valgono i default del modello
    payload = {k: v for k, v in valori.items() if v}
    modello = AppuntamentoIn if stato.variante == "appuntamento" else ConsultoIn
    try:
        return modello(**payload)
    except ValidationError as e:
        for err in e.errors():
            campo = str(err["loc"][0]) if err["loc"] else "modulo"
            errori[campo] = err["msg"]
        return replace(stato, errori=MappingProxyType(errori))
