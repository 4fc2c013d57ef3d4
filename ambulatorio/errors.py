"""Errori di dominio: i servizi li sollevano, api_main.py li traduce in risposte HTTP."""
from __future__ import annotations


class ErroreAmbulatorio(Exception):
    """Base di tutti gli errori applicativi (messaggio leggibile per l'utente)."""

    def __init__(self, messaggio: str) -> None:
        super().__init__(messaggio)
        self.messaggio = messaggio


class ErroreValidazione(ErroreAmbulatorio):
    """Dati mancanti o malformati, fine <= inizio, riferimenti inesistenti."""


class ErroreConflitto(ErroreAmbulatorio):
    """Specialista già occupata, duplicati, vincoli referenziali in cancellazione."""


class ErroreNonTrovato(ErroreAmbulatorio):
    pass
