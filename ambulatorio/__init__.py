"""
Backend dell'ambulatorio (pazienti, specialiste, trattamenti, prenotazioni, finanze).

Struttura:
- config.py       : configurazione da variabili d'ambiente / .env
- db.py           : engine e sessioni SQLAlchemy
- models.py       : modelli ORM e enum
- errors.py       : errori di dominio
- disponibilita.py: verifica sovrapposizioni della specialista
- prenotazioni.py : appuntamenti e consulti (creazione, modifica, agenda)
- services.py     : anagrafiche (pazienti, specialiste, trattamenti)
- finanze.py      : spese, incassi, bilancio
- schemas.py      : input delle operazioni (pydantic)
- moduli.py       : stato immutabile del modulo di prenotazione
- api_main.py     : API REST (FastAPI)
- seed.py         : dati iniziali
- cli.py          : operazioni da riga di comando
"""
