from __future__ import annotations

import os
import tempfile

# Il DB va configurato prima di importare il package (engine creato all'import)
_DB_DIR = tempfile.mkdtemp(prefix="ambulatorio-test-")
os.environ["AMBULATORIO_DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.sqlite')}"
os.environ["AMBULATORIO_SEED"] = "0"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from ambulatorio import models  # noqa: E402,F401
from ambulatorio.api_main import app  # noqa: E402
from ambulatorio.db import Base, engine  # noqa: E402
from ambulatorio.schemas import AppuntamentoIn, PazienteIn, SpecialistaIn, TrattamentoIn  # noqa: E402
from ambulatorio.services import crea_paziente, crea_specialista, crea_trattamento  # noqa: E402


@pytest.fixture(autouse=True)
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def paziente() -> dict:
    return crea_paziente(PazienteIn(nome="Anna", cognome="Rossi", documento="RSSNNA80A41H501Z"))


@pytest.fixture
def specialista() -> dict:
    return crea_specialista(
        SpecialistaIn(nome="Giulia", cognome="Verdi", documento="VRDGLI85A41H501X", email="g.verdi@test.local")
    )


@pytest.fixture
def altra_specialista() -> dict:
    return crea_specialista(SpecialistaIn(nome="Laura", cognome="Bianchi", documento="BNCLRA88C50F205K"))


@pytest.fixture
def trattamento() -> dict:
    return crea_trattamento(TrattamentoIn(nome="Podologia generale", prezzo_base=35.0))


@pytest.fixture
def appuntamento_in(paziente, specialista, trattamento):
    """Costruttore di AppuntamentoIn con paziente/specialista/trattamento di default."""

    def _build(ora_inizio: str, ora_fine: str, data: str = "2024-05-01", **extra) -> AppuntamentoIn:
        valori = {
            "paziente_id": paziente["id"],
            "specialista_id": specialista["id"],
            "trattamento_id": trattamento["id"],
            "data": data,
            "ora_inizio": ora_inizio,
            "ora_fine": ora_fine,
        }
        valori.update(extra)
        return AppuntamentoIn(**valori)

    return _build
