from __future__ import annotations

import logging
from datetime import date
from typing import Any

from fastapi import FastAPI, HTTPException, Query, Response, status

from ambulatorio.config import LOG_FORMAT, LOG_LEVEL, SEED_ON_STARTUP
from ambulatorio.errors import ErroreAmbulatorio, ErroreConflitto, ErroreNonTrovato
from ambulatorio.finanze import bilancio, elimina_spesa, lista_spese, registra_spesa, report_incassi
from ambulatorio.prenotazioni import (
    aggiorna_appuntamento,
    aggiorna_consulto,
    crea_appuntamento,
    crea_consulto,
    elimina_appuntamento,
    elimina_consulto,
    get_appuntamento,
    get_consulto,
    lista_appuntamenti,
    lista_consulti,
    verifica_disponibilita,
)
from ambulatorio.schemas import (
    AppuntamentoIn,
    AppuntamentoUpdate,
    ConsultoIn,
    ConsultoUpdate,
    PazienteIn,
    PazienteUpdate,
    SpecialistaIn,
    SpecialistaUpdate,
    SpesaIn,
    TrattamentoIn,
    TrattamentoUpdate,
)
from ambulatorio.seed import seed_base
from ambulatorio import services

logger = logging.getLogger(__name__)

app = FastAPI(title="Ambulatorio API", version="1.0.0")



# Startup

@app.on_event("startup")
def startup() -> None:
    logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
    # Crea tabelle e seed base (idempotente)
    services.init_db()
    if SEED_ON_STARTUP:
        seed_base()
    logger.info("Ambulatorio API avviata (seed=%s)", SEED_ON_STARTUP)



# Errori di dominio -> HTTP

def _errore_http(e: ErroreAmbulatorio) -> HTTPException:
    """Non trovato -> 404, conflitto -> 409, validazione -> 400."""
    if isinstance(e, ErroreNonTrovato):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.messaggio)
    if isinstance(e, ErroreConflitto):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.messaggio)
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.messaggio)


def _errore_prenotazione(e: ErroreAmbulatorio) -> HTTPException:
    # scritture sulle prenotazioni: sempre 400, anche conflitto di orario o id sconosciuto
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.messaggio)


def _no_content() -> Response:
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.get("/")
def health() -> dict[str, str]:
    return {"status": "ok", "servizio": "Ambulatorio API"}



# Appuntamenti

@app.get("/api/appuntamenti")
def api_appuntamenti(
    data: str | None = Query(None, description="YYYY-MM-DD"),
    mese: str | None = Query(None, description="YYYY-MM"),
    paziente_id: str | None = None,
    specialista_id: str | None = None,
) -> list[dict]:
    try:
        return lista_appuntamenti(data=data, mese=mese, paziente_id=paziente_id, specialista_id=specialista_id)
    except ErroreAmbulatorio as e:
        raise _errore_http(e)


@app.get("/api/appuntamenti/{appuntamento_id}")
def api_appuntamento(appuntamento_id: str) -> dict[str, Any]:
    try:
        return get_appuntamento(appuntamento_id)
    except ErroreAmbulatorio as e:
        raise _errore_http(e)


@app.post("/api/appuntamenti", status_code=status.HTTP_201_CREATED)
def api_crea_appuntamento(payload: AppuntamentoIn) -> dict[str, Any]:
    try:
        return crea_appuntamento(payload)
    except ErroreAmbulatorio as e:
        raise _errore_prenotazione(e)


@app.put("/api/appuntamenti/{appuntamento_id}")
def api_aggiorna_appuntamento(appuntamento_id: str, payload: AppuntamentoUpdate) -> dict[str, Any]:
    try:
        return aggiorna_appuntamento(appuntamento_id, payload)
    except ErroreAmbulatorio as e:
        raise _errore_prenotazione(e)


@app.delete("/api/appuntamenti/{appuntamento_id}", status_code=status.HTTP_204_NO_CONTENT)
def api_elimina_appuntamento(appuntamento_id: str) -> Response:
    try:
        elimina_appuntamento(appuntamento_id)
    except ErroreAmbulatorio as e:
        raise _errore_prenotazione(e)
    return _no_content()



# Consulti

@app.get("/api/consulti")
def api_consulti(
    data: str | None = Query(None, description="YYYY-MM-DD"),
    mese: str | None = Query(None, description="YYYY-MM"),
    paziente_id: str | None = None,
    specialista_id: str | None = None,
) -> list[dict]:
    try:
        return lista_consulti(data=data, mese=mese, paziente_id=paziente_id, specialista_id=specialista_id)
    except ErroreAmbulatorio as e:
        raise _errore_http(e)


@app.get("/api/consulti/{consulto_id}")
def api_consulto(consulto_id: str) -> dict[str, Any]:
    try:
        return get_consulto(consulto_id)
    except ErroreAmbulatorio as e:
        raise _errore_http(e)


@app.post("/api/consulti", status_code=status.HTTP_201_CREATED)
def api_crea_consulto(payload: ConsultoIn) -> dict[str, Any]:
    try:
        return crea_consulto(payload)
    except ErroreAmbulatorio as e:
        raise _errore_prenotazione(e)


@app.put("/api/consulti/{consulto_id}")
def api_aggiorna_consulto(consulto_id: str, payload: ConsultoUpdate) -> dict[str, Any]:
    try:
        return aggiorna_consulto(consulto_id, payload)
    except ErroreAmbulatorio as e:
        raise _errore_prenotazione(e)


@app.delete("/api/consulti/{consulto_id}", status_code=status.HTTP_204_NO_CONTENT)
def api_elimina_consulto(consulto_id: str) -> Response:
    try:
        elimina_consulto(consulto_id)
    except ErroreAmbulatorio as e:
        raise _errore_prenotazione(e)
    return _no_content()


@app.get("/api/disponibilita")
def api_disponibilita(
    data: str = Query(...),
    ora_inizio: str = Query(...),
    ora_fine: str = Query(...),
    specialista_id: str | None = None,
    escludi_id: str | None = None,
) -> dict[str, Any]:
    try:
        return verifica_disponibilita(specialista_id, data, ora_inizio, ora_fine, escludi_id=escludi_id)
    except ErroreAmbulatorio as e:
        raise _errore_http(e)



# Pazienti

@app.get("/api/pazienti")
def api_pazienti(cerca: str | None = None) -> list[dict]:
    return services.lista_pazienti(cerca=cerca)


@app.get("/api/pazienti/{paziente_id}")
def api_paziente(paziente_id: str) -> dict[str, Any]:
    try:
        return services.get_paziente(paziente_id)
    except ErroreAmbulatorio as e:
        raise _errore_http(e)


@app.post("/api/pazienti", status_code=status.HTTP_201_CREATED)
def api_crea_paziente(payload: PazienteIn) -> dict[str, Any]:
    try:
        return services.crea_paziente(payload)
    except ErroreAmbulatorio as e:
        raise _errore_http(e)


@app.put("/api/pazienti/{paziente_id}")
def api_aggiorna_paziente(paziente_id: str, payload: PazienteUpdate) -> dict[str, Any]:
    try:
        return services.aggiorna_paziente(paziente_id, payload)
    except ErroreAmbulatorio as e:
        raise _errore_http(e)


@app.delete("/api/pazienti/{paziente_id}", status_code=status.HTTP_204_NO_CONTENT)
def api_elimina_paziente(paziente_id: str) -> Response:
    try:
        services.elimina_paziente(paziente_id)
    except ErroreAmbulatorio as e:
        raise _errore_http(e)
    return _no_content()



# Specialiste

@app.get("/api/specialisti")
def api_specialisti(solo_attivi: bool = False) -> list[dict]:
    return services.lista_specialisti(solo_attivi=solo_attivi)


@app.get("/api/specialisti/{specialista_id}")
def api_specialista(specialista_id: str) -> dict[str, Any]:
    try:
        return services.get_specialista(specialista_id)
    except ErroreAmbulatorio as e:
        raise _errore_http(e)


@app.post("/api/specialisti", status_code=status.HTTP_201_CREATED)
def api_crea_specialista(payload: SpecialistaIn) -> dict[str, Any]:
    try:
        return services.crea_specialista(payload)
    except ErroreAmbulatorio as e:
        raise _errore_http(e)


@app.put("/api/specialisti/{specialista_id}")
def api_aggiorna_specialista(specialista_id: str, payload: SpecialistaUpdate) -> dict[str, Any]:
    try:
        return services.aggiorna_specialista(specialista_id, payload)
    except ErroreAmbulatorio as e:
        raise _errore_http(e)


@app.delete("/api/specialisti/{specialista_id}", status_code=status.HTTP_204_NO_CONTENT)
def api_elimina_specialista(specialista_id: str) -> Response:
    try:
        services.elimina_specialista(specialista_id)
    except ErroreAmbulatorio as e:
        raise _errore_http(e)
    return _no_content()



# Trattamenti

@app.get("/api/trattamenti")
def api_trattamenti() -> list[dict]:
    return services.lista_trattamenti()


@app.get("/api/trattamenti/{trattamento_id}")
def api_trattamento(trattamento_id: int) -> dict[str, Any]:
    try:
        return services.get_trattamento(trattamento_id)
    except ErroreAmbulatorio as e:
        raise _errore_http(e)


@app.post("/api/trattamenti", status_code=status.HTTP_201_CREATED)
def api_crea_trattamento(payload: TrattamentoIn) -> dict[str, Any]:
    return services.crea_trattamento(payload)


@app.put("/api/trattamenti/{trattamento_id}")
def api_aggiorna_trattamento(trattamento_id: int, payload: TrattamentoUpdate) -> dict[str, Any]:
    try:
        return services.aggiorna_trattamento(trattamento_id, payload)
    except ErroreAmbulatorio as e:
        raise _errore_http(e)


@app.delete("/api/trattamenti/{trattamento_id}", status_code=status.HTTP_204_NO_CONTENT)
def api_elimina_trattamento(trattamento_id: int) -> Response:
    try:
        services.elimina_trattamento(trattamento_id)
    except ErroreAmbulatorio as e:
        raise _errore_http(e)
    return _no_content()



# Finanze

@app.get("/api/finanze/spese")
def api_spese(inizio: date | None = None, fine: date | None = None) -> list[dict]:
    try:
        return lista_spese(inizio, fine)
    except ErroreAmbulatorio as e:
        raise _errore_http(e)


@app.post("/api/finanze/spese", status_code=status.HTTP_201_CREATED)
def api_registra_spesa(payload: SpesaIn) -> dict[str, Any]:
    try:
        return registra_spesa(payload)
    except ErroreAmbulatorio as e:
        raise _errore_http(e)


@app.delete("/api/finanze/spese/{spesa_id}", status_code=status.HTTP_204_NO_CONTENT)
def api_elimina_spesa(spesa_id: int) -> Response:
    try:
        elimina_spesa(spesa_id)
    except ErroreAmbulatorio as e:
        raise _errore_http(e)
    return _no_content()


@app.get("/api/finanze/incassi")
def api_incassi(inizio: date | None = None, fine: date | None = None) -> dict[str, float]:
    try:
        return report_incassi(inizio, fine)
    except ErroreAmbulatorio as e:
        raise _errore_http(e)


@app.get("/api/finanze/bilancio")
def api_bilancio(inizio: date | None = None, fine: date | None = None) -> dict[str, Any]:
    try:
        return bilancio(inizio, fine)
    except ErroreAmbulatorio as e:
        raise _errore_http(e)
