from __future__ import annotations

import threading
from datetime import date, datetime

import pytest

from ambulatorio import prenotazioni
from ambulatorio.errors import ErroreConflitto, ErroreNonTrovato, ErroreValidazione
from ambulatorio.models import StatoPrenotazione
from ambulatorio.prenotazioni import (
    MSG_CONFLITTO_MODIFICA,
    MSG_SPECIALISTA_OCCUPATA,
    agenda_giornaliera,
    aggiorna_appuntamento,
    aggiorna_consulto,
    combina_data_ora,
    crea_appuntamento,
    crea_consulto,
    elimina_appuntamento,
    elimina_consulto,
    get_appuntamento,
    lista_appuntamenti,
    lista_consulti,
)
from ambulatorio.schemas import AppuntamentoUpdate, ConsultoIn, ConsultoUpdate


def test_combina_data_ora():
    assert combina_data_ora("2024-05-01", "09:30") == datetime(2024, 5, 1, 9, 30)
    assert combina_data_ora("2024-05-01", "09:30:45") == datetime(2024, 5, 1, 9, 30)
    assert combina_data_ora("2024-05-01", None) is None
    assert combina_data_ora("", "09:30") is None
    assert combina_data_ora("01/05/2024", "09:30") is None
    assert combina_data_ora("2024-05-01", "25:00") is None


@pytest.mark.parametrize("ora_inizio,ora_fine", [("10:00", "10:00"), ("10:00", "09:30")])
def test_end_not_after_start_is_rejected(appuntamento_in, ora_inizio, ora_fine):
    with pytest.raises(ErroreValidazione):
        crea_appuntamento(appuntamento_in(ora_inizio, ora_fine))


def test_unparseable_time_is_rejected(appuntamento_in):
    with pytest.raises(ErroreValidazione, match="Data e ore non valide"):
        crea_appuntamento(appuntamento_in("nove", "10:00"))


def test_create_defaults(appuntamento_in, trattamento):
    creato = crea_appuntamento(appuntamento_in("09:00", "09:30"))
    assert creato["id"]
    assert creato["stato"] == "IN_ATTESA"
    assert creato["pagato"] is False
    assert creato["importo_pagato"] == 0
    # prezzo non indicato: prezzo base del trattamento
    assert creato["prezzo"] == trattamento["prezzo_base"]
    assert creato["inizio"] == "2024-05-01T09:00:00"
    assert creato["fine"] == "2024-05-01T09:30:00"
    assert creato["ora_fine"] == "09:30"


def test_overlapping_booking_is_rejected_adjacent_is_accepted(appuntamento_in):
    crea_appuntamento(appuntamento_in("09:00", "09:30"))

    with pytest.raises(ErroreConflitto) as exc:
        crea_appuntamento(appuntamento_in("09:15", "09:45"))
    assert exc.value.messaggio == MSG_SPECIALISTA_OCCUPATA

    creato = crea_appuntamento(appuntamento_in("09:30", "10:00"))
    assert creato["ora_inizio"] == "09:30"


def test_unassigned_bookings_never_conflict(appuntamento_in):
    crea_appuntamento(appuntamento_in("09:00", "09:30", specialista_id=""))
    crea_appuntamento(appuntamento_in("09:00", "09:30", specialista_id=None))
    assert len(lista_appuntamenti(data="2024-05-01")) == 2


def test_cancelled_booking_frees_the_slot(appuntamento_in):
    creato = crea_appuntamento(appuntamento_in("09:00", "09:30"))
    aggiorna_appuntamento(creato["id"], AppuntamentoUpdate(stato=StatoPrenotazione.ANNULLATO))
    crea_appuntamento(appuntamento_in("09:00", "09:30"))


def test_unknown_references_are_validation_errors(appuntamento_in):
    with pytest.raises(ErroreValidazione, match="Paziente"):
        crea_appuntamento(appuntamento_in("09:00", "09:30", paziente_id="non-esiste"))
    with pytest.raises(ErroreValidazione, match="Specialista"):
        crea_appuntamento(appuntamento_in("09:00", "09:30", specialista_id="non-esiste"))
    with pytest.raises(ErroreValidazione, match="Trattamento"):
        crea_appuntamento(appuntamento_in("09:00", "09:30", trattamento_id=9999))


def test_consultation_and_appointment_share_the_agenda(paziente, specialista, appuntamento_in):
    crea_consulto(
        ConsultoIn(
            paziente_id=paziente["id"],
            specialista_id=specialista["id"],
            motivo="Prima visita",
            data="2024-05-01",
            ora_inizio="10:00",
            ora_fine="10:30",
        )
    )
    with pytest.raises(ErroreConflitto):
        crea_appuntamento(appuntamento_in("10:15", "11:00"))


def test_update_notes_only_leaves_everything_else(appuntamento_in, specialista):
    creato = crea_appuntamento(appuntamento_in("09:00", "09:30"))

    aggiornato = aggiorna_appuntamento(creato["id"], AppuntamentoUpdate(note="Portare referto"))

    assert aggiornato["note"] == "Portare referto"
    for campo in ("inizio", "fine", "stato", "specialista_id", "prezzo"):
        assert aggiornato[campo] == creato[campo]
    assert aggiornato["specialista_id"] == specialista["id"]


def test_empty_specialist_clears_assignment_without_check(appuntamento_in, monkeypatch):
    creato = crea_appuntamento(appuntamento_in("09:00", "09:30"))

    def _non_chiamare(*args, **kwargs):
        raise AssertionError("verifica disponibilità non attesa")

    monkeypatch.setattr(prenotazioni, "conflitti", _non_chiamare)

    aggiornato = aggiorna_appuntamento(
        creato["id"],
        AppuntamentoUpdate(specialista_id="", data="2024-05-01", ora_inizio="11:00", ora_fine="11:30"),
    )
    assert aggiornato["specialista_id"] is None
    assert aggiornato["specialista"] is None
    assert aggiornato["ora_inizio"] == "11:00"


def test_null_specialist_also_clears_assignment(appuntamento_in):
    creato = crea_appuntamento(appuntamento_in("09:00", "09:30"))
    aggiornato = aggiorna_appuntamento(creato["id"], AppuntamentoUpdate.model_validate({"specialista_id": None}))
    assert aggiornato["specialista_id"] is None


def test_reschedule_does_not_conflict_with_itself(appuntamento_in, specialista):
    creato = crea_appuntamento(appuntamento_in("09:00", "09:30"))
    aggiornato = aggiorna_appuntamento(
        creato["id"],
        AppuntamentoUpdate(specialista_id=specialista["id"], data="2024-05-01", ora_inizio="09:15", ora_fine="09:45"),
    )
    assert (aggiornato["ora_inizio"], aggiornato["ora_fine"]) == ("09:15", "09:45")


def test_reschedule_onto_another_booking_is_rejected(appuntamento_in, specialista):
    crea_appuntamento(appuntamento_in("09:00", "09:30"))
    secondo = crea_appuntamento(appuntamento_in("10:00", "10:30"))

    with pytest.raises(ErroreConflitto) as exc:
        aggiorna_appuntamento(
            secondo["id"],
            AppuntamentoUpdate(specialista_id=specialista["id"], data="2024-05-01", ora_inizio="09:20", ora_fine="10:20"),
        )
    assert exc.value.messaggio == MSG_CONFLITTO_MODIFICA
    # nulla è stato scritto
    assert get_appuntamento(secondo["id"])["ora_inizio"] == "10:00"


def test_assigning_a_busy_specialist_is_rejected(appuntamento_in, altra_specialista):
    crea_appuntamento(appuntamento_in("09:00", "09:30", specialista_id=altra_specialista["id"]))
    libero = crea_appuntamento(appuntamento_in("09:00", "09:30", specialista_id=None))

    with pytest.raises(ErroreConflitto):
        aggiorna_appuntamento(libero["id"], AppuntamentoUpdate(specialista_id=altra_specialista["id"]))


def test_reactivating_cancelled_booking_into_a_taken_slot_is_rejected(appuntamento_in):
    annullato = crea_appuntamento(appuntamento_in("09:00", "09:30", stato=StatoPrenotazione.ANNULLATO))
    crea_appuntamento(appuntamento_in("09:00", "09:30"))

    with pytest.raises(ErroreConflitto):
        aggiorna_appuntamento(annullato["id"], AppuntamentoUpdate(stato=StatoPrenotazione.IN_ATTESA))


def test_booking_created_cancelled_ignores_the_agenda(appuntamento_in, paziente, specialista):
    crea_appuntamento(appuntamento_in("09:00", "09:30"))

    annullato = crea_appuntamento(appuntamento_in("09:00", "09:30", stato=StatoPrenotazione.ANNULLATO))
    assert annullato["stato"] == "ANNULLATO"
    con = crea_consulto(
        ConsultoIn(
            paziente_id=paziente["id"],
            specialista_id=specialista["id"],
            motivo="Storico",
            data="2024-05-01",
            ora_inizio="09:10",
            ora_fine="09:20",
            stato=StatoPrenotazione.ANNULLATO,
        )
    )
    assert con["specialista_id"] == specialista["id"]

    # la specialista deve comunque esistere
    with pytest.raises(ErroreValidazione, match="Specialista"):
        crea_appuntamento(
            appuntamento_in("09:00", "09:30", specialista_id="non-esiste", stato=StatoPrenotazione.ANNULLATO)
        )


def test_concurrent_bookings_for_the_same_slot(appuntamento_in):
    richieste = 8
    barriera = threading.Barrier(richieste)
    esiti: list[str] = []
    lock = threading.Lock()

    def prenota():
        dati = appuntamento_in("09:00", "09:30")
        barriera.wait()
        try:
            crea_appuntamento(dati)
            esito = "ok"
        except ErroreConflitto:
            esito = "conflitto"
        with lock:
            esiti.append(esito)

    threads = [threading.Thread(target=prenota) for _ in range(richieste)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert sorted(esiti) == ["conflitto"] * (richieste - 1) + ["ok"]
    assert len(lista_appuntamenti(data="2024-05-01")) == 1


def test_partial_reschedule_is_rejected(appuntamento_in):
    creato = crea_appuntamento(appuntamento_in("09:00", "09:30"))
    with pytest.raises(ErroreValidazione):
        aggiorna_appuntamento(creato["id"], AppuntamentoUpdate(ora_inizio="10:00"))


def test_status_can_be_set_freely(appuntamento_in):
    creato = crea_appuntamento(appuntamento_in("09:00", "09:30"))
    completato = aggiorna_appuntamento(creato["id"], AppuntamentoUpdate(stato=StatoPrenotazione.COMPLETATO))
    assert completato["stato"] == "COMPLETATO"
    tornato = aggiorna_appuntamento(creato["id"], AppuntamentoUpdate(stato=StatoPrenotazione.IN_ATTESA))
    assert tornato["stato"] == "IN_ATTESA"


def test_payment_update(appuntamento_in):
    creato = crea_appuntamento(appuntamento_in("09:00", "09:30"))
    pagato = aggiorna_appuntamento(creato["id"], AppuntamentoUpdate(pagato=True, importo_pagato=35))
    assert pagato["pagato"] is True
    assert pagato["importo_pagato"] == 35


def test_update_unknown_booking(appuntamento_in):
    with pytest.raises(ErroreNonTrovato):
        aggiorna_appuntamento("non-esiste", AppuntamentoUpdate(note="x"))


def test_delete(appuntamento_in):
    creato = crea_appuntamento(appuntamento_in("09:00", "09:30"))
    elimina_appuntamento(creato["id"])
    with pytest.raises(ErroreNonTrovato):
        get_appuntamento(creato["id"])
    with pytest.raises(ErroreNonTrovato):
        elimina_appuntamento(creato["id"])


def test_delete_consultation_referenced_by_appointment_is_a_conflict(paziente, appuntamento_in):
    con = crea_consulto(
        ConsultoIn(paziente_id=paziente["id"], motivo="Valutazione", data="2024-05-01", ora_inizio="08:00", ora_fine="08:30")
    )
    crea_appuntamento(appuntamento_in("09:00", "09:30", consulto_origine_id=con["id"]))
    with pytest.raises(ErroreConflitto):
        elimina_consulto(con["id"])


def test_list_filters(appuntamento_in, paziente):
    crea_appuntamento(appuntamento_in("09:00", "09:30"))
    crea_appuntamento(appuntamento_in("09:00", "09:30", data="2024-05-20"))
    crea_appuntamento(appuntamento_in("09:00", "09:30", data="2024-06-01"))

    assert len(lista_appuntamenti(data="2024-05-01")) == 1
    assert len(lista_appuntamenti(mese="2024-05")) == 2
    assert len(lista_appuntamenti(paziente_id=paziente["id"])) == 3
    assert lista_appuntamenti(paziente_id="altro") == []
    # il giorno esatto ha priorità sul mese
    assert len(lista_appuntamenti(data="2024-06-01", mese="2024-05")) == 1

    with pytest.raises(ErroreValidazione):
        lista_appuntamenti(mese="maggio")


def test_consultation_lifecycle(paziente, specialista, trattamento):
    con = crea_consulto(
        ConsultoIn(
            paziente_id=paziente["id"],
            specialista_id=specialista["id"],
            motivo="Dolore plantare",
            data="2024-05-01",
            ora_inizio="15:00",
            ora_fine="15:30",
        )
    )
    assert con["prezzo"] == 0
    assert con["stato"] == "IN_ATTESA"

    aggiornato = aggiorna_consulto(
        con["id"],
        ConsultoUpdate(diagnosi="Fascite plantare", trattamento_consigliato_id=trattamento["id"], pagato=True, importo_pagato=20),
    )
    assert aggiornato["diagnosi"] == "Fascite plantare"
    assert aggiornato["trattamento_consigliato"]["nome"] == trattamento["nome"]
    assert aggiornato["inizio"] == con["inizio"]

    tolto = aggiorna_consulto(con["id"], ConsultoUpdate.model_validate({"trattamento_consigliato_id": None}))
    assert tolto["trattamento_consigliato_id"] is None

    assert [c["id"] for c in lista_consulti(data="2024-05-01")] == [con["id"]]


def test_agenda_merges_and_skips_cancelled(paziente, specialista, appuntamento_in):
    crea_appuntamento(appuntamento_in("11:00", "11:30"))
    crea_appuntamento(appuntamento_in("08:00", "08:30", stato=StatoPrenotazione.ANNULLATO))
    crea_consulto(
        ConsultoIn(
            paziente_id=paziente["id"],
            specialista_id=specialista["id"],
            motivo="Controllo",
            data="2024-05-01",
            ora_inizio="09:00",
            ora_fine="09:20",
        )
    )

    agenda = agenda_giornaliera(specialista["id"], date(2024, 5, 1))
    assert [(a["tipo"], a["ora_inizio"]) for a in agenda] == [("consulto", "09:00"), ("appuntamento", "11:00")]
