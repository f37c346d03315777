"""JSON shapes sent to the browser: models plus the derived fields views show."""

from auth.roles import allowed_actions, allowed_encaixe_actions
from auth.types import User
from core.models import Agendamento, Encaixe, Funcionario
from core.scheduler import AgendaGrid, SLOTS, slot_for


def agendamento_payload(agendamento: Agendamento, user: User | None = None) -> dict:
    data = agendamento.model_dump(mode="json")
    data.update({
        "status_label": agendamento.status.label,
        "slot_id": slot_for(agendamento.hora),
        "travel_minutes": agendamento.travel_minutes,
        "service_minutes": agendamento.service_minutes,
    })
    if user is not None:
        data["allowed_actions"] = allowed_actions(user, agendamento)
    return data


def encaixe_payload(encaixe: Encaixe, user: User | None = None) -> dict:
    data = encaixe.model_dump(mode="json")
    data.update({
        "titulo": encaixe.titulo,
        "status_label": encaixe.status.label,
        "urgencia_label": encaixe.tipo_urgencia.label,
        "tipo_label": encaixe.tipo_solicitacao.label if encaixe.tipo_solicitacao else None,
    })
    if user is not None:
        data["allowed_actions"] = allowed_encaixe_actions(user, encaixe)
    return data


def funcionario_payload(funcionario: Funcionario) -> dict:
    return {**funcionario.model_dump(mode="json"), "primeiro_nome": funcionario.primeiro_nome}


def grid_payload(grid: AgendaGrid, user: User | None = None) -> dict:
    """Day grid: slot headers, one row per technician, leftovers."""
    return {
        "date": grid.day.isoformat(),
        "slots": [
            {
                "id": slot.id,
                "label": slot.label,
                "start": slot.start.strftime("%H:%M"),
                "end": slot.end.strftime("%H:%M"),
            }
            for slot in SLOTS
        ],
        "rows": [
            {
                "tecnico_id": row.tecnico_id,
                "tecnico_nome": row.tecnico_nome,
                "cells": {
                    str(slot_id): agendamento_payload(ag, user) if ag else None
                    for slot_id, ag in row.cells.items()
                },
                "free_slots": row.free_slots(),
            }
            for row in grid.rows
        ],
        "unslotted": [agendamento_payload(ag, user) for ag in grid.unslotted],
        "conflicts": [agendamento_payload(ag, user) for ag in grid.conflicts],
    }
