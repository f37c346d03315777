"""
Daily agenda grid: technicians x four fixed time slots.

A pure projection over appointments already fetched from Syndata. It never
writes; rebuild it whenever the day, the technician filter or the search
text changes.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, time
from typing import Iterable

from core.models import Agendamento, AgendamentoDraft, AppointmentStatus, Funcionario

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Slot:
    """A fixed daily window, half-open [start, end)."""

    id: int
    start: time
    end: time
    label: str

    def contains(self, at: time) -> bool:
        at = at.replace(second=0, microsecond=0)
        return self.start <= at < self.end


SLOTS: tuple[Slot, ...] = (
    Slot(1, time(8, 0), time(10, 0), "1º horário"),
    Slot(2, time(10, 0), time(12, 0), "2º horário"),
    Slot(3, time(13, 0), time(15, 0), "3º horário"),
    Slot(4, time(15, 0), time(17, 0), "4º horário"),
)

_SLOTS_BY_ID = {slot.id: slot for slot in SLOTS}


def get_slot(slot_id: int) -> Slot:
    """
    Raises:
        ValueError: If slot_id is not one of the fixed slots
    """
    slot = _SLOTS_BY_ID.get(slot_id)
    if slot is None:
        raise ValueError(f"Slot {slot_id} not found")
    return slot


def slot_for(at: time | None) -> int | None:
    """Slot id whose window holds this start time, None outside all windows."""
    if at is None:
        return None
    for slot in SLOTS:
        if slot.contains(at):
            return slot.id
    return None


@dataclass
class GridRow:
    """One technician's day."""

    tecnico_id: int
    tecnico_nome: str
    cells: dict[int, Agendamento | None] = field(
        default_factory=lambda: {slot.id: None for slot in SLOTS}
    )

    def free_slots(self) -> list[int]:
        return [slot_id for slot_id, ag in self.cells.items() if ag is None]


@dataclass
class AgendaGrid:
    """The (technician, slot) -> appointment projection for one day."""

    day: date
    rows: list[GridRow]
    unslotted: list[Agendamento] = field(default_factory=list)
    conflicts: list[Agendamento] = field(default_factory=list)

    def row(self, tecnico_id: int) -> GridRow | None:
        for row in self.rows:
            if row.tecnico_id == tecnico_id:
                return row
        return None

    def cell(self, tecnico_id: int, slot_id: int) -> Agendamento | None:
        row = self.row(tecnico_id)
        return row.cells.get(slot_id) if row else None


def _matches(agendamento: Agendamento, term: str) -> bool:
    if not term:
        return True
    haystack = (
        agendamento.nome_cliente,
        agendamento.titulo,
        agendamento.contato_solicitante,
        agendamento.endereco_cliente,
    )
    return any(term in (value or "").lower() for value in haystack)


def _sort_key(agendamento: Agendamento):
    return (agendamento.hora or time.max, agendamento.chave)


def build_grid(
    day: date,
    agendamentos: Iterable[Agendamento],
    tecnicos: Iterable[Funcionario],
    tecnico_filter: int | None = None,
    search: str = "",
) -> AgendaGrid:
    """
    Lay the day's appointments out per technician and slot.

    Args:
        day: Calendar day shown
        agendamentos: Appointments fetched for (at least) that day
        tecnicos: Staff list; one row each, in the given order
        tecnico_filter: Only this technician's row
        search: Case-insensitive match on client, title, contact or address

    Returns:
        Grid. Cancelled appointments don't occupy a cell. Appointments
        outside every slot go to `unslotted`; a second active appointment
        for a taken cell goes to `conflicts` (earliest start keeps the cell).
    """
    term = search.strip().lower()

    rows: dict[int, GridRow] = {}
    for tecnico in tecnicos:
        if tecnico_filter is not None and tecnico.id != tecnico_filter:
            continue
        rows.setdefault(tecnico.id, GridRow(tecnico.id, tecnico.nome))

    grid = AgendaGrid(day=day, rows=[])

    candidates = [
        ag for ag in agendamentos
        if ag.data == day
        and ag.codigo_responsavel is not None
        and ag.status != AppointmentStatus.CANCELLED
        and (tecnico_filter is None or ag.codigo_responsavel == tecnico_filter)
        and _matches(ag, term)
    ]

    for ag in sorted(candidates, key=_sort_key):
        slot_id = slot_for(ag.hora)
        if slot_id is None:
            grid.unslotted.append(ag)
            continue

        row = rows.get(ag.codigo_responsavel)
        if row is None:
            nome = ag.tecnico_nome or f"Técnico {ag.codigo_responsavel}"
            row = rows.setdefault(ag.codigo_responsavel, GridRow(ag.codigo_responsavel, nome))

        if row.cells[slot_id] is None:
            row.cells[slot_id] = ag
        else:
            logger.warning(
                f"Agendamento {ag.chave} collides with {row.cells[slot_id].chave} "
                f"(tecnico {row.tecnico_id}, slot {slot_id}, {day})"
            )
            grid.conflicts.append(ag)

    grid.rows = list(rows.values())
    return grid


def draft_for_cell(day: date, tecnico_id: int, slot_id: int) -> AgendamentoDraft:
    """
    New-appointment form pre-filled from an empty cell.

    Raises:
        ValueError: If slot_id is unknown
    """
    slot = get_slot(slot_id)
    return AgendamentoDraft(
        codigo_responsavel=tecnico_id,
        data=day,
        hora_inicial=slot.start,
        hora_final=slot.end,
        slot_id=slot.id,
    )
