"""
Appointment status state machine.

    scheduled -> en_route -> on_site -> completed
    scheduled -> cancelled
    scheduled -> scheduled   (reschedule)

Forward transitions are irreversible. Everything here is pure: services
call these checks before talking to Syndata and never advance local state
on their own.
"""

from dataclasses import dataclass
from datetime import date, datetime, time

from core.models import Agendamento, AppointmentStatus
from utils.timezone import combine_wallclock, minutes_between

_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.SCHEDULED: frozenset({
        AppointmentStatus.SCHEDULED,
        AppointmentStatus.EN_ROUTE,
        AppointmentStatus.CANCELLED,
    }),
    AppointmentStatus.EN_ROUTE: frozenset({AppointmentStatus.ON_SITE}),
    AppointmentStatus.ON_SITE: frozenset({AppointmentStatus.COMPLETED}),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
}


class InvalidTransitionError(ValueError):
    """Requested status change is not allowed from the current status."""

    def __init__(self, chave: int | None, current: AppointmentStatus, target: AppointmentStatus):
        self.chave = chave
        self.current = current
        self.target = target
        where = f"Agendamento {chave}" if chave is not None else "Agendamento"
        super().__init__(
            f"{where} cannot go from {current.value} to {target.value}"
        )


def allowed_transitions(status: AppointmentStatus) -> frozenset[AppointmentStatus]:
    """Statuses reachable in one step from status."""
    return _TRANSITIONS[status]


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    return target in _TRANSITIONS[current]


def check_transition(agendamento: Agendamento, target: AppointmentStatus) -> None:
    """
    Raises:
        InvalidTransitionError: If target is not reachable from the current status
    """
    if not can_transition(agendamento.status, target):
        raise InvalidTransitionError(agendamento.chave, agendamento.status, target)


def duration_minutes(start: datetime | None, end: datetime | None) -> int | None:
    """
    end - start in whole minutes.

    None until both stamps exist, and None when end precedes start: device
    clocks are not corrected here, and a negative duration is not shown.
    """
    minutes = minutes_between(start, end)
    if minutes is None or minutes < 0:
        return None
    return minutes


def checkpoint_violations(agendamento: Agendamento) -> list[str]:
    """
    Status/checkpoint invariants broken by this record.

    - en_route: departure set, arrival unset
    - on_site: departure and arrival set
    - completed: departure, arrival and completion set
    - stamps, when present, run departure <= arrival <= completion

    Records are reported, never corrected or rejected.

    Returns:
        Human-readable violations; empty when the record is consistent
    """
    status = agendamento.status
    saida, chegada, fim = agendamento.saida_em, agendamento.chegada_em, agendamento.finalizacao_em
    problems = []

    if status == AppointmentStatus.EN_ROUTE:
        if saida is None:
            problems.append("en_route without departure time")
        if chegada is not None:
            problems.append("en_route with arrival time")
    elif status == AppointmentStatus.ON_SITE:
        if saida is None or chegada is None:
            problems.append("on_site without departure and arrival times")
    elif status == AppointmentStatus.COMPLETED:
        if saida is None or chegada is None or fim is None:
            problems.append("completed without all three checkpoint times")

    if chegada is not None and saida is None:
        problems.append("arrival without departure")
    if fim is not None and chegada is None:
        problems.append("completion without arrival")
    if saida and chegada and chegada < saida:
        problems.append("arrived before departing")
    if chegada and fim and fim < chegada:
        problems.append("completed before arriving")

    return problems


# =============================================================================
# RESCHEDULE
# =============================================================================


@dataclass(frozen=True)
class ReschedulePlan:
    """Outcome of comparing a reschedule request with the stored schedule."""

    changed: bool
    new_start: datetime
    retorno: str | None = None


def _format_br(dt: datetime | None) -> str:
    return dt.strftime("%d/%m/%Y %H:%M") if dt else "sem horário"


def plan_reschedule(
    agendamento: Agendamento,
    new_date: date,
    new_time: time,
    reason: str | None,
) -> ReschedulePlan:
    """
    Decide what a reschedule means for this appointment.

    An edit that keeps both date and time is not a change: the reason is
    neither required nor kept. A real change needs a reason, which is
    appended to the existing return-notes trail.

    Raises:
        InvalidTransitionError: If the appointment is no longer scheduled
        ValueError: If date/time changed and reason is blank
    """
    check_transition(agendamento, AppointmentStatus.SCHEDULED)

    new_start = combine_wallclock(new_date, new_time)
    current_time = agendamento.hora.replace(second=0, microsecond=0) if agendamento.hora else None
    changed = (
        agendamento.data != new_date
        or current_time != new_time.replace(second=0, microsecond=0)
    )
    if not changed:
        return ReschedulePlan(changed=False, new_start=new_start)

    reason = (reason or "").strip()
    if not reason:
        raise ValueError("A reason is required to change the appointment date or time")

    line = f"Remarcado de {_format_br(agendamento.inicio)} para {_format_br(new_start)}: {reason}"
    trail = agendamento.agenda_retorno
    retorno = f"{trail}\n{line}" if trail else line
    return ReschedulePlan(changed=True, new_start=new_start, retorno=retorno)
