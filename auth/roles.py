"""
Role gate.

Secretaries (and managers) run the office side: full CRUD on appointments
and encaixes, reschedule, cancel, convert. Technicians only advance their
own appointments and request open encaixes. Every check here runs before
a request is sent to Syndata.
"""

from enum import Enum

from auth.exceptions import RoleNotPermittedError
from auth.types import Role, User
from core.models import Agendamento, AppointmentStatus, Encaixe, EncaixeStatus


class View(str, Enum):
    """Screens a user can be offered."""

    AGENDA = "agenda"
    AGENDAMENTOS = "agendamentos"
    ENCAIXES = "encaixes"
    ENCAIXES_AGUARDANDO = "encaixes_aguardando"
    TECNICOS = "tecnicos"
    CLIENTES = "clientes"
    MEUS_AGENDAMENTOS = "meus_agendamentos"
    MEUS_ENCAIXES = "meus_encaixes"


_OFFICE_VIEWS = [
    View.AGENDA, View.AGENDAMENTOS, View.ENCAIXES, View.ENCAIXES_AGUARDANDO,
    View.TECNICOS, View.CLIENTES,
]
_TECHNICIAN_VIEWS = [View.MEUS_AGENDAMENTOS, View.MEUS_ENCAIXES]


def require_role(user: User, *roles: Role) -> None:
    """
    Raises:
        RoleNotPermittedError: If user's role is not among roles
    """
    if user.role not in roles:
        allowed = ", ".join(r.value for r in roles)
        raise RoleNotPermittedError(
            f"User {user.id} ({user.role.value if user.role else 'no role'}) "
            f"is not allowed here. Requires: {allowed}"
        )


def require_secretary(user: User) -> None:
    require_role(user, Role.SECRETARIA, Role.GERENTE)


def require_technician(user: User) -> None:
    require_role(user, Role.TECNICO)


def require_owner(user: User, agendamento: Agendamento) -> None:
    """
    Only the assigned technician may move an appointment through the field states.

    Raises:
        RoleNotPermittedError: If user is not a technician or not the assignee
    """
    require_technician(user)
    if agendamento.codigo_responsavel != user.id:
        raise RoleNotPermittedError(
            f"Agendamento {agendamento.chave} belongs to tecnico "
            f"{agendamento.codigo_responsavel}, not {user.id}"
        )


def visible_views(user: User) -> list[View]:
    """Views this user may open, in menu order."""
    if user.is_secretary:
        return list(_OFFICE_VIEWS)
    if user.is_technician:
        return list(_TECHNICIAN_VIEWS)
    return []


def can_view(user: User, view: View) -> bool:
    return view in visible_views(user)


def require_view(user: User, view: View) -> None:
    """
    Raises:
        RoleNotPermittedError: If the view is not offered to this user
    """
    if not can_view(user, view):
        raise RoleNotPermittedError(f"View '{view.value}' is not available to user {user.id}")


def allowed_actions(user: User, agendamento: Agendamento) -> list[str]:
    """Appointment actions this user can trigger right now."""
    status = agendamento.status
    actions = []

    if user.is_secretary:
        if not agendamento.is_final:
            actions.append("update")
        if status == AppointmentStatus.SCHEDULED:
            actions += ["reschedule", "cancel"]
        if status in (AppointmentStatus.SCHEDULED, AppointmentStatus.CANCELLED):
            actions.append("delete")

    if user.is_technician and agendamento.codigo_responsavel == user.id:
        if status == AppointmentStatus.SCHEDULED:
            actions.append("depart")
        elif status == AppointmentStatus.EN_ROUTE:
            actions.append("arrive")
        elif status == AppointmentStatus.ON_SITE:
            actions.append("complete")

    return actions


def allowed_encaixe_actions(user: User, encaixe: Encaixe) -> list[str]:
    """Encaixe actions this user can trigger right now."""
    status = encaixe.status
    actions = []

    if user.is_secretary:
        if status in (EncaixeStatus.OPEN, EncaixeStatus.AWAITING_CONFIRMATION):
            actions += ["update", "assign", "exclude"]
        if status == EncaixeStatus.AWAITING_CONFIRMATION:
            actions.append("convert")

    if user.is_technician and status == EncaixeStatus.OPEN:
        if encaixe.codigo_responsavel in (None, user.id):
            actions.append("request")

    return actions
