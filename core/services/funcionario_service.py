"""
Staff lookups: technicians, secretaries, and who is in the field today.
"""

import logging
from datetime import date, time
from typing import Iterable

from auth.types import Role, User
from clients.syndata_client import SyndataClient
from core.models import Agendamento, AppointmentStatus, Funcionario, TecnicoEmCampo
from core.normalize import funcionarios_from_api

logger = logging.getLogger(__name__)

_IN_FIELD = (AppointmentStatus.ON_SITE, AppointmentStatus.EN_ROUTE)


class FuncionarioService:
    """Service for staff reference data."""

    def __init__(self, syndata: SyndataClient):
        self.syndata = syndata

    def tecnicos(self) -> list[Funcionario]:
        rows = self.syndata.get("/funcionarios/tecnicos")
        return sorted(funcionarios_from_api(rows, Role.TECNICO), key=lambda f: f.nome.lower())

    def secretarias(self) -> list[Funcionario]:
        rows = self.syndata.get("/funcionarios/secretarias")
        return sorted(funcionarios_from_api(rows, Role.SECRETARIA), key=lambda f: f.nome.lower())

    def find(self, user_id: int) -> Funcionario | None:
        """Look a staff member up in both lists. Technicians win on a shared id."""
        for funcionario in self.tecnicos() + self.secretarias():
            if funcionario.id == user_id:
                return funcionario
        return None

    def hydrate_user(self, user: User) -> User:
        """
        Fill a placeholder name ("", "Usuário N") and a missing role from
        the staff lists. Lookup failures leave the user as it was.
        """
        placeholder = not user.name.strip() or user.name.strip() == f"Usuário {user.id}"
        if not placeholder and user.role is not None:
            return user

        funcionario = self.find(user.id)
        if funcionario is None:
            logger.warning(f"User {user.id} not found in staff lists")
            return user

        return user.model_copy(update={
            "name": funcionario.nome if placeholder and funcionario.nome else user.name,
            "role": user.role or funcionario.role,
        })

    def em_campo(self, day: date, agendamentos: Iterable[Agendamento]) -> list[TecnicoEmCampo]:
        """
        Technicians with an en-route or on-site appointment on day.

        Args:
            day: Calendar day
            agendamentos: Appointments fetched for that day

        Returns:
            One entry per active technician: on-site wins over en-route,
            with the day's appointment count and the next client to serve
        """
        todays = sorted(
            (ag for ag in agendamentos if ag.data == day and ag.codigo_responsavel is not None),
            key=lambda ag: (ag.hora or time.max, ag.chave),
        )
        by_tecnico: dict[int, list[Agendamento]] = {}
        for ag in todays:
            by_tecnico.setdefault(ag.codigo_responsavel, []).append(ag)

        names = {f.id: f.nome for f in self.tecnicos()}
        result = []
        for tecnico_id, ags in by_tecnico.items():
            statuses = {ag.status for ag in ags}
            active = next((s for s in _IN_FIELD if s in statuses), None)
            if active is None:
                continue

            upcoming = next((ag for ag in ags if not ag.is_final), None)
            nome = names.get(tecnico_id) or ags[0].tecnico_nome or f"Técnico {tecnico_id}"
            result.append(TecnicoEmCampo(
                id=tecnico_id,
                nome=nome,
                status=active,
                agendamentos_hoje=len(ags),
                proximo_cliente=upcoming.nome_cliente if upcoming else None,
            ))

        return sorted(result, key=lambda t: t.nome.lower())
