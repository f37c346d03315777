"""Staff (read-only reference data managed by Syndata)."""

from pydantic import BaseModel

from auth.types import Role
from core.models.agendamento import AppointmentStatus


class Funcionario(BaseModel):
    """A technician or secretary as listed by /funcionarios."""

    id: int
    nome: str
    role: Role | None = None

    @property
    def primeiro_nome(self) -> str:
        parts = self.nome.split()
        return parts[0] if parts else ""


class TecnicoEmCampo(BaseModel):
    """A technician currently travelling to or working at a client today."""

    id: int
    nome: str
    status: AppointmentStatus
    agendamentos_hoje: int = 0
    proximo_cliente: str | None = None
