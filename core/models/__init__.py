"""Core domain models."""

from core.models.agendamento import (
    Agendamento, AgendamentoCreate, AgendamentoUpdate, AgendamentoDraft,
    AppointmentStatus, Coordinates, Localizacao, STATUS_LABELS,
)
from core.models.encaixe import (
    Encaixe, EncaixeCreate, EncaixeUpdate,
    EncaixeStatus, Urgencia, TipoSolicitacao, TIPO_LABELS,
)
from core.models.funcionario import Funcionario, TecnicoEmCampo
from core.models.cliente import Cliente

__all__ = [
    # Agendamento
    "Agendamento", "AgendamentoCreate", "AgendamentoUpdate", "AgendamentoDraft",
    "AppointmentStatus", "Coordinates", "Localizacao", "STATUS_LABELS",
    # Encaixe
    "Encaixe", "EncaixeCreate", "EncaixeUpdate",
    "EncaixeStatus", "Urgencia", "TipoSolicitacao", "TIPO_LABELS",
    # Reference data
    "Funcionario", "TecnicoEmCampo", "Cliente",
]
