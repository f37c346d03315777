"""Appointment (agendamento) domain models.

Timestamps are naive wall-clock values exactly as Syndata stores them.
"""

import logging
from datetime import date, datetime, time
from enum import Enum

from pydantic import BaseModel, Field, model_validator

from utils.timezone import combine_wallclock

logger = logging.getLogger(__name__)


class AppointmentStatus(str, Enum):
    """Appointment lifecycle status."""

    SCHEDULED = "scheduled"
    EN_ROUTE = "en_route"
    ON_SITE = "on_site"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def label(self) -> str:
        """Portuguese display label."""
        return STATUS_LABELS[self]

    @property
    def backend_code(self) -> str:
        """Two-letter code written back to Syndata."""
        return _TO_BACKEND[self]

    @classmethod
    def from_backend(cls, code: str | None, arrived: bool = False) -> "AppointmentStatus":
        """
        Translate a Syndata status code.

        EM has been read both as "em deslocamento" and as "em andamento".
        It is decoded as EN_ROUTE unless the record already carries an
        arrival stamp, and every occurrence is logged until product settles
        the meaning.

        Args:
            code: Two-letter code (case-insensitive)
            arrived: Whether the record has an arrival timestamp

        Returns:
            Status; unknown or missing codes map to SCHEDULED
        """
        normalized = (code or "").strip().upper()
        if normalized in _AMBIGUOUS_CODES:
            logger.warning(f"Ambiguous status code '{normalized}' (arrived={arrived})")
            return cls.ON_SITE if arrived else cls.EN_ROUTE

        status = _FROM_BACKEND.get(normalized)
        if status is None:
            if normalized:
                logger.warning(f"Unknown status code '{normalized}', treating as scheduled")
            return cls.SCHEDULED
        return status


_FROM_BACKEND = {
    "AB": AppointmentStatus.SCHEDULED,
    "PE": AppointmentStatus.SCHEDULED,
    "NA": AppointmentStatus.SCHEDULED,
    "ED": AppointmentStatus.EN_ROUTE,
    "AN": AppointmentStatus.ON_SITE,
    "AM": AppointmentStatus.ON_SITE,
    "EX": AppointmentStatus.ON_SITE,
    "CO": AppointmentStatus.COMPLETED,
    "FI": AppointmentStatus.COMPLETED,
    "CA": AppointmentStatus.CANCELLED,
    "CN": AppointmentStatus.CANCELLED,
}

_AMBIGUOUS_CODES = {"EM"}

_TO_BACKEND = {
    AppointmentStatus.SCHEDULED: "AB",
    AppointmentStatus.EN_ROUTE: "EM",
    AppointmentStatus.ON_SITE: "AN",
    AppointmentStatus.COMPLETED: "CO",
    AppointmentStatus.CANCELLED: "CA",
}

STATUS_LABELS = {
    AppointmentStatus.SCHEDULED: "Agendado",
    AppointmentStatus.EN_ROUTE: "Em deslocamento",
    AppointmentStatus.ON_SITE: "Em andamento",
    AppointmentStatus.COMPLETED: "Concluído",
    AppointmentStatus.CANCELLED: "Cancelado",
}


class Coordinates(BaseModel):
    """Device position captured with a checkpoint."""

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    accuracy: float | None = Field(None, ge=0, description="Meters")


class Localizacao(BaseModel):
    """A geolocated checkpoint recorded by the backend."""

    id: int | None = None
    tipo: str  # SAIDA, CHEGADA, FINAL
    data_hora: datetime | None
    lat: float
    lng: float
    precisao: float | None = None
    origem: str | None = None


class AgendamentoCreate(BaseModel):
    """Data required to create an appointment."""

    codigo_cliente: int
    nome_cliente: str = Field(..., min_length=1)
    codigo_responsavel: int
    data: date
    hora_inicial: time
    hora_final: time | None = None
    titulo: str = Field(..., min_length=1, max_length=255)
    agenda_abertura: str | None = None
    endereco_cliente: str | None = None
    fone_cliente: str | None = None
    contato_solicitante: str | None = None
    prioridade: str | None = None
    carro: str | None = None

    @model_validator(mode="after")
    def validate_window(self) -> "AgendamentoCreate":
        """End, when given, must come after start."""
        if self.hora_final is not None and self.hora_final <= self.hora_inicial:
            raise ValueError("hora_final must be after hora_inicial")
        return self


class AgendamentoUpdate(BaseModel):
    """
    Secretary edits that don't touch schedule or status. All fields optional.

    Date/time changes go through reschedule, status changes through the
    lifecycle transitions.
    """

    codigo_responsavel: int | None = None
    titulo: str | None = Field(None, min_length=1, max_length=255)
    agenda_abertura: str | None = None
    endereco_cliente: str | None = None
    fone_cliente: str | None = None
    contato_solicitante: str | None = None
    prioridade: str | None = None
    carro: str | None = None


class AgendamentoDraft(BaseModel):
    """Pre-filled form for a new appointment started from an empty grid cell."""

    codigo_responsavel: int
    data: date
    hora_inicial: time
    hora_final: time
    slot_id: int


class Agendamento(BaseModel):
    """Full appointment as read from Syndata."""

    chave: int
    codigo_cliente: int | None = None
    nome_cliente: str | None = None
    endereco_cliente: str | None = None
    fone_cliente: str | None = None
    codigo_responsavel: int | None = None
    tecnico_nome: str | None = None
    titulo: str | None = None
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    data: date | None = None
    hora: time | None = None
    data_hora_final: datetime | None = None
    data_hora_abertura: datetime | None = None
    saida_em: datetime | None = None
    chegada_em: datetime | None = None
    finalizacao_em: datetime | None = None
    cancelamento_em: datetime | None = None
    agenda_abertura: str | None = None
    agenda_retorno: str | None = None
    motivo_cancelamento: str | None = None
    contato_solicitante: str | None = None
    secretaria_nome: str | None = None
    carro: str | None = None
    prioridade: str | None = None

    @property
    def inicio(self) -> datetime | None:
        """Scheduled start as one wall-clock datetime."""
        if self.data is None or self.hora is None:
            return None
        return combine_wallclock(self.data, self.hora)

    @property
    def travel_minutes(self) -> int | None:
        """Departure to arrival, whole minutes."""
        from core.lifecycle import duration_minutes
        return duration_minutes(self.saida_em, self.chegada_em)

    @property
    def service_minutes(self) -> int | None:
        """Arrival to completion, whole minutes."""
        from core.lifecycle import duration_minutes
        return duration_minutes(self.chegada_em, self.finalizacao_em)

    @property
    def is_final(self) -> bool:
        """Completed and cancelled appointments accept no further changes."""
        return self.status in (AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED)
