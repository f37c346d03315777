"""Encaixe (ad-hoc slot request) domain models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class EncaixeStatus(str, Enum):
    """Encaixe lifecycle status. Values are the Syndata codes."""

    OPEN = "A"
    AWAITING_CONFIRMATION = "P"
    CONVERTED = "C"
    EXCLUDED = "E"

    @property
    def label(self) -> str:
        return {
            EncaixeStatus.OPEN: "Aberto",
            EncaixeStatus.AWAITING_CONFIRMATION: "Aguardando autorização",
            EncaixeStatus.CONVERTED: "Convertido",
            EncaixeStatus.EXCLUDED: "Excluído",
        }[self]


class Urgencia(str, Enum):
    """Urgency. Only used to order lists, never escalates anything."""

    BAIXA = "B"
    MEDIA = "M"
    ALTA = "A"

    @property
    def weight(self) -> int:
        return {Urgencia.BAIXA: 1, Urgencia.MEDIA: 2, Urgencia.ALTA: 3}[self]

    @property
    def label(self) -> str:
        return {Urgencia.BAIXA: "Baixa", Urgencia.MEDIA: "Média", Urgencia.ALTA: "Alta"}[self]


class TipoSolicitacao(str, Enum):
    """Kind of request behind an encaixe."""

    TREINAMENTO = "T"
    CANCELAMENTO = "C"
    VERIFICACAO = "V"
    MANUTENCAO = "M"
    INSTALACAO = "I"
    SUPORTE = "S"

    @property
    def label(self) -> str:
        return TIPO_LABELS[self]


TIPO_LABELS = {
    TipoSolicitacao.TREINAMENTO: "Treinamento",
    TipoSolicitacao.CANCELAMENTO: "Cancelamento",
    TipoSolicitacao.VERIFICACAO: "Verificação de Sistema",
    TipoSolicitacao.MANUTENCAO: "Manutenção de Equipamentos",
    TipoSolicitacao.INSTALACAO: "Instalação",
    TipoSolicitacao.SUPORTE: "Suporte Técnico",
}


class EncaixeCreate(BaseModel):
    """Data required to open an encaixe. Technician is optional."""

    codigo_cliente: int
    nome_cliente: str = Field(..., min_length=1)
    tipo_solicitacao: TipoSolicitacao
    tipo_urgencia: Urgencia = Urgencia.MEDIA
    codigo_responsavel: int | None = None
    fone_cliente: str | None = None
    observacao: str | None = None


class EncaixeUpdate(BaseModel):
    """Secretary edits on an encaixe. All fields optional; status is not editable here."""

    codigo_cliente: int | None = None
    nome_cliente: str | None = Field(None, min_length=1)
    tipo_solicitacao: TipoSolicitacao | None = None
    tipo_urgencia: Urgencia | None = None
    codigo_responsavel: int | None = None
    fone_cliente: str | None = None
    observacao: str | None = None


class Encaixe(BaseModel):
    """Full encaixe as read from Syndata."""

    chave: int
    status: EncaixeStatus = EncaixeStatus.OPEN
    chave_agendamento: int | None = None
    codigo_cliente: int | None = None
    nome_cliente: str | None = None
    fone_cliente: str | None = None
    codigo_responsavel: int | None = None
    tipo_solicitacao: TipoSolicitacao | None = None
    tipo_urgencia: Urgencia = Urgencia.MEDIA
    data_hora_abertura: datetime | None = None
    observacao: str | None = None

    @property
    def titulo(self) -> str:
        """Title given to the appointment this encaixe becomes."""
        if self.tipo_solicitacao is None:
            return "ENCAIXE"
        return self.tipo_solicitacao.label

    @property
    def is_convertible(self) -> bool:
        return self.status == EncaixeStatus.AWAITING_CONFIRMATION
