"""
Normalization boundary between Syndata payloads and domain models.

Syndata returns the same field under several names (camelCase, UPPER_SNAKE,
legacy aliases) and numbers as strings. Everything is mapped to one
canonical model here, on receipt, so nothing past this module branches on
field-name variants. Outgoing payloads are built here as well, camelCase only.
"""

import logging
import unicodedata
from datetime import date, datetime
from typing import Any, Callable, Iterable, TypeVar

from pydantic import ValidationError

from auth.types import Role, UpstreamLogin, User
from core.lifecycle import checkpoint_violations
from core.models import (
    Agendamento, AgendamentoCreate, AgendamentoUpdate, AppointmentStatus,
    Cliente, Encaixe, EncaixeCreate, EncaixeStatus, EncaixeUpdate,
    Funcionario, Localizacao, TipoSolicitacao, Urgencia,
)
from utils.timezone import combine_wallclock, format_wallclock, parse_wallclock

logger = logging.getLogger(__name__)

T = TypeVar("T")


# =============================================================================
# PRIMITIVES
# =============================================================================


def pick(raw: dict, *keys: str) -> Any:
    """First non-null value among keys, or None."""
    if not isinstance(raw, dict):
        return None
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return None


def to_int(value: Any) -> int | None:
    """
    Lenient integer: accepts ints, numeric strings, padded codes ("007",
    " 12 ") and integral decimals ("500.0"). Empty values become None;
    fractional or non-numeric values are logged and become None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, (dict, list)):
        logger.warning(f"Expected an integer, got {value!r}")
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        logger.warning(f"Ignoring non-numeric integer field: {value!r}")
        return None
    if number != number or not number.is_integer():
        logger.warning(f"Ignoring non-integral value: {value!r}")
        return None
    return int(number)


def to_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def to_str(value: Any) -> str | None:
    """Stripped string, None when empty."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def to_wallclock(value: Any, field: str) -> datetime | None:
    """Parse a timestamp, logging and dropping values that aren't timestamps."""
    try:
        return parse_wallclock(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring unparseable {field}: {value!r}")
        return None


def _fold(text: str) -> str:
    """Uppercase without accents, for matching free-form codes."""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c)).upper().strip()


def map_rows(rows: Any, mapper: Callable[[dict], T], kind: str) -> list[T]:
    """
    Map a list payload item by item.

    Malformed rows are logged and skipped so one bad record doesn't blank a
    whole view.
    """
    if isinstance(rows, dict):
        rows = [rows]
    if not isinstance(rows, list):
        return []

    result = []
    for row in rows:
        try:
            result.append(mapper(row))
        except (ValidationError, ValueError) as e:
            logger.warning(f"Skipping malformed {kind} row: {e}")
    return result


# =============================================================================
# AGENDAMENTO
# =============================================================================


def agendamento_from_api(raw: dict) -> Agendamento:
    """
    Map any appointment payload (list row, /detalhes, /me) to Agendamento.

    Checkpoint inconsistencies (missing or out-of-order stamps) are logged
    and the record is kept as Syndata stores it.

    Raises:
        ValueError: If the payload has no key
    """
    chave = to_int(pick(raw, "chave", "CHAVE", "id", "ID"))
    if chave is None:
        raise ValueError(f"Agendamento payload without key: {raw!r}")

    inicio = to_wallclock(pick(raw, "dataHoraInicial", "DATA_HORA_INICIAL"), "dataHoraInicial")
    data = inicio.date() if inicio else None
    hora = inicio.time() if inicio else None
    if data is None:
        only_day = to_str(pick(raw, "dataAgendamento", "DATA_AGENDAMENTO"))
        if only_day:
            data = date.fromisoformat(only_day[:10])

    saida = to_wallclock(
        pick(raw, "dataHoraSaida", "DATA_HORA_SAIDA", "saidaHorario", "saida_horario"), "dataHoraSaida"
    )
    chegada = to_wallclock(
        pick(raw, "dataHoraChegada", "DATA_HORA_CHEGADA", "chegadaHorario", "chegada_horario"), "dataHoraChegada"
    )
    final = to_wallclock(pick(raw, "dataHoraFinal", "DATA_HORA_FINAL"), "dataHoraFinal")

    status = AppointmentStatus.from_backend(
        to_str(pick(raw, "statusAg", "STATUS_AG", "status", "STATUS")),
        arrived=chegada is not None,
    )

    finalizacao = to_wallclock(
        pick(raw, "dataHoraFinalizacao", "DATA_HORA_FINALIZACAO", "finalizacaoHorario", "finalizacao_horario"),
        "dataHoraFinalizacao",
    )
    # /finalizar stamps dataHoraFinal; before that it holds the planned end
    if finalizacao is None and status == AppointmentStatus.COMPLETED and chegada is not None:
        finalizacao = final

    agendamento = Agendamento(
        chave=chave,
        codigo_cliente=to_int(pick(raw, "codigoCliente", "CODIGO_CLIENTE", "codCliente", "clienteCodigo")),
        nome_cliente=to_str(pick(raw, "nomeCliente", "NOME_CLIENTE", "cliente", "CLIENTE")),
        endereco_cliente=to_str(pick(raw, "enderecoCliente", "ENDERECO_CLIENTE", "endereco")),
        fone_cliente=to_str(pick(raw, "foneCliente", "FONE_CLIENTE", "telefone")),
        codigo_responsavel=to_int(
            pick(raw, "codigoResponsavel", "CODIGO_RESPONSAVEL", "tecnicoCodigo", "tecnicoId")
        ),
        tecnico_nome=to_str(pick(raw, "tecnicoNome", "TECNICO_NOME")),
        titulo=to_str(pick(raw, "titulo", "TITULO", "tipo", "tipoServico")),
        status=status,
        data=data,
        hora=hora,
        data_hora_final=final,
        data_hora_abertura=to_wallclock(
            pick(raw, "dataHoraAbertura", "DATA_HORA_ABERTURA"), "dataHoraAbertura"
        ),
        saida_em=saida,
        chegada_em=chegada,
        finalizacao_em=finalizacao,
        cancelamento_em=to_wallclock(
            pick(raw, "dataHoraCancelamento", "DATA_HORA_CANCELAMENTO"), "dataHoraCancelamento"
        ),
        agenda_abertura=to_str(pick(raw, "agendaAbertura", "AGENDA_ABERTURA")),
        agenda_retorno=to_str(pick(raw, "agendaRetorno", "AGENDA_RETORNO", "retorno", "RETORNO")),
        motivo_cancelamento=to_str(pick(raw, "motivoCancelamento", "MOTIVO_CANCELAMENTO")),
        contato_solicitante=to_str(pick(raw, "contatoSolicitante", "CONTATO_SOLICITANTE")),
        secretaria_nome=to_str(pick(raw, "secretariaNome", "SECRETARIA_NOME")),
        carro=to_str(pick(raw, "carro", "CARRO")),
        prioridade=to_str(pick(raw, "prioridade", "PRIORIDADE")),
    )
    for problem in checkpoint_violations(agendamento):
        logger.warning(f"Agendamento {chave}: {problem}")
    return agendamento


def agendamentos_from_api(rows: Any) -> list[Agendamento]:
    return map_rows(rows, agendamento_from_api, "agendamento")


def agendamento_create_to_api(
    data: AgendamentoCreate,
    codigo_grupo: int,
    cod_loja: int,
    opened_at: datetime,
) -> dict:
    """Payload for POST /agendamentos. New appointments always start as AB."""
    payload = {
        "codigoCliente": data.codigo_cliente,
        "nomeCliente": data.nome_cliente,
        "codigoResponsavel": data.codigo_responsavel,
        "codigoGrupo": codigo_grupo,
        "codLoja": cod_loja,
        "statusAg": AppointmentStatus.SCHEDULED.backend_code,
        "inativo": "N",
        "titulo": data.titulo,
        "agendaAbertura": data.agenda_abertura or "",
        "dataHoraAbertura": format_wallclock(opened_at),
        "dataHoraInicial": format_wallclock(combine_wallclock(data.data, data.hora_inicial)),
    }
    if data.hora_final is not None:
        payload["dataHoraFinal"] = format_wallclock(combine_wallclock(data.data, data.hora_final))

    optional = {
        "enderecoCliente": data.endereco_cliente,
        "foneCliente": data.fone_cliente,
        "contatoSolicitante": data.contato_solicitante,
        "prioridade": data.prioridade,
        "carro": data.carro,
    }
    payload.update({k: v for k, v in optional.items() if v is not None})
    return payload


_AGENDAMENTO_UPDATE_FIELDS = {
    "codigo_responsavel": "codigoResponsavel",
    "titulo": "titulo",
    "agenda_abertura": "agendaAbertura",
    "endereco_cliente": "enderecoCliente",
    "fone_cliente": "foneCliente",
    "contato_solicitante": "contatoSolicitante",
    "prioridade": "prioridade",
    "carro": "carro",
}


def agendamento_update_to_api(data: AgendamentoUpdate) -> dict:
    """Payload for PUT /agendamentos/{id}: only the fields that were set."""
    updates = data.model_dump(exclude_none=True)
    return {_AGENDAMENTO_UPDATE_FIELDS[k]: v for k, v in updates.items()}


def localizacao_from_api(raw: dict) -> Localizacao:
    return Localizacao(
        id=to_int(pick(raw, "id", "ID", "chave")),
        tipo=(to_str(pick(raw, "tipo", "TIPO")) or "").upper(),
        data_hora=to_wallclock(pick(raw, "dataHora", "DATA_HORA"), "dataHora"),
        lat=to_float(pick(raw, "lat", "LAT")),
        lng=to_float(pick(raw, "lng", "LNG")),
        precisao=to_float(pick(raw, "precisao", "PRECISAO")),
        origem=to_str(pick(raw, "origem", "ORIGEM")),
    )


# =============================================================================
# ENCAIXE
# =============================================================================


_URGENCIA_SPELLINGS = {
    Urgencia.ALTA: {"3", "A", "ALTA", "HIGH", "H"},
    Urgencia.MEDIA: {"2", "M", "MEDIA", "MEDIUM", "NORMAL"},
    Urgencia.BAIXA: {"1", "B", "BAIXA", "LOW", "L"},
}


def urgencia_from_api(value: Any) -> Urgencia | None:
    """Urgency from any of the spellings Syndata and older clients used."""
    if value is None:
        return None
    folded = _fold(str(value))
    for urgencia, spellings in _URGENCIA_SPELLINGS.items():
        if folded in spellings:
            return urgencia
    return None


def _enum_or_none(enum_cls, value: Any):
    text = to_str(value)
    if text is None:
        return None
    try:
        return enum_cls(text.upper())
    except ValueError:
        logger.warning(f"Unknown {enum_cls.__name__} code {text!r}")
        return None


def encaixe_from_api(raw: dict) -> Encaixe:
    """
    Map an encaixe payload to Encaixe.

    Raises:
        ValueError: If the payload has no key
    """
    chave = to_int(pick(raw, "chave", "CHAVE", "id", "ID"))
    if chave is None:
        raise ValueError(f"Encaixe payload without key: {raw!r}")

    urgencia = urgencia_from_api(
        pick(raw, "tipoUrgencia", "TIPO_URGENCIA", "urgencia", "URGENCIA", "prioridade", "PRIORIDADE")
    )

    return Encaixe(
        chave=chave,
        status=_enum_or_none(EncaixeStatus, pick(raw, "status", "STATUS")) or EncaixeStatus.OPEN,
        chave_agendamento=to_int(pick(raw, "chaveAgendamento", "CHAVE_AGENDAMENTO", "agendamentoId")),
        codigo_cliente=to_int(
            pick(raw, "codigoCliente", "CODIGO_CLIENTE", "codCliente", "clienteCodigo", "COD_CLIENTE")
        ),
        nome_cliente=to_str(pick(raw, "nomeCliente", "NOME_CLIENTE", "cliente", "CLIENTE")),
        fone_cliente=to_str(pick(raw, "foneCliente", "FONE_CLIENTE", "FONE", "telefone", "TELEFONE")),
        codigo_responsavel=to_int(
            pick(
                raw, "codigoResponsavel", "CODIGO_RESPONSAVEL", "responsavelCodigo",
                "responsavelId", "tecnicoId", "tecnico", "TECNICO",
            )
        ),
        tipo_solicitacao=_enum_or_none(
            TipoSolicitacao, pick(raw, "tipoSolicitacao", "TIPO_SOLICITACAO", "tipo", "TIPO")
        ),
        tipo_urgencia=urgencia or Urgencia.MEDIA,
        data_hora_abertura=to_wallclock(
            pick(raw, "dataHoraAbertura", "DATA_HORA_ABERTURA", "dataAbertura", "DATA_ABERTURA", "abertura"),
            "dataHoraAbertura",
        ),
        observacao=to_str(pick(raw, "observacao", "OBSERVACAO", "descricao", "observacoes")),
    )


def encaixes_from_api(rows: Any) -> list[Encaixe]:
    return map_rows(rows, encaixe_from_api, "encaixe")


def encaixe_create_to_api(data: EncaixeCreate) -> dict:
    """Payload for POST /encaixes. New encaixes always start open."""
    payload = {
        "codigoCliente": data.codigo_cliente,
        "nomeCliente": data.nome_cliente,
        "tipoSolicitacao": data.tipo_solicitacao.value,
        "tipoUrgencia": data.tipo_urgencia.value,
        "status": EncaixeStatus.OPEN.value,
    }
    optional = {
        "codigoResponsavel": data.codigo_responsavel,
        "foneCliente": data.fone_cliente,
        "observacao": data.observacao,
    }
    payload.update({k: v for k, v in optional.items() if v is not None})
    return payload


_ENCAIXE_UPDATE_FIELDS = {
    "codigo_cliente": "codigoCliente",
    "nome_cliente": "nomeCliente",
    "tipo_solicitacao": "tipoSolicitacao",
    "tipo_urgencia": "tipoUrgencia",
    "codigo_responsavel": "codigoResponsavel",
    "fone_cliente": "foneCliente",
    "observacao": "observacao",
}


def encaixe_update_to_api(data: EncaixeUpdate) -> dict:
    """Payload for PUT /encaixes/{id}: only the fields that were set."""
    updates = data.model_dump(mode="json", exclude_none=True)
    return {_ENCAIXE_UPDATE_FIELDS[k]: v for k, v in updates.items()}


# =============================================================================
# PEOPLE
# =============================================================================


def role_from_api(value: Any) -> Role | None:
    """Role from free-form text ("Técnico", "SECRETARIA", "gerente")."""
    text = to_str(value)
    if text is None:
        return None
    folded = _fold(text).lower()
    for role in Role:
        if folded == role.value:
            return role
    return None


def user_from_api(raw: dict) -> User:
    """
    Map /auth/login and /auth/me user payloads.

    Raises:
        ValueError: If no numeric id can be found
    """
    user_id = to_int(pick(raw, "user_id", "userId", "id", "CODIGO", "codigo"))
    if user_id is None:
        raise ValueError(f"User payload without id: {raw!r}")
    return User(
        id=user_id,
        name=to_str(pick(raw, "name", "nome", "NOME")) or "",
        role=role_from_api(pick(raw, "role", "tipoUsuario", "tipo", "ATRIBUICAO", "atribuicao")),
        login=to_str(pick(raw, "login", "LOGIN", "usuario")),
    )


def login_from_api(raw: Any) -> UpstreamLogin:
    """
    Map a /auth/login answer. Accepts access_token/token and
    expires_in/expiresInSeconds; the user block is optional.

    Raises:
        ValueError: If no token was returned
    """
    token = to_str(pick(raw, "access_token", "token", "accessToken"))
    if token is None:
        raise ValueError("Syndata login returned no token")

    raw_user = pick(raw, "user", "usuario")
    user = None
    if isinstance(raw_user, dict):
        try:
            user = user_from_api(raw_user)
        except ValueError:
            logger.warning("Login payload carried a user block without id")

    return UpstreamLogin(
        token=token,
        expires_in_seconds=to_int(pick(raw, "expires_in", "expiresInSeconds", "expiresIn")),
        user=user,
    )


def funcionario_from_api(raw: dict, role: Role | None = None) -> Funcionario:
    """
    Map a /funcionarios row.

    Raises:
        ValueError: If the row has no id
    """
    func_id = to_int(pick(raw, "user_id", "codigo", "id", "CODIGO", "ID", "login", "LOGIN"))
    if func_id is None:
        raise ValueError(f"Funcionario payload without id: {raw!r}")
    return Funcionario(
        id=func_id,
        nome=to_str(pick(raw, "nome", "name", "NOME")) or "",
        role=role or role_from_api(pick(raw, "role", "ATRIBUICAO")),
    )


def funcionarios_from_api(rows: Any, role: Role | None = None) -> list[Funcionario]:
    return map_rows(rows, lambda row: funcionario_from_api(row, role), "funcionario")


def cliente_from_api(raw: dict) -> Cliente:
    cliente_id = to_int(pick(raw, "id", "codigo", "CODIGO", "ID"))
    if cliente_id is None:
        raise ValueError(f"Cliente payload without id: {raw!r}")
    return Cliente(
        id=cliente_id,
        nome=to_str(pick(raw, "nome", "NOME")) or "",
        cpf=to_str(pick(raw, "cpf", "CPF")),
        cnpj=to_str(pick(raw, "cnpj", "CNPJ")),
        fone=to_str(pick(raw, "fone", "FONE", "telefone")),
        endereco=to_str(pick(raw, "endereco", "ENDERECO")),
        endereco_numero=to_str(pick(raw, "enderecoNumero", "ENDERECO_NUMERO")),
        endereco_complemento=to_str(pick(raw, "enderecoComplemento", "ENDERECO_COMPLEMENTO")),
        bairro=to_str(pick(raw, "bairro", "BAIRRO")),
        cidade=to_str(pick(raw, "cidade", "CIDADE")),
        cep=to_str(pick(raw, "cep", "CEP")),
        empresa=to_int(pick(raw, "empresa", "EMPRESA")),
        cod_grupo=to_int(pick(raw, "codGrupo", "COD_GRUPO")),
    )


def clientes_from_api(rows: Iterable) -> list[Cliente]:
    return map_rows(rows, cliente_from_api, "cliente")
