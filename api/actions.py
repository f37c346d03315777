"""POST /api/actions: unified mutation endpoint."""

from datetime import date, time

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from api.base import success_response
from api.payloads import agendamento_payload, encaixe_payload
from core.models import (
    AgendamentoCreate, AgendamentoUpdate, Coordinates,
    EncaixeCreate, EncaixeUpdate,
)
from utils.session_context import get_current_user


class ActionRequest(BaseModel):
    domain: str
    action: str
    data: dict = Field(default_factory=dict)


def create_actions_router(services: dict) -> APIRouter:
    router = APIRouter()

    handlers = {
        "agendamento": AgendamentoHandler(services["agendamento"]),
        "encaixe": EncaixeHandler(services["encaixe"]),
    }

    @router.post("/actions")
    def perform_action(request: Request, body: ActionRequest):
        handler = handlers.get(body.domain)
        if handler is None:
            raise ValueError(
                f"Unknown domain '{body.domain}'. "
                f"Valid domains: {', '.join(sorted(handlers.keys()))}"
            )

        if body.action not in handler.ALLOWED_ACTIONS:
            raise ValueError(
                f"Action '{body.action}' not allowed on '{body.domain}'. "
                f"Allowed: {', '.join(sorted(handler.ALLOWED_ACTIONS))}"
            )

        method = getattr(handler, f"_handle_{body.action}")
        result = method(dict(body.data))
        return success_response(
            result, request_id=getattr(request.state, "request_id", None)
        ).model_dump(mode="json")

    return router


# =============================================================================
# ACTION PAYLOADS
# =============================================================================


class _Keyed(BaseModel):
    chave: int


class _Reschedule(_Keyed):
    data: date
    hora: time
    reason: str | None = None


class _Cancel(_Keyed):
    reason: str = ""


class _Checkpoint(_Keyed):
    lat: float | None = None
    lng: float | None = None
    accuracy: float | None = None

    def coordinates(self) -> Coordinates | None:
        if self.lat is None or self.lng is None:
            return None
        return Coordinates(lat=self.lat, lng=self.lng, accuracy=self.accuracy)


class _Complete(_Checkpoint):
    closing_note: str | None = None
    signature: str | None = Field(None, description="Base64 image of the client's signature")


class _Assign(_Keyed):
    tecnico_id: int


class _Convert(_Keyed):
    data: date
    hora_inicial: time
    hora_final: time | None = None


def _chave(data: dict) -> int:
    return _Keyed(**data).chave


# =============================================================================
# HANDLER CLASSES
# =============================================================================


class AgendamentoHandler:
    ALLOWED_ACTIONS = {
        "create", "update", "reschedule", "cancel", "delete",
        "depart", "arrive", "complete",
    }

    def __init__(self, service):
        self.service = service

    def _dump(self, agendamento):
        return agendamento_payload(agendamento, get_current_user())

    def _handle_create(self, data: dict):
        return self._dump(self.service.create(AgendamentoCreate(**data)))

    def _handle_update(self, data: dict):
        chave = _chave(data)
        data.pop("chave")
        return self._dump(self.service.update(chave, AgendamentoUpdate(**data)))

    def _handle_reschedule(self, data: dict):
        req = _Reschedule(**data)
        return self._dump(self.service.reschedule(req.chave, req.data, req.hora, req.reason))

    def _handle_cancel(self, data: dict):
        req = _Cancel(**data)
        return self._dump(self.service.cancel(req.chave, req.reason))

    def _handle_delete(self, data: dict):
        chave = _chave(data)
        self.service.delete(chave)
        return {"deleted": True, "chave": chave}

    def _handle_depart(self, data: dict):
        req = _Checkpoint(**data)
        return self._dump(self.service.depart(req.chave, req.coordinates()))

    def _handle_arrive(self, data: dict):
        req = _Checkpoint(**data)
        return self._dump(self.service.arrive(req.chave, req.coordinates()))

    def _handle_complete(self, data: dict):
        req = _Complete(**data)
        agendamento = self.service.complete(
            req.chave,
            closing_note=req.closing_note,
            signature=req.signature,
            coords=req.coordinates(),
        )
        return self._dump(agendamento)


class EncaixeHandler:
    ALLOWED_ACTIONS = {"create", "update", "assign", "request", "exclude", "convert"}

    def __init__(self, service):
        self.service = service

    def _dump(self, encaixe):
        return encaixe_payload(encaixe, get_current_user())

    def _handle_create(self, data: dict):
        return self._dump(self.service.create(EncaixeCreate(**data)))

    def _handle_update(self, data: dict):
        chave = _chave(data)
        data.pop("chave")
        return self._dump(self.service.update(chave, EncaixeUpdate(**data)))

    def _handle_assign(self, data: dict):
        req = _Assign(**data)
        return self._dump(self.service.assign(req.chave, req.tecnico_id))

    def _handle_request(self, data: dict):
        return self._dump(self.service.request(_chave(data)))

    def _handle_exclude(self, data: dict):
        chave = _chave(data)
        self.service.exclude(chave)
        return {"excluded": True, "chave": chave}

    def _handle_convert(self, data: dict):
        req = _Convert(**data)
        encaixe = self.service.convert(req.chave, req.data, req.hora_inicial, req.hora_final)
        return self._dump(encaixe)
