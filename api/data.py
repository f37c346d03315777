"""GET /api/...: role-gated read endpoints."""

from datetime import date, time

from fastapi import APIRouter, Query, Request

from api.base import success_response
from api.payloads import (
    agendamento_payload, encaixe_payload, funcionario_payload, grid_payload,
)
from auth.exceptions import RoleNotPermittedError
from auth.roles import View, require_view, visible_views
from core.models import Agendamento, EncaixeStatus
from core.scheduler import build_grid, draft_for_cell
from utils.session_context import get_current_user
from utils.timezone import now_wallclock


def _ok(request: Request, data):
    return success_response(data, request_id=getattr(request.state, "request_id", None)).model_dump(mode="json")


def _today() -> date:
    return now_wallclock().date()


def _require_detail_access(user, agendamento: Agendamento) -> None:
    """Office staff see everything; a technician only their own appointments."""
    if user.is_secretary:
        return
    if user.is_technician and agendamento.codigo_responsavel == user.id:
        return
    raise RoleNotPermittedError(f"Agendamento {agendamento.chave} is not visible to user {user.id}")


def create_data_router(services: dict) -> APIRouter:
    router = APIRouter()

    agendamento_svc = services["agendamento"]
    encaixe_svc = services["encaixe"]
    funcionario_svc = services["funcionario"]
    cliente_svc = services["cliente"]

    @router.get("/views")
    def views(request: Request):
        user = get_current_user()
        return _ok(request, {
            "user": user.model_dump(mode="json"),
            "views": [v.value for v in visible_views(user)],
        })

    # -------------------------------------------------------------------------
    # Agenda grid
    # -------------------------------------------------------------------------

    @router.get("/agenda")
    def agenda(
        request: Request,
        day: date | None = Query(None, alias="date"),
        tecnico: int | None = Query(None),
        search: str = Query(""),
    ):
        user = get_current_user()
        require_view(user, View.AGENDA)

        day = day or _today()
        agendamentos = agendamento_svc.list_by_date_range(day, day)
        grid = build_grid(day, agendamentos, funcionario_svc.tecnicos(), tecnico, search)
        return _ok(request, grid_payload(grid, user))

    @router.get("/agenda/draft")
    def agenda_draft(
        request: Request,
        day: date = Query(..., alias="date"),
        tecnico: int = Query(...),
        slot: int = Query(...),
    ):
        require_view(get_current_user(), View.AGENDA)
        return _ok(request, draft_for_cell(day, tecnico, slot).model_dump(mode="json"))

    # -------------------------------------------------------------------------
    # Agendamentos (convenience routes before /{chave})
    # -------------------------------------------------------------------------

    @router.get("/agendamentos")
    def agendamentos(
        request: Request,
        ini: date | None = Query(None),
        fim: date | None = Query(None),
    ):
        user = get_current_user()
        require_view(user, View.AGENDAMENTOS)

        if ini and fim and fim < ini:
            raise ValueError("'fim' must not be before 'ini'")
        rows = sorted(
            agendamento_svc.list_by_date_range(ini, fim),
            key=lambda ag: (ag.data or date.max, ag.hora or time.max, ag.chave),
        )
        return _ok(request, [agendamento_payload(ag, user) for ag in rows])

    @router.get("/agendamentos/me")
    def meus_agendamentos(request: Request):
        user = get_current_user()
        require_view(user, View.MEUS_AGENDAMENTOS)
        rows = agendamento_svc.list_mine(_today())
        return _ok(request, [agendamento_payload(ag, user) for ag in rows])

    @router.get("/agendamentos/proximo-numero")
    def proximo_numero(request: Request):
        require_view(get_current_user(), View.AGENDAMENTOS)
        return _ok(request, {"numero": agendamento_svc.next_number()})

    @router.get("/agendamentos/{chave}")
    def agendamento_detail(request: Request, chave: int):
        user = get_current_user()
        agendamento = agendamento_svc.get(chave)
        _require_detail_access(user, agendamento)
        return _ok(request, agendamento_payload(agendamento, user))

    @router.get("/agendamentos/{chave}/locs")
    def agendamento_locs(request: Request, chave: int):
        user = get_current_user()
        _require_detail_access(user, agendamento_svc.get(chave))
        locs = agendamento_svc.locations(chave)
        return _ok(request, [loc.model_dump(mode="json") for loc in locs])

    # -------------------------------------------------------------------------
    # Encaixes
    # -------------------------------------------------------------------------

    @router.get("/encaixes")
    def encaixes(request: Request, status: EncaixeStatus | None = Query(None)):
        user = get_current_user()
        if user.is_technician:
            require_view(user, View.MEUS_ENCAIXES)
            rows = encaixe_svc.list_mine()
            if status is not None:
                rows = [e for e in rows if e.status == status]
        else:
            require_view(user, View.ENCAIXES)
            rows = encaixe_svc.list_all(status)
        return _ok(request, [encaixe_payload(e, user) for e in rows])

    @router.get("/encaixes/aguardando")
    def encaixes_aguardando(request: Request, tecnico: int | None = Query(None)):
        user = get_current_user()
        require_view(user, View.ENCAIXES_AGUARDANDO)
        rows = encaixe_svc.list_awaiting(tecnico)
        return _ok(request, [encaixe_payload(e, user) for e in rows])

    # -------------------------------------------------------------------------
    # Reference data
    # -------------------------------------------------------------------------

    @router.get("/tecnicos")
    def tecnicos(request: Request):
        require_view(get_current_user(), View.TECNICOS)
        return _ok(request, [funcionario_payload(f) for f in funcionario_svc.tecnicos()])

    @router.get("/tecnicos/em-campo")
    def tecnicos_em_campo(request: Request, day: date | None = Query(None, alias="date")):
        require_view(get_current_user(), View.TECNICOS)
        day = day or _today()
        em_campo = funcionario_svc.em_campo(day, agendamento_svc.list_by_date_range(day, day))
        return _ok(request, [t.model_dump(mode="json") for t in em_campo])

    @router.get("/clientes")
    def clientes(
        request: Request,
        q: str | None = Query(None),
        limit: int = Query(50, ge=1, le=500),
    ):
        require_view(get_current_user(), View.CLIENTES)
        rows = cliente_svc.search(q, limit)
        return _ok(request, [
            {**c.model_dump(mode="json"), "endereco_completo": c.endereco_completo} for c in rows
        ])

    @router.get("/clientes/{cliente_id}")
    def cliente_detail(request: Request, cliente_id: int):
        require_view(get_current_user(), View.CLIENTES)
        cliente = cliente_svc.get(cliente_id)
        return _ok(request, {**cliente.model_dump(mode="json"), "endereco_completo": cliente.endereco_completo})

    return router
