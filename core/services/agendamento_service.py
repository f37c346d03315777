"""
Agendamento service for the appointment lifecycle.

Handles create, secretary edits (reassign, reschedule, cancel, delete) and
the technician checkpoints (depart, arrive, complete). Syndata is the system
of record: every mutation is checked locally first, then sent, and the
returned Agendamento is always re-read from Syndata afterwards. Nothing is
advanced optimistically.
"""

import logging
from datetime import date, time, timedelta

from auth.roles import require_owner, require_secretary, require_technician
from clients.syndata_client import SyndataClient, SyndataUnavailableError
from core.lifecycle import check_transition, plan_reschedule
from core.models import (
    Agendamento, AgendamentoCreate, AgendamentoUpdate, AppointmentStatus,
    Coordinates, Localizacao,
)
from core.normalize import (
    agendamento_create_to_api, agendamento_from_api, agendamento_update_to_api,
    agendamentos_from_api, localizacao_from_api, map_rows, pick, to_int,
)
from utils.busy import BusyGuard
from utils.session_context import get_current_user
from utils.timezone import format_wallclock, format_ymd, now_wallclock

logger = logging.getLogger(__name__)


def _coords_body(coords: Coordinates | None) -> dict:
    if coords is None:
        return {}
    body = {"lat": coords.lat, "lng": coords.lng}
    if coords.accuracy is not None:
        body["precisao"] = coords.accuracy
    return body


def _append(trail: str | None, line: str) -> str:
    return f"{trail}\n{line}" if trail else line


class AgendamentoService:
    """Service for appointment operations."""

    def __init__(self, syndata: SyndataClient, busy: BusyGuard | None = None):
        self.syndata = syndata
        self.busy = busy or BusyGuard()

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def list_by_date_range(self, ini: date | None = None, fim: date | None = None) -> list[Agendamento]:
        """
        List appointments whose start falls within [ini, fim].

        Args:
            ini: First day (inclusive)
            fim: Last day (inclusive)

        Returns:
            Appointments as sent by Syndata; malformed rows are skipped
        """
        params = {
            "ini": format_ymd(ini) if ini else None,
            "fim": format_ymd(fim) if fim else None,
        }
        rows = self.syndata.get("/agendamentos", params=params)
        return agendamentos_from_api(rows)

    def get(self, chave: int) -> Agendamento:
        """
        Get full appointment detail.

        Raises:
            SyndataNotFoundError: If Syndata doesn't know the key
        """
        raw = self.syndata.get(f"/agendamentos/detalhes/{chave}")
        if not isinstance(raw, dict):
            raise SyndataUnavailableError(f"Unexpected detail payload for agendamento {chave}")
        return agendamento_from_api(raw)

    def list_mine(self, today: date | None = None) -> list[Agendamento]:
        """
        The current technician's appointments from yesterday to tomorrow.

        Raises:
            RoleNotPermittedError: If the current user is not a technician
        """
        user = get_current_user()
        require_technician(user)

        today = today or now_wallclock().date()
        rows = self.syndata.get(
            "/agendamentos/me",
            params={
                "tecnicoId": user.id,
                "ini": format_ymd(today - timedelta(days=1)),
                "fim": format_ymd(today + timedelta(days=1)),
            },
        )
        mine = [
            ag for ag in agendamentos_from_api(rows)
            if ag.codigo_responsavel in (None, user.id)
        ]
        return sorted(mine, key=lambda ag: (ag.data or date.max, ag.hora or time.max))

    def locations(self, chave: int) -> list[Localizacao]:
        """Geolocated checkpoints recorded for the appointment."""
        rows = self.syndata.get(f"/agendamentos/{chave}/locs")
        return map_rows(rows, localizacao_from_api, "localizacao")

    def next_number(self) -> int:
        """Number the next created appointment will receive."""
        value = to_int(self.syndata.get("/agendamentos/proximo-numero"))
        if value is None:
            raise SyndataUnavailableError("Syndata returned no next appointment number")
        return value

    # -------------------------------------------------------------------------
    # Secretary operations
    # -------------------------------------------------------------------------

    def create(self, data: AgendamentoCreate) -> Agendamento:
        """
        Create a new appointment.

        Args:
            data: Appointment creation data

        Returns:
            Created appointment in SCHEDULED status, as stored by Syndata
        """
        require_secretary(get_current_user())

        payload = agendamento_create_to_api(
            data,
            codigo_grupo=self.syndata.config.codigo_grupo,
            cod_loja=self.syndata.config.cod_loja,
            opened_at=now_wallclock(),
        )
        created = self.syndata.post("/agendamentos", json_body=payload)

        chave = to_int(pick(created, "chave", "CHAVE", "id", "ID"))
        if chave is None:
            raise SyndataUnavailableError("Syndata did not return the new appointment key")

        logger.info(f"Agendamento {chave} created for tecnico {data.codigo_responsavel}")
        return self.get(chave)

    def update(self, chave: int, data: AgendamentoUpdate) -> Agendamento:
        """
        Edit fields that don't affect schedule or status (reassign, title, notes).

        Raises:
            ValueError: If the appointment is completed or cancelled
        """
        require_secretary(get_current_user())

        payload = agendamento_update_to_api(data)
        with self.busy.hold(("agendamento", chave)):
            current = self.get(chave)
            if current.is_final:
                raise ValueError(f"Agendamento {chave} is {current.status.value} and can no longer be edited")
            if not payload:
                return current

            self.syndata.put(f"/agendamentos/{chave}", json_body=payload)
            updated = self.get(chave)

        logger.info(f"Agendamento {chave} updated: {', '.join(sorted(payload))}")
        return updated

    def reschedule(
        self,
        chave: int,
        new_date: date,
        new_time: time,
        reason: str | None = None,
    ) -> Agendamento:
        """
        Move a scheduled appointment to another date/time.

        If neither date nor time differs, nothing is sent and the reason is
        ignored. Otherwise the reason is required and appended to the
        return-notes trail.

        Raises:
            InvalidTransitionError: If the appointment is no longer scheduled
            ValueError: If date/time changed without a reason
        """
        require_secretary(get_current_user())

        with self.busy.hold(("agendamento", chave)):
            current = self.get(chave)
            plan = plan_reschedule(current, new_date, new_time, reason)
            if not plan.changed:
                return current

            self.syndata.put(
                f"/agendamentos/{chave}",
                json_body={
                    "dataHoraInicial": format_wallclock(plan.new_start),
                    "agendaRetorno": plan.retorno,
                },
            )
            updated = self.get(chave)

        logger.info(f"Agendamento {chave} rescheduled to {format_wallclock(plan.new_start)}")
        return updated

    def cancel(self, chave: int, reason: str) -> Agendamento:
        """
        Cancel a scheduled appointment.

        Args:
            chave: Appointment key
            reason: Mandatory cancellation reason

        Raises:
            ValueError: If reason is blank (checked before any request)
            InvalidTransitionError: If the appointment is not scheduled
        """
        reason = (reason or "").strip()
        if not reason:
            raise ValueError("A cancellation reason is required")
        require_secretary(get_current_user())

        with self.busy.hold(("agendamento", chave)):
            current = self.get(chave)
            check_transition(current, AppointmentStatus.CANCELLED)

            self.syndata.put(
                f"/agendamentos/{chave}",
                json_body={
                    "statusAg": AppointmentStatus.CANCELLED.backend_code,
                    "motivoCancelamento": reason,
                    "dataHoraCancelamento": format_wallclock(now_wallclock()),
                },
            )
            updated = self._read_back(chave, AppointmentStatus.CANCELLED)

        logger.info(f"Agendamento {chave} cancelled")
        return updated

    def delete(self, chave: int) -> bool:
        """
        Delete an appointment that never left the office side.

        Returns:
            True once Syndata acknowledged the deletion

        Raises:
            ValueError: If a technician already started it
        """
        require_secretary(get_current_user())

        with self.busy.hold(("agendamento", chave)):
            current = self.get(chave)
            if current.status not in (AppointmentStatus.SCHEDULED, AppointmentStatus.CANCELLED):
                raise ValueError(f"Agendamento {chave} is {current.status.value} and cannot be deleted")
            self.syndata.delete(f"/agendamentos/{chave}")

        logger.info(f"Agendamento {chave} deleted")
        return True

    # -------------------------------------------------------------------------
    # Technician checkpoints
    # -------------------------------------------------------------------------

    def depart(self, chave: int, coords: Coordinates | None = None) -> Agendamento:
        """
        Technician leaves for the client. Syndata stamps the departure time.

        Raises:
            RoleNotPermittedError: If the current user is not the assigned technician
            InvalidTransitionError: If the appointment is not scheduled
        """
        return self._checkpoint(chave, "saida", AppointmentStatus.EN_ROUTE, coords)

    def arrive(self, chave: int, coords: Coordinates | None = None) -> Agendamento:
        """
        Technician reached the client. Travel time becomes available.

        Raises:
            RoleNotPermittedError: If the current user is not the assigned technician
            InvalidTransitionError: If the appointment is not en route
        """
        return self._checkpoint(chave, "chegada", AppointmentStatus.ON_SITE, coords)

    def complete(
        self,
        chave: int,
        closing_note: str | None = None,
        signature: str | None = None,
        coords: Coordinates | None = None,
    ) -> Agendamento:
        """
        Technician finishes the visit. Service time becomes available.

        The closing note (and optional base64 signature image) is saved
        first; the status change is the last request, so a failure leaves
        the visit on-site and the technician can simply try again.

        Raises:
            ValueError: If the closing note is required and blank
            RoleNotPermittedError: If the current user is not the assigned technician
            InvalidTransitionError: If the appointment is not on site
        """
        closing_note = (closing_note or "").strip()
        if self.syndata.config.require_closing_note and not closing_note:
            raise ValueError("A closing note is required to complete the visit")

        user = get_current_user()
        with self.busy.hold(("agendamento", chave)):
            current = self.get(chave)
            require_owner(user, current)
            check_transition(current, AppointmentStatus.COMPLETED)

            patch = {}
            if closing_note:
                patch["agendaRetorno"] = _append(current.agenda_retorno, closing_note)
            if signature:
                patch["assinaturaCliente"] = signature
            if patch:
                self.syndata.put(f"/agendamentos/{chave}", json_body=patch)

            self.syndata.put(
                f"/agendamentos/{chave}/finalizar",
                json_body=_coords_body(coords),
                params={"tecnicoId": user.id},
            )
            updated = self._read_back(chave, AppointmentStatus.COMPLETED)

        logger.info(
            f"Agendamento {chave} completed by tecnico {user.id} "
            f"(travel={updated.travel_minutes}min, service={updated.service_minutes}min)"
        )
        return updated

    def _checkpoint(
        self,
        chave: int,
        endpoint: str,
        target: AppointmentStatus,
        coords: Coordinates | None,
    ) -> Agendamento:
        user = get_current_user()
        with self.busy.hold(("agendamento", chave)):
            current = self.get(chave)
            require_owner(user, current)
            check_transition(current, target)

            self.syndata.put(
                f"/agendamentos/{chave}/{endpoint}",
                json_body=_coords_body(coords),
                params={"tecnicoId": user.id},
            )
            updated = self._read_back(chave, target)

        logger.info(f"Agendamento {chave}: {current.status.value} -> {updated.status.value} (tecnico {user.id})")
        return updated

    def _read_back(self, chave: int, expected: AppointmentStatus) -> Agendamento:
        """Re-read after a transition. Inconsistent stamps are logged on receipt, not raised."""
        updated = self.get(chave)
        if updated.status != expected:
            logger.warning(
                f"Agendamento {chave} reads back as {updated.status.value}, expected {expected.value}"
            )
        return updated
