"""
Encaixe service.

Ad-hoc slot requests: secretaries open them (technician optional), a
technician requests an open one, and a secretary converts the awaiting
request into a real Agendamento.
"""

import logging
from datetime import date, time

from auth.roles import require_secretary, require_technician
from clients.syndata_client import (
    SyndataClient, SyndataError, SyndataNotFoundError, SyndataUnavailableError,
)
from core.models import (
    AgendamentoCreate, Encaixe, EncaixeCreate, EncaixeStatus, EncaixeUpdate,
)
from core.normalize import (
    agendamento_create_to_api, encaixe_create_to_api, encaixe_from_api,
    encaixe_update_to_api, encaixes_from_api, pick, to_int,
)
from utils.busy import BusyGuard
from utils.session_context import get_current_user
from utils.timezone import now_wallclock

logger = logging.getLogger(__name__)


class EncaixeConversionError(Exception):
    """
    The appointment was created but the encaixe could not be linked to it.

    Both records stay as the last successful call left them: the new
    appointment exists and the encaixe is still awaiting confirmation.
    """

    def __init__(self, encaixe_chave: int, agendamento_chave: int, cause: Exception | None = None):
        self.encaixe_chave = encaixe_chave
        self.agendamento_chave = agendamento_chave
        self.cause = cause
        super().__init__(
            f"Agendamento {agendamento_chave} was created but encaixe {encaixe_chave} "
            f"could not be marked as converted"
        )


def _by_urgency(encaixes: list[Encaixe]) -> list[Encaixe]:
    """Most urgent first, then oldest first. Undated items sort as opened now."""
    now = now_wallclock()
    return sorted(
        encaixes,
        key=lambda e: (-e.tipo_urgencia.weight, e.data_hora_abertura or now, e.chave),
    )


class EncaixeService:
    """Service for encaixe operations."""

    def __init__(self, syndata: SyndataClient, busy: BusyGuard | None = None):
        self.syndata = syndata
        self.busy = busy or BusyGuard()

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def list_all(self, status: EncaixeStatus | None = None) -> list[Encaixe]:
        """
        List encaixes, most urgent first.

        Args:
            status: Only this status. Excluded items are dropped unless asked for.
        """
        params = {"status": status.value} if status else None
        encaixes = encaixes_from_api(self.syndata.get("/encaixes", params=params))
        if status is None:
            encaixes = [e for e in encaixes if e.status != EncaixeStatus.EXCLUDED]
        else:
            encaixes = [e for e in encaixes if e.status == status]
        return _by_urgency(encaixes)

    def list_awaiting(self, tecnico_id: int | None = None) -> list[Encaixe]:
        """Encaixes requested by a technician and waiting for the secretary."""
        params = {"tecnicoId": tecnico_id} if tecnico_id is not None else None
        try:
            rows = self.syndata.get("/encaixes/aguardando", params=params)
            encaixes = encaixes_from_api(rows)
        except SyndataNotFoundError:
            logger.info("GET /encaixes/aguardando not available, filtering by status instead")
            encaixes = encaixes_from_api(
                self.syndata.get("/encaixes", params={"status": EncaixeStatus.AWAITING_CONFIRMATION.value})
            )

        encaixes = [e for e in encaixes if e.status == EncaixeStatus.AWAITING_CONFIRMATION]
        if tecnico_id is not None:
            encaixes = [e for e in encaixes if e.codigo_responsavel == tecnico_id]
        return _by_urgency(encaixes)

    def list_mine(self) -> list[Encaixe]:
        """
        What the current technician sees: open encaixes that are unassigned
        or assigned to them, plus the ones they already requested.
        """
        user = get_current_user()
        require_technician(user)

        mine = []
        for encaixe in self.list_all():
            if encaixe.status == EncaixeStatus.OPEN and encaixe.codigo_responsavel in (None, user.id):
                mine.append(encaixe)
            elif encaixe.status == EncaixeStatus.AWAITING_CONFIRMATION and encaixe.codigo_responsavel == user.id:
                mine.append(encaixe)
        return mine

    def get(self, chave: int) -> Encaixe:
        """
        Get an encaixe by key. Syndata has no detail route, so this scans the list.

        Raises:
            ValueError: If not found
        """
        for encaixe in encaixes_from_api(self.syndata.get("/encaixes")):
            if encaixe.chave == chave:
                return encaixe
        raise ValueError(f"Encaixe {chave} not found")

    # -------------------------------------------------------------------------
    # Secretary operations
    # -------------------------------------------------------------------------

    def create(self, data: EncaixeCreate) -> Encaixe:
        """Open a new encaixe."""
        require_secretary(get_current_user())

        created = self.syndata.post("/encaixes", json_body=encaixe_create_to_api(data))
        if isinstance(created, dict) and pick(created, "chave", "CHAVE", "id", "ID") is not None:
            encaixe = encaixe_from_api(created)
        else:
            raise SyndataUnavailableError("Syndata did not return the new encaixe")

        logger.info(f"Encaixe {encaixe.chave} created for cliente {data.codigo_cliente}")
        return encaixe

    def update(self, chave: int, data: EncaixeUpdate) -> Encaixe:
        """
        Edit an open or awaiting encaixe.

        Raises:
            ValueError: If the encaixe is converted or excluded
        """
        require_secretary(get_current_user())

        payload = encaixe_update_to_api(data)
        with self.busy.hold(("encaixe", chave)):
            current = self.get(chave)
            self._require_pending(current, "edited")
            if not payload:
                return current
            self.syndata.put(f"/encaixes/{chave}", json_body=payload)
            updated = self.get(chave)

        logger.info(f"Encaixe {chave} updated: {', '.join(sorted(payload))}")
        return updated

    def assign(self, chave: int, tecnico_id: int) -> Encaixe:
        """
        Assign a technician.

        Uses PUT /encaixes/{id}/atribuir; backends without it get
        POST /encaixes/{id}/aceitar instead.
        """
        require_secretary(get_current_user())

        with self.busy.hold(("encaixe", chave)):
            current = self.get(chave)
            self._require_pending(current, "assigned")
            try:
                self.syndata.put(f"/encaixes/{chave}/atribuir", json_body={"tecnicoId": tecnico_id})
            except SyndataNotFoundError:
                logger.info(f"PUT /encaixes/{chave}/atribuir not available, using /aceitar")
                self.syndata.post(f"/encaixes/{chave}/aceitar", json_body={"tecnicoId": tecnico_id})
            updated = self.get(chave)

        logger.info(f"Encaixe {chave} assigned to tecnico {tecnico_id}")
        return updated

    def exclude(self, chave: int) -> bool:
        """
        Soft-delete an encaixe that was not converted.

        Raises:
            ValueError: If already converted
        """
        require_secretary(get_current_user())

        with self.busy.hold(("encaixe", chave)):
            current = self.get(chave)
            if current.status == EncaixeStatus.CONVERTED:
                raise ValueError(f"Encaixe {chave} was already converted and cannot be excluded")
            self.syndata.delete(f"/encaixes/{chave}")

        logger.info(f"Encaixe {chave} excluded")
        return True

    def convert(
        self,
        chave: int,
        data: date,
        hora_inicial: time,
        hora_final: time | None = None,
    ) -> Encaixe:
        """
        Turn an awaiting encaixe into an Agendamento.

        Creates the appointment, then links it back to the encaixe. If the
        link route fails, the encaixe is patched to converted directly.

        Args:
            chave: Encaixe key
            data: Appointment day
            hora_inicial: Appointment start
            hora_final: Optional planned end

        Returns:
            The encaixe with only status and chave_agendamento changed

        Raises:
            ValueError: If not awaiting confirmation, or client/technician missing
            EncaixeConversionError: If the appointment exists but both link attempts failed
        """
        require_secretary(get_current_user())

        with self.busy.hold(("encaixe", chave)):
            encaixe = self.get(chave)
            if not encaixe.is_convertible:
                raise ValueError(
                    f"Encaixe {chave} is {encaixe.status.label.lower()}, only awaiting encaixes can be converted"
                )
            if encaixe.codigo_cliente is None:
                raise ValueError(f"Encaixe {chave} has no client")
            if encaixe.codigo_responsavel is None:
                raise ValueError(f"Encaixe {chave} has no technician")

            agendamento = AgendamentoCreate(
                codigo_cliente=encaixe.codigo_cliente,
                nome_cliente=encaixe.nome_cliente or f"Cliente {encaixe.codigo_cliente}",
                codigo_responsavel=encaixe.codigo_responsavel,
                data=data,
                hora_inicial=hora_inicial,
                hora_final=hora_final,
                titulo=encaixe.titulo,
                agenda_abertura=encaixe.observacao,
                fone_cliente=encaixe.fone_cliente,
            )
            payload = agendamento_create_to_api(
                agendamento,
                codigo_grupo=self.syndata.config.codigo_grupo,
                cod_loja=self.syndata.config.cod_loja,
                opened_at=now_wallclock(),
            )
            created = self.syndata.post("/agendamentos", json_body=payload)
            agendamento_chave = to_int(pick(created, "chave", "CHAVE", "id", "ID"))
            if agendamento_chave is None:
                raise SyndataUnavailableError("Syndata did not return the new appointment key")
            logger.info(f"Encaixe {chave}: agendamento {agendamento_chave} created")

            self._link(chave, agendamento_chave)

        logger.info(f"Encaixe {chave} converted into agendamento {agendamento_chave}")
        return encaixe.model_copy(
            update={"status": EncaixeStatus.CONVERTED, "chave_agendamento": agendamento_chave}
        )

    def _link(self, chave: int, agendamento_chave: int) -> None:
        try:
            self.syndata.post(
                f"/encaixes/{chave}/converter",
                params={"agendamentoId": agendamento_chave},
            )
            return
        except SyndataError as e:
            logger.warning(f"Linking encaixe {chave} to agendamento {agendamento_chave} failed: {e}")

        try:
            self.syndata.put(
                f"/encaixes/{chave}",
                json_body={
                    "status": EncaixeStatus.CONVERTED.value,
                    "chaveAgendamento": agendamento_chave,
                },
            )
        except SyndataError as e:
            logger.error(
                f"Encaixe {chave} left awaiting with orphan agendamento {agendamento_chave}: {e}"
            )
            raise EncaixeConversionError(chave, agendamento_chave, cause=e) from e

    # -------------------------------------------------------------------------
    # Technician operations
    # -------------------------------------------------------------------------

    def request(self, chave: int) -> Encaixe:
        """
        Technician claims an open encaixe; it then waits for the secretary.

        Raises:
            ValueError: If the encaixe is not open or belongs to another technician
        """
        user = get_current_user()
        require_technician(user)

        with self.busy.hold(("encaixe", chave)):
            current = self.get(chave)
            if current.status != EncaixeStatus.OPEN:
                raise ValueError(f"Encaixe {chave} is {current.status.label.lower()} and cannot be requested")
            if current.codigo_responsavel not in (None, user.id):
                raise ValueError(f"Encaixe {chave} is assigned to another technician")

            self.syndata.post(f"/encaixes/{chave}/solicitar", json_body={"tecnicoId": user.id})
            updated = self.get(chave)

        logger.info(f"Encaixe {chave} requested by tecnico {user.id}")
        return updated

    @staticmethod
    def _require_pending(encaixe: Encaixe, verb: str) -> None:
        if encaixe.status not in (EncaixeStatus.OPEN, EncaixeStatus.AWAITING_CONFIRMATION):
            raise ValueError(f"Encaixe {encaixe.chave} is {encaixe.status.label.lower()} and cannot be {verb}")
