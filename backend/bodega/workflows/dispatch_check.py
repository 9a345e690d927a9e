"""Bodega WMS - Dispatch verification workflow.

A headless state machine: the HTTP layer (or a test) builds one around a
DispatchCheckState snapshot, calls a command, and persists the new snapshot.
All I/O goes through the injected ports; operator-visible messages go to
Feedback (toasts) or to ``state.notice`` / ``state.prompt``.

Steps: initial -> loading -> verifying -> finished. Verified quantities on a
line never decrease within one document.
"""
import logging
import re

from bodega.core.exceptions import (
    InvalidTransitionError,
    PermissionDeniedError,
    ValidationError,
    WarehouseError,
    WorkflowBusyError,
)
from bodega.models.dispatch import AssignmentStatus
from bodega.schemas.dispatch import DispatchLogCreate
from bodega.schemas.workflow import (
    CurrentDocument,
    DispatchCheckState,
    DispatchStep,
    DocumentOption,
    FinalizeAction,
    Notice,
    NoticeLevel,
    Progress,
    Prompt,
    PromptKind,
    Redirect,
    ToastVariant,
    VerificationItem,
)
from bodega.services.document_renderer import format_quantity
from bodega.workflows.ports import (
    Actor,
    DispatchMailer,
    DispatchStore,
    DocumentSource,
    Feedback,
    Notifier,
    PreferenceStore,
    ProductCatalog,
    ReceiptRenderer,
)

logger = logging.getLogger(__name__)

PERM_DISPATCH_CHECK_USE = "warehouse:dispatch-check:use"
PERM_DISPATCH_CHECK_SWITCH_MODE = "warehouse:dispatch-check:switch-mode"
PERM_DISPATCH_CHECK_MANUAL_OVERRIDE = "warehouse:dispatch-check:manual-override"
PERM_DISPATCH_CHECK_EXTERNAL_EMAIL = "warehouse:dispatch-check:send-email-external"

EVENT_DISPATCH_COMPLETED = "onDispatchCompleted"
PREFERENCES_KEY = "dispatchCheckPrefs"
MIN_SEARCH_LENGTH = 3

TRANSITIONS: dict[DispatchStep, frozenset[DispatchStep]] = {
    DispatchStep.INITIAL: frozenset({DispatchStep.LOADING}),
    DispatchStep.LOADING: frozenset({DispatchStep.VERIFYING, DispatchStep.INITIAL}),
    DispatchStep.VERIFYING: frozenset({DispatchStep.FINISHED, DispatchStep.INITIAL}),
    DispatchStep.FINISHED: frozenset({DispatchStep.LOADING, DispatchStep.INITIAL}),
}

ANY_STEP = frozenset(DispatchStep)
VERIFYING_ONLY = frozenset({DispatchStep.VERIFYING})

# command -> steps in which it may run
COMMAND_STEPS: dict[str, frozenset[DispatchStep]] = {
    "search_documents": frozenset({DispatchStep.INITIAL}),
    "select_document": frozenset({DispatchStep.INITIAL, DispatchStep.FINISHED}),
    "scan": VERIFYING_ONLY,
    "request_line_confirmation": VERIFYING_ONLY,
    "resolve_prompt": VERIFYING_ONLY,
    "set_manual_quantity_text": VERIFYING_ONLY,
    "commit_manual_quantity": VERIFYING_ONLY,
    "set_email_options": VERIFYING_ONLY,
    "request_finalize": VERIFYING_ONLY,
    "move_to_container": VERIFYING_ONLY,
    "proceed_to_next": frozenset({DispatchStep.FINISHED}),
    "set_strict_mode": ANY_STEP,
    "clear_notice": ANY_STEP,
    "go_back": ANY_STEP,
}

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_quantity(text: str | None) -> int:
    """Leading integer of the text; anything unparseable counts as 0."""
    match = _LEADING_INT.match(text or "")
    return int(match.group(1)) if match else 0


class DispatchCheckWorkflow:
    """Verify a sales document line by line against what is physically scanned."""

    def __init__(
        self,
        state: DispatchCheckState,
        actor: Actor,
        documents: DocumentSource,
        catalog: ProductCatalog,
        store: DispatchStore,
        notifier: Notifier,
        mailer: DispatchMailer,
        receipts: ReceiptRenderer,
        preferences: PreferenceStore,
        feedback: Feedback,
    ):
        self.state = state
        self.actor = actor
        self.documents = documents
        self.catalog = catalog
        self.store = store
        self.notifier = notifier
        self.mailer = mailer
        self.receipts = receipts
        self.preferences = preferences
        self.feedback = feedback
        self.receipt_pdf: bytes | None = None

    # ── Guards ───────────────────────────────────────────────────────────────

    def _authorize(self, permission: str) -> None:
        if not self.actor.has_permission(permission):
            raise PermissionDeniedError(f"Permiso requerido: {permission}", permission=permission)

    def _require(self, command: str) -> None:
        self._authorize(PERM_DISPATCH_CHECK_USE)
        allowed = COMMAND_STEPS[command]
        if self.state.step not in allowed:
            raise InvalidTransitionError(
                f"'{command}' no está disponible en el paso {self.state.step.value}.",
                command=command,
                step=self.state.step.value,
            )

    def _transition(self, target: DispatchStep) -> None:
        if target not in TRANSITIONS[self.state.step]:
            raise InvalidTransitionError(
                f"Transición inválida: {self.state.step.value} -> {target.value}.",
                source=self.state.step.value,
                target=target.value,
            )
        self.state.step = target

    def _find_line(self, line_id: int) -> VerificationItem:
        for item in self.state.items:
            if item.line_id == line_id:
                return item
        raise ValidationError(f"La línea {line_id} no existe en este documento.", line_id=line_id)

    def _fresh_state(self) -> DispatchCheckState:
        return DispatchCheckState(
            is_strict_mode=self.state.is_strict_mode,
            available_containers=self.state.available_containers,
        )

    # ── Queries ──────────────────────────────────────────────────────────────

    @property
    def progress(self) -> Progress:
        total = len(self.state.items)
        completed = sum(1 for item in self.state.items if item.is_complete)
        return Progress(
            completed=completed,
            total=total,
            percentage=completed / (total or 1) * 100,
            text=f"{completed} de {total} líneas completadas",
        )

    @property
    def is_verification_complete(self) -> bool:
        return bool(self.state.items) and all(item.is_complete for item in self.state.items)

    @property
    def has_discrepancy(self) -> bool:
        return any(item.verified_quantity != item.required_quantity for item in self.state.items)

    # ── Entry ────────────────────────────────────────────────────────────────

    async def start(self, doc_id: str | None = None, container_id: int | None = None) -> None:
        """Open the screen, optionally deep-linked to a document (and its container)."""
        self._authorize(PERM_DISPATCH_CHECK_USE)
        prefs = await self.preferences.get_preferences(str(self.actor.id), PREFERENCES_KEY) or {}
        self.state = DispatchCheckState(is_strict_mode=bool(prefs.get("is_strict_mode", False)))
        if doc_id:
            await self.select_document(doc_id, container_id)

    async def search_documents(self, term: str) -> list[DocumentOption]:
        self._require("search_documents")
        term = term.strip()
        if len(term) < MIN_SEARCH_LENGTH:
            self.state.document_options = []
            return []
        try:
            results = await self.documents.search_documents(term)
        except WarehouseError as exc:
            logger.error("Error searching documents for '%s': %s", term, exc.message)
            self.feedback.toast("Error de Búsqueda", exc.message, ToastVariant.DESTRUCTIVE)
            self.state.document_options = []
            return []
        self.state.document_options = [DocumentOption(value=r.id, label=r.label) for r in results]
        return self.state.document_options

    async def select_document(self, document_id: str, container_id: int | None = None) -> None:
        self._require("select_document")
        if self.state.is_busy:
            raise WorkflowBusyError("Ya hay una carga de documento en curso.")

        self._transition(DispatchStep.LOADING)
        self.state = DispatchCheckState(
            step=DispatchStep.LOADING,
            is_busy=True,
            is_strict_mode=self.state.is_strict_mode,
            available_containers=self.state.available_containers,
        )
        try:
            data = await self.documents.get_invoice_data(document_id)
            if data is None:
                raise ValidationError("No se encontraron datos para este documento.", document_id=document_id)

            containers = await self.store.list_containers()
            items: list[VerificationItem] = []
            for line in data.lines:
                product = await self.catalog.get_product(line.item_code)
                items.append(
                    VerificationItem(
                        line_id=line.line_id,
                        item_code=line.item_code,
                        description=(product.description if product and product.description else None)
                        or line.description
                        or "N/A",
                        barcode=(product.barcode if product else None) or "",
                        required_quantity=line.quantity,
                    )
                )

            next_document_id = None
            if container_id is not None:
                next_document_id = await self.store.get_next_document_in_container(container_id, document_id)
        except WarehouseError as exc:
            logger.error("Failed to load document %s: %s", document_id, exc.message)
            self.feedback.toast("Error", exc.message, ToastVariant.DESTRUCTIVE)
            self.state.is_busy = False
            self._transition(DispatchStep.INITIAL)
            return

        header = data.header
        self.state.current_document = CurrentDocument(
            id=header.document_id,
            type=header.document_type,
            client_id=header.client_id,
            client_name=header.client_name,
            shipping_address=header.shipping_address,
            date=header.date,
            erp_user=header.erp_user,
            container_id=container_id,
        )
        self.state.items = items
        self.state.available_containers = [c for c in containers if c.id != container_id]
        self.state.next_document_id = next_document_id
        self.state.is_busy = False
        self._transition(DispatchStep.VERIFYING)
        logger.info("Document %s loaded for verification by %s (%d lines)", document_id, self.actor.name, len(items))

    # ── Verifying ────────────────────────────────────────────────────────────

    async def scan(self, code: str) -> None:
        self._require("scan")
        scanned = code.strip()
        if not scanned:
            return
        needle = scanned.lower()
        target = next(
            (
                item
                for item in self.state.items
                if (item.barcode and item.barcode.lower() == needle) or item.item_code.lower() == needle
            ),
            None,
        )
        self.state.last_scanned_code = target.item_code if target else None

        if target is None:
            self.state.notice = Notice(
                title="Artículo Incorrecto",
                message=f'El código "{scanned}" no corresponde a ningún artículo de este despacho.',
            )
            return

        if target.is_complete:
            self.state.notice = Notice(
                title="Cantidad Completa",
                message=f'Ya se verificaron todas las unidades de "{target.description}".',
                level=NoticeLevel.INFO,
            )
            return

        if self.state.is_strict_mode:
            target.verified_quantity += 1
            target.display_verified_quantity = format_quantity(target.verified_quantity)
        else:
            self._open_line_prompt(target)

    def _open_line_prompt(self, item: VerificationItem) -> None:
        self.state.prompt = Prompt(
            kind=PromptKind.LINE_COMPLETE,
            title=f'Confirmar cantidad para "{item.description}"',
            message=f"¿Están las {format_quantity(item.required_quantity)} unidades completas?",
            confirm_text="Sí, Completar",
            cancel_text="No, Ingresar Manual",
            line_id=item.line_id,
        )

    async def request_line_confirmation(self, line_id: int) -> None:
        """Operator tapped a line's indicator. Ignored in strict mode and on complete lines."""
        self._require("request_line_confirmation")
        if self.state.is_strict_mode:
            return
        item = self._find_line(line_id)
        if not item.is_complete:
            self._open_line_prompt(item)

    async def resolve_prompt(self, accept: bool) -> None:
        self._require("resolve_prompt")
        prompt = self.state.prompt
        if prompt is None:
            raise InvalidTransitionError("No hay ninguna confirmación pendiente.")
        self.state.prompt = None

        if prompt.kind == PromptKind.LINE_COMPLETE:
            item = self._find_line(prompt.line_id)
            if accept:
                item.verified_quantity = max(item.verified_quantity, item.required_quantity)
                item.display_verified_quantity = format_quantity(item.verified_quantity)
                item.is_manual_override = True
                self.state.focus_line_id = None
            else:
                self.state.focus_line_id = item.line_id
        elif prompt.kind == PromptKind.ZERO_LINES:
            if accept:
                self.state.is_move_open = True
            else:
                await self._finalize(prompt.action or FinalizeAction.FINISH)
        elif prompt.kind == PromptKind.DISCREPANCY:
            if accept:
                await self._finalize(prompt.action or FinalizeAction.FINISH)

    async def dismiss_prompt(self) -> None:
        self._require("resolve_prompt")
        self.state.prompt = None

    async def set_manual_quantity_text(self, line_id: int, text: str) -> None:
        self._require("set_manual_quantity_text")
        self._authorize(PERM_DISPATCH_CHECK_MANUAL_OVERRIDE)
        item = self._find_line(line_id)
        item.display_verified_quantity = text
        item.is_manual_override = True

    async def commit_manual_quantity(self, line_id: int, text: str | None = None) -> None:
        """Apply the typed quantity (on blur). Surplus is accepted with a notice; decreases are refused."""
        self._require("commit_manual_quantity")
        self._authorize(PERM_DISPATCH_CHECK_MANUAL_OVERRIDE)
        item = self._find_line(line_id)
        raw = item.display_verified_quantity if text is None else text
        quantity = parse_quantity(raw)

        if quantity < item.verified_quantity:
            self.state.notice = Notice(
                title="Cantidad no Permitida",
                message=(
                    f"Ya se verificaron {format_quantity(item.verified_quantity)} unidades; "
                    "la cantidad no puede disminuir."
                ),
                level=NoticeLevel.WARNING,
            )
            item.display_verified_quantity = format_quantity(item.verified_quantity)
            return

        if quantity > item.required_quantity:
            self.state.notice = Notice(
                title="Cantidad Excedida",
                message=(
                    f"Has verificado {quantity} unidades, pero solo se requieren "
                    f"{format_quantity(item.required_quantity)}."
                ),
                level=NoticeLevel.WARNING,
            )
        item.verified_quantity = quantity
        item.display_verified_quantity = str(quantity)
        item.is_manual_override = True
        self.state.focus_line_id = None

    async def set_strict_mode(self, is_strict_mode: bool) -> None:
        self._require("set_strict_mode")
        self._authorize(PERM_DISPATCH_CHECK_SWITCH_MODE)
        self.state.is_strict_mode = is_strict_mode
        await self.preferences.save_preferences(
            str(self.actor.id), PREFERENCES_KEY, {"is_strict_mode": is_strict_mode}
        )

    async def set_email_options(self, recipients: list[str], external_email: str = "", body: str = "") -> None:
        self._require("set_email_options")
        external_email = external_email.strip()
        if external_email:
            self._authorize(PERM_DISPATCH_CHECK_EXTERNAL_EMAIL)
        self.state.recipients = list(dict.fromkeys(r.strip() for r in recipients if r.strip()))
        self.state.external_email = external_email
        self.state.email_body = body

    async def clear_notice(self) -> None:
        self._require("clear_notice")
        self.state.notice = None

    # ── Finalize ─────────────────────────────────────────────────────────────

    async def request_finalize(self, action: FinalizeAction = FinalizeAction.FINISH) -> None:
        """
        Finalize guard, evaluated in order:
        1. a required line still at 0 -> choose between moving the document or finalizing anyway;
        2. any other mismatch (short or surplus) -> confirm finalizing with discrepancies;
        3. otherwise finalize now.
        """
        self._require("request_finalize")
        if self.state.is_busy:
            raise WorkflowBusyError("Ya se está finalizando este despacho.")

        if action == FinalizeAction.EMAIL and not (self.state.recipients or self.state.external_email):
            self.feedback.toast(
                "Destinatarios Requeridos",
                "Selecciona al menos un destinatario para enviar el correo.",
                ToastVariant.DESTRUCTIVE,
            )
            return

        if any(item.verified_quantity == 0 and item.required_quantity > 0 for item in self.state.items):
            self.state.prompt = Prompt(
                kind=PromptKind.ZERO_LINES,
                title="Finalizar con Líneas en Cero",
                message=(
                    "Algunos artículos no fueron verificados (cantidad 0). ¿Deseas mover esta factura "
                    "a otra ruta para completar el chequeo o finalizarla con estas discrepancias?"
                ),
                confirm_text="Mover a Contenedor",
                cancel_text="Finalizar con Discrepancias",
                is_destructive=True,
                action=action,
            )
            return

        if self.has_discrepancy:
            self.state.prompt = Prompt(
                kind=PromptKind.DISCREPANCY,
                title="Finalizar con Discrepancias",
                message=(
                    "Existen diferencias entre las cantidades requeridas y las verificadas. "
                    "¿Estás seguro de que deseas finalizar y registrar este despacho?"
                ),
                confirm_text="Sí, Completar",
                cancel_text="Cancelar",
                is_destructive=True,
                action=action,
            )
            return

        await self._finalize(action)

    async def _finalize(self, action: FinalizeAction) -> None:
        """Write the log, then the side effects. Once logged, the step is finished whatever happens next."""
        if self.state.is_busy:
            raise WorkflowBusyError("Ya se está finalizando este despacho.")
        document = self.state.current_document
        items = self.state.items
        has_discrepancy = self.has_discrepancy

        self.state.is_busy = True
        try:
            log = await self.store.log_dispatch(
                DispatchLogCreate(
                    document_id=document.id,
                    document_type=document.type,
                    verified_by_user_id=str(self.actor.id),
                    verified_by_user_name=self.actor.name,
                    items=[item.model_dump(mode="json") for item in items],
                    notes=f"Acción: {action.value}",
                )
            )
        except WarehouseError as exc:
            logger.exception("Failed to finalize dispatch %s", document.id)
            self.feedback.toast("Error al Finalizar", exc.message, ToastVariant.DESTRUCTIVE)
            self.state.is_busy = False
            return

        self._transition(DispatchStep.FINISHED)
        status = AssignmentStatus.DISCREPANCY if has_discrepancy else AssignmentStatus.COMPLETED
        try:
            await self.store.update_assignment_status(document.id, status)
        except WarehouseError as exc:
            logger.error("Assignment status for %s not updated: %s", document.id, exc.message)
            self.feedback.toast("Error al Actualizar Ruta", exc.message, ToastVariant.DESTRUCTIVE)

        self.notifier.trigger_event(EVENT_DISPATCH_COMPLETED, log)

        if action == FinalizeAction.PDF:
            try:
                self.receipt_pdf = self.receipts.render(document, items, self.actor.name)
            except WarehouseError as exc:
                self.feedback.toast("Error al Generar PDF", exc.message, ToastVariant.DESTRUCTIVE)
        elif action == FinalizeAction.EMAIL:
            to = self.state.recipients or [self.state.external_email]
            cc = self.state.external_email if self.state.recipients else ""
            try:
                await self.mailer.send_dispatch_email(
                    to=to,
                    cc=cc,
                    body=self.state.email_body,
                    document=document,
                    items=items,
                    verified_by=self.actor.name,
                )
            except WarehouseError as exc:
                self.feedback.toast("Error al Enviar Correo", exc.message, ToastVariant.DESTRUCTIVE)

        self.state.is_busy = False
        self.feedback.toast("Verificación Finalizada", "El despacho ha sido registrado.")
        logger.info("Dispatch %s finalized by %s (%s, %s)", document.id, self.actor.name, action.value, status.value)

    # ── Container navigation ─────────────────────────────────────────────────

    async def move_to_container(self, target_container_id: int) -> None:
        """Send an incomplete document to another route; what was verified so far is logged."""
        self._require("move_to_container")
        document = self.state.current_document
        if document.container_id is None:
            self.feedback.toast(
                "Error al Mover", "Este documento no pertenece a ningún contenedor.", ToastVariant.DESTRUCTIVE
            )
            self.state.is_move_open = False
            return
        if self.state.is_busy:
            raise WorkflowBusyError("Ya hay una operación en curso.")

        self.state.is_busy = True
        try:
            await self.store.move_assignment_to_container(document.id, target_container_id)
            await self.store.update_assignment_status(document.id, AssignmentStatus.PARTIAL)
            await self.store.log_dispatch(
                DispatchLogCreate(
                    document_id=document.id,
                    document_type=document.type,
                    verified_by_user_id=str(self.actor.id),
                    verified_by_user_name=self.actor.name,
                    items=[item.model_dump(mode="json") for item in self.state.items if item.verified_quantity > 0],
                    notes=f"Movido al contenedor {target_container_id}.",
                )
            )
        except WarehouseError as exc:
            logger.error("Failed to move %s to container %s: %s", document.id, target_container_id, exc.message)
            self.feedback.toast("Error al Mover", exc.message, ToastVariant.DESTRUCTIVE)
            self.state.is_busy = False
            self.state.is_move_open = False
            return

        self.feedback.toast("Documento Movido", f"Se ha movido {document.id} a la nueva ruta.")
        self._transition(DispatchStep.INITIAL)
        self.state = self._fresh_state()
        self.state.redirect = Redirect.CONTAINER_LIST

    async def proceed_to_next(self) -> None:
        self._require("proceed_to_next")
        document = self.state.current_document
        if document and document.container_id is not None and self.state.next_document_id:
            await self.select_document(self.state.next_document_id, document.container_id)
        else:
            await self.go_back()

    async def go_back(self) -> None:
        """Back to the container list when working a route, otherwise back to the search."""
        self._require("go_back")
        document = self.state.current_document
        self.state = self._fresh_state()
        if document and document.container_id is not None:
            self.state.redirect = Redirect.CONTAINER_LIST

    async def reset(self) -> None:
        self._authorize(PERM_DISPATCH_CHECK_USE)
        self.state = self._fresh_state()
