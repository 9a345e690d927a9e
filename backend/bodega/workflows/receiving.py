"""Bodega WMS - Receiving wizard: product -> location -> confirm -> labeled unit."""
import logging
from decimal import Decimal, InvalidOperation

from bodega.core.exceptions import (
    InvalidTransitionError,
    PermissionDeniedError,
    ValidationError,
    WarehouseError,
    WorkflowBusyError,
)
from bodega.schemas.inventory import InventoryUnitCreate
from bodega.schemas.workflow import ReceivingState, ReceivingStep, ToastVariant
from bodega.workflows.ports import Actor, Feedback, LabelRenderer, LocationDirectory, ProductCatalog, UnitRegistry

logger = logging.getLogger(__name__)

PERM_RECEIVING_USE = "warehouse:receiving-wizard:use"

CONFIRM_STEPS = frozenset({ReceivingStep.CONFIRM_SUGGESTED, ReceivingStep.CONFIRM_NEW})

TRANSITIONS: dict[ReceivingStep, frozenset[ReceivingStep]] = {
    ReceivingStep.SELECT_PRODUCT: frozenset({ReceivingStep.SELECT_LOCATION}),
    ReceivingStep.SELECT_LOCATION: frozenset(
        {ReceivingStep.CONFIRM_SUGGESTED, ReceivingStep.CONFIRM_NEW, ReceivingStep.SELECT_PRODUCT}
    ),
    ReceivingStep.CONFIRM_SUGGESTED: frozenset({ReceivingStep.FINISHED, ReceivingStep.SELECT_LOCATION}),
    ReceivingStep.CONFIRM_NEW: frozenset({ReceivingStep.FINISHED, ReceivingStep.SELECT_LOCATION}),
    ReceivingStep.FINISHED: frozenset(),
}


def parse_received_quantity(text: str | None) -> Decimal:
    """Falls back to 1 for blank, unparseable, zero or negative input."""
    try:
        value = Decimal((text or "").strip())
    except InvalidOperation:
        return Decimal("1")
    if not value.is_finite() or value <= 0:
        return Decimal("1")
    return value


class ReceivingWorkflow:

    def __init__(
        self,
        state: ReceivingState,
        actor: Actor,
        catalog: ProductCatalog,
        locations: LocationDirectory,
        units: UnitRegistry,
        labels: LabelRenderer,
        feedback: Feedback,
    ):
        self.state = state
        self.actor = actor
        self.catalog = catalog
        self.locations = locations
        self.units = units
        self.labels = labels
        self.feedback = feedback

    def _require(self, *steps: ReceivingStep) -> None:
        if not self.actor.has_permission(PERM_RECEIVING_USE):
            raise PermissionDeniedError(f"Permiso requerido: {PERM_RECEIVING_USE}", permission=PERM_RECEIVING_USE)
        if steps and self.state.step not in steps:
            raise InvalidTransitionError(
                f"Acción no disponible en el paso {self.state.step.value}.", step=self.state.step.value
            )

    def _transition(self, target: ReceivingStep) -> None:
        if target not in TRANSITIONS[self.state.step]:
            raise InvalidTransitionError(
                f"Transición inválida: {self.state.step.value} -> {target.value}.",
                source=self.state.step.value,
                target=target.value,
            )
        self.state.step = target

    async def select_product(self, product_id: str) -> None:
        """Load placement suggestions; with none on record, the new placement becomes the default."""
        self._require(ReceivingStep.SELECT_PRODUCT)
        try:
            product = await self.catalog.get_product(product_id)
            if product is None:
                self.feedback.toast("Producto no Encontrado", f"No existe el producto {product_id}.", ToastVariant.DESTRUCTIVE)
                return
            suggested = await self.locations.get_suggested_locations(product.id)
        except WarehouseError as exc:
            self.feedback.toast("Error de Carga", exc.message, ToastVariant.DESTRUCTIVE)
            return

        self.state.product = product
        self.state.suggested_locations = suggested
        self.state.save_as_default = not suggested
        self._transition(ReceivingStep.SELECT_LOCATION)

    async def use_suggested_location(self, location_id: int) -> None:
        self._require(ReceivingStep.SELECT_LOCATION)
        option = next((loc for loc in self.state.suggested_locations if loc.id == location_id), None)
        if option is None:
            raise ValidationError("La ubicación no está entre las sugeridas para este producto.", location_id=location_id)
        self.state.selected_location_id = option.id
        self.state.new_location_id = option.id
        self.state.location_label = option.path
        self.state.save_as_default = False
        self._transition(ReceivingStep.CONFIRM_SUGGESTED)

    async def assign_new_location(self) -> None:
        self._require(ReceivingStep.SELECT_LOCATION)
        self._transition(ReceivingStep.CONFIRM_NEW)

    async def select_location(self, location_id: int) -> None:
        self._require(ReceivingStep.CONFIRM_NEW)
        option = await self.locations.get_location(location_id)
        if option is None:
            self.feedback.toast("Ubicación no Encontrada", f"No existe la ubicación {location_id}.", ToastVariant.DESTRUCTIVE)
            return
        self.state.new_location_id = option.id
        self.state.location_label = option.path

    async def set_quantity(self, text: str) -> None:
        self._require(*CONFIRM_STEPS)
        self.state.quantity = text

    async def set_human_readable_id(self, value: str) -> None:
        self._require(*CONFIRM_STEPS)
        self.state.human_readable_id = value

    async def set_document_id(self, value: str) -> None:
        self._require(*CONFIRM_STEPS)
        self.state.document_id = value

    async def set_save_as_default(self, value: bool) -> None:
        self._require(ReceivingStep.SELECT_LOCATION, *CONFIRM_STEPS)
        self.state.save_as_default = value

    async def confirm_and_register(self) -> None:
        self._require(*CONFIRM_STEPS)
        if self.state.is_submitting:
            raise WorkflowBusyError("El registro de la unidad ya está en curso.")
        product = self.state.product
        location_id = self.state.new_location_id
        if product is None or location_id is None or not self.state.quantity:
            self.feedback.toast("Datos Faltantes", "Selecciona producto, ubicación y cantidad.", ToastVariant.DESTRUCTIVE)
            return

        self.state.is_submitting = True
        try:
            unit = await self.units.add_inventory_unit(
                InventoryUnitCreate(
                    product_id=product.id,
                    location_id=location_id,
                    quantity=parse_received_quantity(self.state.quantity),
                    human_readable_id=self.state.human_readable_id or None,
                    document_id=self.state.document_id or None,
                    notes=f"Recibido vía asistente: {self.state.quantity} unidades.",
                ),
                self.actor.name,
            )
            if self.state.save_as_default:
                await self.units.assign_item_to_location(product.id, location_id, None, self.actor.name)
        except WarehouseError as exc:
            logger.error("Failed to register unit for %s: %s", product.id, exc.message)
            self.feedback.toast("Error al Registrar", exc.message, ToastVariant.DESTRUCTIVE)
            return
        finally:
            self.state.is_submitting = False

        self.state.last_created_unit = unit
        self._transition(ReceivingStep.FINISHED)
        self.feedback.toast("Unidad Registrada", f"Se creó la unidad {unit.unit_code}.")

    async def go_back(self) -> None:
        """Rewind one step and drop whatever that step captured."""
        self._require()
        step = self.state.step
        if step in (ReceivingStep.SELECT_PRODUCT, ReceivingStep.FINISHED):
            return
        if step == ReceivingStep.SELECT_LOCATION:
            self._transition(ReceivingStep.SELECT_PRODUCT)
            self.state.product = None
            self.state.suggested_locations = []
            self.state.save_as_default = True
            return
        self._transition(ReceivingStep.SELECT_LOCATION)
        self.state.selected_location_id = None
        self.state.new_location_id = None
        self.state.location_label = ""
        self.state.save_as_default = not self.state.suggested_locations

    async def reset(self) -> None:
        self._require()
        self.state = ReceivingState()

    async def print_label(self) -> bytes | None:
        self._require(ReceivingStep.FINISHED)
        unit = self.state.last_created_unit
        product = self.state.product
        if unit is None or product is None:
            self.feedback.toast(
                "Error de Datos", "No hay información suficiente para imprimir la etiqueta.", ToastVariant.DESTRUCTIVE
            )
            return None
        try:
            path = await self.locations.get_location_path(unit.location_id)
            return self.labels.render(
                unit_code=unit.unit_code,
                product_id=unit.product_id,
                description=product.description,
                human_readable_id=unit.human_readable_id,
                document_id=unit.document_id,
                location_path=path,
                created_by=self.actor.name,
            )
        except WarehouseError as exc:
            self.feedback.toast("Error al generar QR/Barcode", exc.message, ToastVariant.DESTRUCTIVE)
            return None
