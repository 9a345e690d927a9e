from decimal import Decimal

import pytest

from bodega.core.exceptions import InvalidTransitionError, PermissionDeniedError, ValidationError, WorkflowBusyError
from bodega.models.location import LocationType
from bodega.schemas.location import LocationCreate
from bodega.schemas.workflow import DispatchCheckState, ReceivingState, ReceivingStep, ToastVariant
from bodega.services.inventory_service import InventoryService
from bodega.services.item_location_service import ItemLocationService
from bodega.services.location_service import LocationService
from bodega.workflows.adapters import SqlLocationDirectory, SqlUnitRegistry
from bodega.workflows.ports import CollectingFeedback
from bodega.workflows.receiving import ReceivingWorkflow, parse_received_quantity
from bodega.workflows.session_store import COMMAND_LOCK_TTL_SECONDS, RedisPreferenceStore, WorkflowSessionStore
from fakes import FakeLabels, FakeRedis


class Viewer:
    id = "u-view"
    name = "Sin Permisos"

    def has_permission(self, permission):
        return False


def make_wizard(db, actor, catalog, labels=None):
    feedback = CollectingFeedback()
    workflow = ReceivingWorkflow(
        ReceivingState(),
        actor,
        catalog=catalog,
        locations=SqlLocationDirectory(db),
        units=SqlUnitRegistry(db),
        labels=labels or FakeLabels(),
        feedback=feedback,
    )
    return workflow, feedback


async def _bins(db):
    building = await LocationService.add_location(
        db, LocationCreate(name="Bodega Central", code="BC", type=LocationType.BUILDING)
    )
    first = await LocationService.add_location(
        db, LocationCreate(name="Casilla 1", code="BC-01", type=LocationType.BIN, parent_id=building.id)
    )
    second = await LocationService.add_location(
        db, LocationCreate(name="Casilla 2", code="BC-02", type=LocationType.BIN, parent_id=building.id)
    )
    return first, second


def test_parse_received_quantity_falls_back_to_one():
    assert parse_received_quantity("12.5") == Decimal("12.5")
    assert parse_received_quantity("0") == Decimal("1")
    assert parse_received_quantity("-3") == Decimal("1")
    assert parse_received_quantity("muchas") == Decimal("1")
    assert parse_received_quantity("") == Decimal("1")
    assert parse_received_quantity("NaN") == Decimal("1")


async def test_first_receipt_becomes_the_default_location(db, operator, catalog):
    first, _ = await _bins(db)
    wizard, feedback = make_wizard(db, operator, catalog)

    await wizard.select_product("A-100")
    assert wizard.state.step == ReceivingStep.SELECT_LOCATION
    assert wizard.state.suggested_locations == []
    assert wizard.state.save_as_default is True

    await wizard.assign_new_location()
    await wizard.select_location(first.id)
    assert wizard.state.location_label == "Bodega Central > Casilla 1"
    await wizard.set_quantity("24")
    await wizard.set_document_id("OC-55")
    await wizard.confirm_and_register()

    unit = wizard.state.last_created_unit
    assert wizard.state.step == ReceivingStep.FINISHED
    assert (unit.unit_code, unit.location_id, unit.quantity) == ("U00001", first.id, 24)
    assert unit.created_by == "Ana Operadora"
    assert feedback.toasts[-1].title == "Unidad Registrada"
    [assignment] = await ItemLocationService.get_item_locations(db, "A-100")
    assert assignment.location_id == first.id

    again, _ = make_wizard(db, operator, catalog)
    await again.select_product("A-100")
    assert [(loc.id, loc.path) for loc in again.state.suggested_locations] == [
        (first.id, "Bodega Central > Casilla 1")
    ]
    assert again.state.save_as_default is False


async def test_suggested_location_registers_without_new_assignment(db, operator, catalog):
    first, _ = await _bins(db)
    await ItemLocationService.assign_item_to_location(db, "B-200", first.id, None, "seed")
    wizard, _ = make_wizard(db, operator, catalog)

    await wizard.select_product("B-200")
    await wizard.use_suggested_location(first.id)
    assert wizard.state.step == ReceivingStep.CONFIRM_SUGGESTED
    await wizard.set_quantity("abc")
    await wizard.confirm_and_register()

    assert wizard.state.last_created_unit.quantity == 1
    assert len(await ItemLocationService.get_item_locations(db, "B-200")) == 1


async def test_unsuggested_location_is_rejected(db, operator, catalog):
    _, second = await _bins(db)
    wizard, _ = make_wizard(db, operator, catalog)
    await wizard.select_product("A-100")
    with pytest.raises(ValidationError):
        await wizard.use_suggested_location(second.id)


async def test_new_location_without_default_leaves_assignments_alone(db, operator, catalog):
    _, second = await _bins(db)
    wizard, _ = make_wizard(db, operator, catalog)
    await wizard.select_product("A-100")
    await wizard.set_save_as_default(False)
    await wizard.assign_new_location()
    await wizard.select_location(second.id)
    await wizard.confirm_and_register()

    assert await ItemLocationService.get_item_locations(db, "A-100") == []
    units = await InventoryService.list_inventory_units(db)
    assert [u.location_id for u in units] == [second.id]


async def test_unknown_product_and_location_are_toasts(db, operator, catalog):
    wizard, feedback = make_wizard(db, operator, catalog)
    await wizard.select_product("Z-999")
    assert wizard.state.step == ReceivingStep.SELECT_PRODUCT
    assert feedback.toasts[-1].title == "Producto no Encontrado"

    await wizard.select_product("A-100")
    await wizard.assign_new_location()
    await wizard.select_location(4040)
    assert wizard.state.new_location_id is None
    assert feedback.toasts[-1].variant == ToastVariant.DESTRUCTIVE


async def test_confirm_without_location_is_refused(db, operator, catalog):
    wizard, feedback = make_wizard(db, operator, catalog)
    await wizard.select_product("A-100")
    await wizard.assign_new_location()
    await wizard.confirm_and_register()
    assert wizard.state.step == ReceivingStep.CONFIRM_NEW
    assert feedback.toasts[-1].title == "Datos Faltantes"


async def test_go_back_rewinds_one_step(db, operator, catalog):
    first, _ = await _bins(db)
    await ItemLocationService.assign_item_to_location(db, "A-100", first.id, None, "seed")
    wizard, _ = make_wizard(db, operator, catalog)
    await wizard.select_product("A-100")
    await wizard.use_suggested_location(first.id)

    await wizard.go_back()
    assert wizard.state.step == ReceivingStep.SELECT_LOCATION
    assert (wizard.state.new_location_id, wizard.state.location_label) == (None, "")
    assert wizard.state.save_as_default is False

    await wizard.go_back()
    assert wizard.state.step == ReceivingStep.SELECT_PRODUCT
    assert wizard.state.product is None

    await wizard.go_back()
    assert wizard.state.step == ReceivingStep.SELECT_PRODUCT


async def test_steps_are_enforced(db, operator, catalog):
    wizard, _ = make_wizard(db, operator, catalog)
    with pytest.raises(InvalidTransitionError):
        await wizard.confirm_and_register()
    with pytest.raises(InvalidTransitionError):
        await wizard.print_label()


async def test_receiving_needs_permission(db, catalog):
    wizard, _ = make_wizard(db, Viewer(), catalog)
    with pytest.raises(PermissionDeniedError):
        await wizard.select_product("A-100")


async def test_print_label_uses_location_path(db, operator, catalog):
    first, _ = await _bins(db)
    labels = FakeLabels()
    wizard, _ = make_wizard(db, operator, catalog, labels)
    await wizard.select_product("A-100")
    await wizard.assign_new_location()
    await wizard.select_location(first.id)
    await wizard.set_human_readable_id("LOTE-7")
    await wizard.confirm_and_register()

    pdf = await wizard.print_label()
    assert pdf.startswith(b"%PDF")
    [call] = labels.calls
    assert call["unit_code"] == "U00001"
    assert call["location_path"] == "Bodega Central > Casilla 1"
    assert call["human_readable_id"] == "LOTE-7"
    assert call["description"] == "Tornillo galvanizado 1/4"


async def test_reset_starts_over(db, operator, catalog):
    wizard, _ = make_wizard(db, operator, catalog)
    await wizard.select_product("A-100")
    await wizard.reset()
    assert wizard.state == ReceivingState()


# ── Session persistence ─────────────────────────────────────────────────────

async def test_session_store_round_trips_with_ttl():
    client = FakeRedis()
    store = WorkflowSessionStore(client, ttl_seconds=600)
    assert await store.load("receiving", "u-1", ReceivingState) == ReceivingState()

    await store.save("receiving", "u-1", ReceivingState(step=ReceivingStep.SELECT_LOCATION, quantity="5"))
    loaded = await store.load("receiving", "u-1", ReceivingState)
    assert (loaded.step, loaded.quantity) == (ReceivingStep.SELECT_LOCATION, "5")
    assert client.ttls["workflow:receiving:u-1"] == 600

    await store.clear("receiving", "u-1")
    assert client.data == {}


async def test_unreadable_session_starts_fresh():
    client = FakeRedis()
    client.data["workflow:dispatch_check:u-1"] = '{"step": "volando"}'
    store = WorkflowSessionStore(client, ttl_seconds=60)
    assert await store.load("dispatch_check", "u-1", DispatchCheckState) == DispatchCheckState()


async def test_command_lock_is_per_operator_and_kind():
    client = FakeRedis()
    store = WorkflowSessionStore(client, ttl_seconds=60)
    async with store.command_lock("dispatch_check", "u-1"):
        assert client.ttls["workflow-lock:dispatch_check:u-1"] == COMMAND_LOCK_TTL_SECONDS
        with pytest.raises(WorkflowBusyError):
            async with store.command_lock("dispatch_check", "u-1"):
                pass
        async with store.command_lock("dispatch_check", "u-2"):
            pass
        async with store.command_lock("receiving", "u-1"):
            pass
    assert client.data == {}


async def test_command_lock_released_on_error_and_not_stolen():
    client = FakeRedis()
    store = WorkflowSessionStore(client, ttl_seconds=60)
    with pytest.raises(RuntimeError):
        async with store.command_lock("receiving", "u-1"):
            raise RuntimeError("fallo")
    assert client.data == {}

    # expired and taken by another request meanwhile: leave that holder alone
    async with store.command_lock("receiving", "u-1"):
        client.data["workflow-lock:receiving:u-1"] = "otro"
    assert client.data["workflow-lock:receiving:u-1"] == "otro"


async def test_preferences_are_json_per_user():
    client = FakeRedis()
    prefs = RedisPreferenceStore(client)
    assert await prefs.get_preferences("u-1", "dispatchCheckPrefs") is None
    await prefs.save_preferences("u-1", "dispatchCheckPrefs", {"is_strict_mode": True})
    assert await prefs.get_preferences("u-1", "dispatchCheckPrefs") == {"is_strict_mode": True}
    assert "preferences:u-1:dispatchCheckPrefs" in client.data
