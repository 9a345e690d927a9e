import pytest

from bodega.core.exceptions import (
    DuplicateCodeError,
    InvalidHierarchyError,
    LocationInUseError,
    LocationNotFoundError,
    ValidationError,
)
from bodega.models.location import LocationType
from bodega.schemas.inventory import InventoryUnitCreate
from bodega.schemas.location import LocationCreate, LocationUpdate, RackClone, RackTemplate
from bodega.services.inventory_service import InventoryService
from bodega.services.item_location_service import ItemLocationService
from bodega.services.location_service import (
    LocationService,
    filter_locations_by_path,
    get_selectable_locations,
    rack_template_rows,
    render_location_path,
)


class Node:
    def __init__(self, id, name, parent_id=None):
        self.id = id
        self.name = name
        self.parent_id = parent_id


async def _building_zone(db):
    building = await LocationService.add_location(
        db, LocationCreate(name="Bodega Central", code="BC", type=LocationType.BUILDING)
    )
    zone = await LocationService.add_location(
        db, LocationCreate(name="Zona A", code="BC-ZA", type=LocationType.ZONE, parent_id=building.id)
    )
    return building, zone


# ── Pure helpers ────────────────────────────────────────────────────────────

def test_render_location_path_walks_to_root():
    nodes = [Node(1, "Bodega"), Node(2, "Zona A", 1), Node(3, "Rack 1", 2)]
    assert render_location_path(3, nodes) == "Bodega > Zona A > Rack 1"
    assert render_location_path(None, nodes) == "N/A"
    assert render_location_path(99, nodes) == "N/A"


def test_render_location_path_terminates_on_cycle():
    nodes = [Node(1, "Uno", 2), Node(2, "Dos", 1)]
    assert render_location_path(1, nodes) == "Dos > Uno"


def test_selectable_locations_are_leaves():
    nodes = [Node(1, "Bodega"), Node(2, "Zona A", 1), Node(3, "Rack 1", 2), Node(4, "Zona B", 1)]
    assert [n.id for n in get_selectable_locations(nodes)] == [3, 4]


def test_filter_locations_by_path_matches_any_segment():
    nodes = [Node(1, "Bodega"), Node(2, "Zona A", 1), Node(3, "Rack 1", 2), Node(4, "Zona B", 1)]
    assert [n.id for n, _ in filter_locations_by_path("zona a", nodes)] == [3]
    assert len(filter_locations_by_path("*", nodes)) == 2


def test_rack_template_row_count_and_codes():
    rows = rack_template_rows(RackTemplate(name="Rack 1", prefix="R1", levels=2, positions=3, depth=2))
    assert len(rows) == 2 + 2 * 3 + 2 * 3 * 2
    codes = [code for _, code, _, _ in rows]
    assert codes[:5] == ["R1-A", "R1-A-01", "R1-A-01-F", "R1-A-01-T", "R1-A-02"]
    assert ("Fondo", "R1-B-03-T", "bin", "R1-B-03") in rows


def test_rack_template_rejects_depth_over_two():
    template = RackTemplate.model_construct(mode="template", name="R", prefix="R", levels=1, positions=1, depth=3)
    with pytest.raises(ValidationError):
        rack_template_rows(template)


# ── Store ───────────────────────────────────────────────────────────────────

async def test_add_location_rejects_duplicate_code(db):
    await _building_zone(db)
    with pytest.raises(DuplicateCodeError):
        await LocationService.add_location(db, LocationCreate(name="Otra", code="BC", type=LocationType.BUILDING))


async def test_add_location_requires_existing_parent(db):
    with pytest.raises(LocationNotFoundError):
        await LocationService.add_location(
            db, LocationCreate(name="Zona X", code="ZX", type=LocationType.ZONE, parent_id=999)
        )


async def test_bulk_template_creates_exact_row_count(db):
    _, zone = await _building_zone(db)
    created = await LocationService.add_bulk_locations(
        db, RackTemplate(name="Rack 1", prefix="R1", parent_id=zone.id, levels=3, positions=4, depth=2)
    )
    assert len(created) == 1 + 3 + 3 * 4 + 3 * 4 * 2
    rack = created[0]
    assert (rack.code, rack.parent_id, rack.type) == ("R1", zone.id, "rack")
    assert await LocationService.get_location_path(db, created[-1].id) == (
        "Bodega Central > Zona A > Rack 1 > Nivel C > Posición 04 > Fondo"
    )


async def test_bulk_template_is_all_or_nothing(db):
    _, zone = await _building_zone(db)
    await LocationService.add_location(
        db, LocationCreate(name="Choque", code="R1-B-02", type=LocationType.BIN, parent_id=zone.id)
    )
    before = len(await LocationService.get_locations(db))
    with pytest.raises(DuplicateCodeError) as exc:
        await LocationService.add_bulk_locations(
            db, RackTemplate(name="Rack 1", prefix="R1", parent_id=zone.id, levels=2, positions=2, depth=0)
        )
    assert exc.value.details["codes"] == ["R1-B-02"]
    assert len(await LocationService.get_locations(db)) == before


async def test_clone_rack_is_isomorphic(db):
    _, zone = await _building_zone(db)
    source = await LocationService.add_bulk_locations(
        db, RackTemplate(name="Rack 1", prefix="R1", parent_id=zone.id, levels=2, positions=2, depth=1)
    )
    clone = await LocationService.add_bulk_locations(
        db, RackClone(source_rack_id=source[0].id, new_name="Rack 2", new_prefix="R2")
    )

    assert len(clone) == len(source)
    assert clone[0].name == "Rack 2" and clone[0].parent_id == zone.id
    assert {loc.id for loc in clone}.isdisjoint({loc.id for loc in source})
    assert sorted(loc.code for loc in clone) == sorted(loc.code.replace("R1", "R2", 1) for loc in source)

    source_parent_codes = {loc.id: loc.code for loc in source}
    clone_parent_codes = {loc.id: loc.code for loc in clone}
    source_edges = sorted(
        (loc.code, source_parent_codes.get(loc.parent_id)) for loc in source[1:]
    )
    clone_edges = sorted(
        (loc.code.replace("R2", "R1", 1), clone_parent_codes[loc.parent_id].replace("R2", "R1", 1))
        for loc in clone[1:]
    )
    assert clone_edges == source_edges


async def test_update_location_rejects_cycles(db):
    building, zone = await _building_zone(db)
    rack = await LocationService.add_location(
        db, LocationCreate(name="Rack 1", code="R1", type=LocationType.RACK, parent_id=zone.id)
    )
    with pytest.raises(InvalidHierarchyError):
        await LocationService.update_location(db, building.id, LocationUpdate(parent_id=rack.id))
    with pytest.raises(InvalidHierarchyError):
        await LocationService.update_location(db, zone.id, LocationUpdate(parent_id=zone.id))

    moved = await LocationService.update_location(db, rack.id, LocationUpdate(parent_id=building.id, name="Rack Uno"))
    assert (moved.parent_id, moved.name) == (building.id, "Rack Uno")


async def test_delete_location_removes_subtree(db):
    building, zone = await _building_zone(db)
    created = await LocationService.add_bulk_locations(
        db, RackTemplate(name="Rack 1", prefix="R1", parent_id=zone.id, levels=1, positions=2, depth=0)
    )
    deleted = await LocationService.delete_location(db, zone.id)
    assert set(deleted) == {zone.id, *(loc.id for loc in created)}
    remaining = await LocationService.get_locations(db)
    assert [loc.id for loc in remaining] == [building.id]


async def test_delete_location_refused_when_descendant_has_assignment(db):
    _, zone = await _building_zone(db)
    created = await LocationService.add_bulk_locations(
        db, RackTemplate(name="Rack 1", prefix="R1", parent_id=zone.id, levels=1, positions=1, depth=0)
    )
    await ItemLocationService.assign_item_to_location(db, "A-100", created[-1].id, None, "tester")
    count = len(await LocationService.get_locations(db))

    with pytest.raises(LocationInUseError):
        await LocationService.delete_location(db, zone.id)
    assert len(await LocationService.get_locations(db)) == count


async def test_delete_location_refused_when_unit_stored(db):
    _, zone = await _building_zone(db)
    await InventoryService.add_inventory_unit(
        db, InventoryUnitCreate(product_id="A-100", location_id=zone.id), "tester"
    )
    with pytest.raises(LocationInUseError):
        await LocationService.delete_location(db, zone.id)


async def test_search_locations_by_path_returns_only_leaves(db):
    _, zone = await _building_zone(db)
    await LocationService.add_bulk_locations(
        db, RackTemplate(name="Rack 1", prefix="R1", parent_id=zone.id, levels=1, positions=2, depth=0)
    )
    matches = await LocationService.search_locations_by_path(db, "posición 02")
    assert [(loc.code, path) for loc, path in matches] == [
        ("R1-A-02", "Bodega Central > Zona A > Rack 1 > Nivel A > Posición 02")
    ]
