"""Bodega WMS - LocationService: the building > zone > rack > shelf > bin tree."""
import logging
from collections.abc import Iterable, Sequence
from typing import Protocol

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bodega.core.exceptions import (
    DuplicateCodeError,
    InvalidHierarchyError,
    LocationInUseError,
    LocationNotFoundError,
    ValidationError,
)
from bodega.models.inventory import InventoryUnit
from bodega.models.location import ItemLocation, Location, LocationType
from bodega.schemas.location import LocationCreate, LocationUpdate, RackClone, RackTemplate
from bodega.services.settings_service import SettingsService

logger = logging.getLogger(__name__)

PATH_SEPARATOR = " > "


class TreeNode(Protocol):
    id: int
    name: str
    parent_id: int | None


# ── Pure tree helpers (no I/O) ──────────────────────────────────────────────

def render_location_path(
    location_id: int | None,
    locations: Iterable[TreeNode],
    separator: str = PATH_SEPARATOR,
) -> str:
    """
    Join names from the root down to location_id.

    The walk stops at a missing parent or at a node already visited, so a
    corrupted parent_id loop still yields a finite path.
    """
    if not location_id:
        return "N/A"
    by_id = {loc.id: loc for loc in locations}
    current = by_id.get(location_id)
    if current is None:
        return "N/A"

    names: list[str] = []
    seen: set[int] = set()
    while current is not None and current.id not in seen:
        seen.add(current.id)
        names.append(current.name)
        if not current.parent_id:
            break
        current = by_id.get(current.parent_id)
    return separator.join(reversed(names))


def get_selectable_locations(locations: Sequence[TreeNode]) -> list[TreeNode]:
    """Leaves only: a location that is some other location's parent is not a final destination."""
    parent_ids = {loc.parent_id for loc in locations if loc.parent_id}
    return [loc for loc in locations if loc.id not in parent_ids]


def get_descendant_ids(location_id: int, locations: Iterable[TreeNode]) -> list[int]:
    """Breadth-first ids below location_id (not including it)."""
    children: dict[int, list[int]] = {}
    for loc in locations:
        if loc.parent_id:
            children.setdefault(loc.parent_id, []).append(loc.id)

    result: list[int] = []
    seen = {location_id}
    queue = list(children.get(location_id, []))
    while queue:
        child_id = queue.pop(0)
        if child_id in seen:
            continue
        seen.add(child_id)
        result.append(child_id)
        queue.extend(children.get(child_id, []))
    return result


def filter_locations_by_path(
    term: str,
    locations: Sequence[TreeNode],
) -> list[tuple[TreeNode, str]]:
    """Selectable locations whose rendered path contains term; '*' or blank returns all."""
    needle = term.strip().lower()
    result = []
    for loc in get_selectable_locations(locations):
        path = render_location_path(loc.id, locations)
        if needle in ("", "*") or needle in path.lower():
            result.append((loc, path))
    return result


def level_letter(index: int) -> str:
    """0 -> A, 1 -> B ... (levels are capped at 26)."""
    return chr(ord("A") + index)


def rack_template_rows(
    template: RackTemplate,
    level_type: str = LocationType.SHELF.value,
    position_type: str = LocationType.BIN.value,
) -> list[tuple[str, str, str, str | None]]:
    """
    Expand a rack template into (name, code, type, parent_code) rows, parents first.

    levels=L, positions=P, depth=D gives exactly 1 + L + L*P + L*P*D rows.
    """
    if template.depth > 2:
        raise ValidationError("La profundidad máxima es 2 (Frente y Fondo).")
    prefix = template.prefix.strip()
    rows: list[tuple[str, str, str, str | None]] = []
    for i in range(template.levels):
        letter = level_letter(i)
        level_code = f"{prefix}-{letter}"
        rows.append((f"Nivel {letter}", level_code, level_type, prefix))
        for j in range(1, template.positions + 1):
            pos = f"{j:02d}"
            pos_code = f"{level_code}-{pos}"
            rows.append((f"Posición {pos}", pos_code, position_type, level_code))
            for k in range(1, template.depth + 1):
                if k == 1:
                    rows.append(("Frente", f"{pos_code}-F", position_type, pos_code))
                else:
                    rows.append(("Fondo", f"{pos_code}-T", position_type, pos_code))
    return rows


class LocationService:
    """CRUD for the location tree plus bulk rack generation."""

    @staticmethod
    async def get_locations(db: AsyncSession) -> list[Location]:
        result = await db.execute(select(Location).order_by(Location.parent_id, Location.name))
        return list(result.scalars().all())

    @staticmethod
    async def get_location(db: AsyncSession, id: int) -> Location:
        loc = await db.get(Location, id)
        if loc is None:
            raise LocationNotFoundError(f"Ubicación {id} no encontrada.", location_id=id)
        return loc

    @staticmethod
    async def get_child_locations(db: AsyncSession, parent_ids: list[int]) -> list[Location]:
        if not parent_ids:
            return []
        result = await db.execute(
            select(Location).where(Location.parent_id.in_(parent_ids)).order_by(Location.code)
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_selectable_locations(db: AsyncSession) -> list[Location]:
        return get_selectable_locations(await LocationService.get_locations(db))

    @staticmethod
    async def search_locations_by_path(db: AsyncSession, term: str) -> list[tuple[Location, str]]:
        return filter_locations_by_path(term, await LocationService.get_locations(db))

    @staticmethod
    async def get_location_path(db: AsyncSession, id: int) -> str:
        return render_location_path(id, await LocationService.get_locations(db))

    @staticmethod
    async def _existing_codes(db: AsyncSession, codes: Iterable[str]) -> list[str]:
        codes = list(codes)
        if not codes:
            return []
        result = await db.execute(select(Location.code).where(Location.code.in_(codes)))
        return sorted(result.scalars().all())

    @staticmethod
    async def add_location(db: AsyncSession, body: LocationCreate) -> Location:
        """Insert one node. Raises DuplicateCodeError / LocationNotFoundError."""
        code = body.code.strip()
        if await LocationService._existing_codes(db, [code]):
            raise DuplicateCodeError(f"El código de ubicación '{code}' ya existe.", code=code)
        if body.parent_id is not None:
            await LocationService.get_location(db, body.parent_id)

        loc = Location(name=body.name.strip(), code=code, type=body.type.value, parent_id=body.parent_id)
        db.add(loc)
        try:
            await db.flush()
        except IntegrityError as exc:
            raise DuplicateCodeError(f"El código de ubicación '{code}' ya existe.", code=code) from exc
        await db.refresh(loc)
        logger.info("Location created: %s (%s)", loc.name, loc.code)
        return loc

    @staticmethod
    async def update_location(db: AsyncSession, id: int, changes: LocationUpdate) -> Location:
        loc = await LocationService.get_location(db, id)

        if changes.code is not None and changes.code.strip() != loc.code:
            code = changes.code.strip()
            if await LocationService._existing_codes(db, [code]):
                raise DuplicateCodeError(f"El código de ubicación '{code}' ya existe.", code=code)
            loc.code = code
        if changes.name is not None:
            loc.name = changes.name.strip()
        if changes.type is not None:
            loc.type = changes.type.value

        if changes.clear_parent:
            loc.parent_id = None
        elif changes.parent_id is not None and changes.parent_id != loc.parent_id:
            if changes.parent_id == id:
                raise InvalidHierarchyError("Una ubicación no puede ser su propio padre.")
            await LocationService.get_location(db, changes.parent_id)
            all_locations = await LocationService.get_locations(db)
            if changes.parent_id in get_descendant_ids(id, all_locations):
                raise InvalidHierarchyError(
                    "No se puede mover una ubicación debajo de una de sus sub-ubicaciones."
                )
            loc.parent_id = changes.parent_id

        await db.flush()
        await db.refresh(loc)
        logger.info("Location updated: %s (%s)", loc.name, loc.code)
        return loc

    @staticmethod
    async def add_bulk_locations(db: AsyncSession, layout: RackTemplate | RackClone) -> list[Location]:
        """Rack template or rack clone; the whole batch fails on any duplicate code."""
        if isinstance(layout, RackTemplate):
            created = await LocationService._create_from_template(db, layout)
        else:
            created = await LocationService._clone_rack(db, layout)
        logger.info("Bulk locations created: %d rows (%s)", len(created), layout.mode)
        return created

    @staticmethod
    async def _insert_rows(
        db: AsyncSession,
        rows: list[tuple[str, str, str, str | None]],
        root_parent_id: int | None,
    ) -> list[Location]:
        """rows are (name, code, type, parent_code) ordered parents first; the first row is the root."""
        codes = [code for _, code, _, _ in rows]
        if len(set(codes)) != len(codes):
            raise DuplicateCodeError("La plantilla genera códigos repetidos.")
        taken = await LocationService._existing_codes(db, codes)
        if taken:
            raise DuplicateCodeError(
                f"Los siguientes códigos ya existen: {', '.join(taken[:10])}", codes=taken
            )

        ids_by_code: dict[str, int] = {}
        created: list[Location] = []
        for name, code, loc_type, parent_code in rows:
            parent_id = ids_by_code[parent_code] if parent_code is not None else root_parent_id
            loc = Location(name=name, code=code, type=loc_type, parent_id=parent_id)
            db.add(loc)
            try:
                await db.flush()
            except IntegrityError as exc:
                raise DuplicateCodeError(f"El código de ubicación '{code}' ya existe.", code=code) from exc
            ids_by_code[code] = loc.id
            created.append(loc)
        return created

    @staticmethod
    async def _create_from_template(db: AsyncSession, template: RackTemplate) -> list[Location]:
        if template.parent_id is not None:
            await LocationService.get_location(db, template.parent_id)

        levels = (await SettingsService.get_settings(db)).location_levels
        rack_type = next(
            (lvl.type.value for lvl in levels if "rack" in lvl.name.lower()),
            LocationType.RACK.value,
        )
        level_type = levels[3].type.value if len(levels) > 3 else LocationType.SHELF.value
        position_type = levels[4].type.value if len(levels) > 4 else LocationType.BIN.value

        prefix = template.prefix.strip()
        rows = [(template.name.strip(), prefix, rack_type, None)]
        rows.extend(rack_template_rows(template, level_type, position_type))
        return await LocationService._insert_rows(db, rows, template.parent_id)

    @staticmethod
    async def _clone_rack(db: AsyncSession, layout: RackClone) -> list[Location]:
        all_locations = await LocationService.get_locations(db)
        by_id = {loc.id: loc for loc in all_locations}
        source = by_id.get(layout.source_rack_id)
        if source is None:
            raise LocationNotFoundError("Rack de origen no encontrado.", location_id=layout.source_rack_id)

        new_prefix = layout.new_prefix.strip()
        rows = [(layout.new_name.strip(), new_prefix, source.type, None)]
        code_map = {source.code: new_prefix}
        for child_id in get_descendant_ids(source.id, all_locations):
            child = by_id[child_id]
            new_code = child.code.replace(source.code, new_prefix, 1)
            code_map[child.code] = new_code
            rows.append((child.name, new_code, child.type, code_map[by_id[child.parent_id].code]))
        return await LocationService._insert_rows(db, rows, source.parent_id)

    @staticmethod
    async def delete_location(db: AsyncSession, id: int) -> list[int]:
        """
        Delete a node and its descendants.

        Raises LocationInUseError when the node or any descendant holds an item
        assignment or an inventory unit; nothing is removed in that case.
        """
        await LocationService.get_location(db, id)
        ids = [id, *get_descendant_ids(id, await LocationService.get_locations(db))]

        in_use = await db.execute(select(ItemLocation.id).where(ItemLocation.location_id.in_(ids)).limit(1))
        if in_use.first() is not None:
            raise LocationInUseError(
                "No se puede eliminar la ubicación porque esta o una de sus sub-ubicaciones "
                "está en uso (asignación simple).",
                location_id=id,
            )
        in_use = await db.execute(select(InventoryUnit.id).where(InventoryUnit.location_id.in_(ids)).limit(1))
        if in_use.first() is not None:
            raise LocationInUseError(
                "No se puede eliminar la ubicación porque esta o una de sus sub-ubicaciones "
                "está en uso (unidades de inventario).",
                location_id=id,
            )

        # children first so the self-referencing FK never sees a dangling parent
        for loc_id in reversed(ids):
            await db.execute(delete(Location).where(Location.id == loc_id))
        await db.flush()
        logger.info("Location %s deleted with %d descendants", id, len(ids) - 1)
        return ids
