import pytest
from sqlalchemy.exc import IntegrityError

from bodega.core.exceptions import (
    AssignmentConflictError,
    AssignmentNotFoundError,
    ContainerNotFoundError,
    DuplicateCodeError,
)
from bodega.db.base import utcnow
from bodega.models.dispatch import AssignmentStatus, DispatchAssignment, DocumentType
from bodega.schemas.dispatch import DispatchLogCreate, DocumentRef
from bodega.schemas.location import LockEntityType
from bodega.services.dispatch_service import DispatchService
from bodega.services.lock_service import LockService


def _doc(document_id: str) -> DocumentRef:
    return DocumentRef(
        document_id=document_id,
        document_type=DocumentType.FACTURA,
        document_date="2026-10-01",
        client_id="C-77",
        client_name="Ferretería El Clavo",
    )


async def test_container_names_are_unique(db):
    await DispatchService.create_container(db, "Ruta Norte", "ana")
    with pytest.raises(DuplicateCodeError):
        await DispatchService.create_container(db, " Ruta Norte ", "beto")


async def test_assignments_keep_insertion_order_and_can_be_reordered(db):
    route = await DispatchService.create_container(db, "Ruta Norte", "ana")
    await DispatchService.assign_documents_to_container(db, route.id, [_doc("F-1"), _doc("F-2"), _doc("F-3")], "ana")

    rows = await DispatchService.get_assignments_for_container(db, route.id)
    assert [(r.document_id, r.sort_order, r.status) for r in rows] == [
        ("F-1", 0, "pending"),
        ("F-2", 1, "pending"),
        ("F-3", 2, "pending"),
    ]

    await DispatchService.update_assignment_order(db, route.id, ["F-3", "F-1", "F-2"])
    rows = await DispatchService.get_assignments_for_container(db, route.id)
    assert [r.document_id for r in rows] == ["F-3", "F-1", "F-2"]


async def test_repeated_document_in_one_request_is_assigned_once(db):
    route = await DispatchService.create_container(db, "Ruta Norte", "ana")
    assigned = await DispatchService.assign_documents_to_container(
        db, route.id, [_doc("F-9"), _doc("F-10"), _doc("F-9")], "ana"
    )
    assert [a.document_id for a in assigned] == ["F-9", "F-10"]

    rows = await DispatchService.get_assignments_for_container(db, route.id)
    assert [(r.document_id, r.sort_order) for r in rows] == [("F-9", 0), ("F-10", 1)]

    updated = await DispatchService.update_assignment_status(db, "F-9", AssignmentStatus.COMPLETED)
    assert updated.status == "completed"


async def test_document_id_is_unique_across_assignments(db):
    route = await DispatchService.create_container(db, "Ruta Norte", "ana")
    for _ in range(2):
        db.add(
            DispatchAssignment(
                container_id=route.id,
                document_id="F-9",
                document_type="Factura",
                document_date="2026-10-01",
                client_id="C-77",
                client_name="Ferretería El Clavo",
                assigned_by="ana",
                assigned_at=utcnow(),
            )
        )
    with pytest.raises(IntegrityError):
        await db.flush()


async def test_document_lives_in_one_container(db):
    north = await DispatchService.create_container(db, "Ruta Norte", "ana")
    south = await DispatchService.create_container(db, "Ruta Sur", "ana")
    await DispatchService.assign_documents_to_container(db, north.id, [_doc("F-1")], "ana")

    with pytest.raises(AssignmentConflictError):
        await DispatchService.assign_documents_to_container(db, south.id, [_doc("F-1")], "beto")

    await DispatchService.update_assignment_status(db, "F-1", AssignmentStatus.COMPLETED)
    [row] = await DispatchService.assign_documents_to_container(db, south.id, [_doc("F-1")], "beto")
    assert (row.container_id, row.status) == (south.id, "pending")
    assert await DispatchService.get_assignments_for_container(db, north.id) == []


async def test_move_assignment_appends_to_target(db):
    north = await DispatchService.create_container(db, "Ruta Norte", "ana")
    south = await DispatchService.create_container(db, "Ruta Sur", "ana")
    await DispatchService.assign_documents_to_container(db, north.id, [_doc("F-1")], "ana")
    await DispatchService.assign_documents_to_container(db, south.id, [_doc("F-2"), _doc("F-3")], "ana")

    moved = await DispatchService.move_assignment_to_container(db, "F-1", south.id)
    assert (moved.container_id, moved.sort_order) == (south.id, 2)

    with pytest.raises(AssignmentNotFoundError):
        await DispatchService.move_assignment_to_container(db, "F-404", south.id)
    with pytest.raises(ContainerNotFoundError):
        await DispatchService.move_assignment_to_container(db, "F-1", 999)


async def test_next_document_skips_current_and_finished(db):
    route = await DispatchService.create_container(db, "Ruta Norte", "ana")
    await DispatchService.assign_documents_to_container(db, route.id, [_doc("F-1"), _doc("F-2"), _doc("F-3")], "ana")
    await DispatchService.update_assignment_status(db, "F-2", AssignmentStatus.DISCREPANCY)

    assert await DispatchService.get_next_document_in_container(db, route.id, "F-1") == "F-3"
    await DispatchService.update_assignment_status(db, "F-3", AssignmentStatus.COMPLETED)
    assert await DispatchService.get_next_document_in_container(db, route.id, "F-1") is None


async def test_reset_and_unassign_container(db):
    route = await DispatchService.create_container(db, "Ruta Norte", "ana")
    await DispatchService.assign_documents_to_container(db, route.id, [_doc("F-1"), _doc("F-2")], "ana")
    await DispatchService.update_assignment_status(db, "F-1", AssignmentStatus.COMPLETED)

    await DispatchService.reset_container_assignments(db, route.id)
    rows = await DispatchService.get_assignments_for_container(db, route.id)
    assert {r.status for r in rows} == {"pending"}

    await DispatchService.unassign_all_from_container(db, route.id)
    assert await DispatchService.get_assignments_for_container(db, route.id) == []


async def test_status_update_outside_any_container_is_ignored(db):
    assert await DispatchService.update_assignment_status(db, "F-suelta", AssignmentStatus.COMPLETED) is None


async def test_delete_container_drops_its_assignments(db):
    route = await DispatchService.create_container(db, "Ruta Norte", "ana")
    await DispatchService.assign_documents_to_container(db, route.id, [_doc("F-1")], "ana")
    await DispatchService.delete_container(db, route.id)

    assert await DispatchService.list_containers(db) == []
    other = await DispatchService.create_container(db, "Ruta Sur", "ana")
    [row] = await DispatchService.assign_documents_to_container(db, other.id, [_doc("F-1")], "ana")
    assert row.container_id == other.id


async def test_container_locks_share_the_lock_service(db):
    route = await DispatchService.create_container(db, "Ruta Norte", "ana")
    await LockService.lock_entities(db, [route.id], LockEntityType.CONTAINER, "u-1", "Ana")
    result = await LockService.lock_entities(db, [route.id], LockEntityType.CONTAINER, "u-2", "Beto")
    assert (result.locked, result.locked_by) == (False, "Ana")


async def test_dispatch_logs_are_newest_first(db):
    for document_id in ("F-1", "F-2", "F-1"):
        await DispatchService.log_dispatch(
            db,
            DispatchLogCreate(
                document_id=document_id,
                document_type=DocumentType.FACTURA,
                verified_by_user_id="u-1",
                verified_by_user_name="Ana",
                items=[{"line_id": 1, "item_code": "A-100", "required_quantity": 5, "verified_quantity": 5}],
                notes="Acción: finish",
            ),
        )
    logs = await DispatchService.get_dispatch_logs(db)
    assert len(logs) == 3
    assert logs[0].id > logs[-1].id
    only_f1 = await DispatchService.get_dispatch_logs(db, document_id="F-1")
    assert [log.document_id for log in only_f1] == ["F-1", "F-1"]
    assert only_f1[0].items[0]["item_code"] == "A-100"
