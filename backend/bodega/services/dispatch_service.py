"""Bodega WMS - DispatchService: containers (routes), document assignments and dispatch logs."""
import logging

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bodega.core.exceptions import (
    AssignmentConflictError,
    AssignmentNotFoundError,
    ContainerNotFoundError,
    DuplicateCodeError,
)
from bodega.db.base import utcnow
from bodega.models.dispatch import AssignmentStatus, DispatchAssignment, DispatchContainer, DispatchLog
from bodega.schemas.dispatch import DispatchLogCreate, DocumentRef

logger = logging.getLogger(__name__)


class DispatchService:
    """A document lives in at most one container; moving it rewrites container_id."""

    # ── Containers ──────────────────────────────────────────────────────────

    @staticmethod
    async def list_containers(db: AsyncSession) -> list[DispatchContainer]:
        result = await db.execute(select(DispatchContainer).order_by(DispatchContainer.name))
        return list(result.scalars().all())

    @staticmethod
    async def get_container(db: AsyncSession, id: int) -> DispatchContainer:
        container = await db.get(DispatchContainer, id)
        if container is None:
            raise ContainerNotFoundError(f"Contenedor {id} no encontrado.", container_id=id)
        return container

    @staticmethod
    async def create_container(db: AsyncSession, name: str, created_by: str) -> DispatchContainer:
        name = name.strip()
        existing = await db.execute(select(DispatchContainer.id).where(DispatchContainer.name == name))
        if existing.first() is not None:
            raise DuplicateCodeError(f"Ya existe un contenedor llamado '{name}'.", name=name)
        container = DispatchContainer(name=name, created_by=created_by, created_at=utcnow(), is_locked=False)
        db.add(container)
        try:
            await db.flush()
        except IntegrityError as exc:
            raise DuplicateCodeError(f"Ya existe un contenedor llamado '{name}'.", name=name) from exc
        await db.refresh(container)
        logger.info("Dispatch container '%s' created by %s", name, created_by)
        return container

    @staticmethod
    async def delete_container(db: AsyncSession, id: int) -> None:
        await DispatchService.get_container(db, id)
        await db.execute(delete(DispatchAssignment).where(DispatchAssignment.container_id == id))
        await db.execute(delete(DispatchContainer).where(DispatchContainer.id == id))
        await db.flush()
        logger.info("Dispatch container %s deleted", id)

    # ── Assignments ─────────────────────────────────────────────────────────

    @staticmethod
    async def _get_assignment(db: AsyncSession, document_id: str) -> DispatchAssignment | None:
        result = await db.execute(
            select(DispatchAssignment).where(DispatchAssignment.document_id == document_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def _next_sort_order(db: AsyncSession, container_id: int) -> int:
        result = await db.execute(
            select(func.max(DispatchAssignment.sort_order)).where(DispatchAssignment.container_id == container_id)
        )
        current = result.scalar_one_or_none()
        return 0 if current is None else current + 1

    @staticmethod
    async def get_assignments_for_container(db: AsyncSession, container_id: int) -> list[DispatchAssignment]:
        result = await db.execute(
            select(DispatchAssignment)
            .where(DispatchAssignment.container_id == container_id)
            .order_by(DispatchAssignment.sort_order, DispatchAssignment.id)
        )
        return list(result.scalars().all())

    @staticmethod
    async def assign_documents_to_container(
        db: AsyncSession,
        container_id: int,
        documents: list[DocumentRef],
        assigned_by: str,
    ) -> list[DispatchAssignment]:
        """
        Append documents to a container.

        A document still being worked in another container is rejected. One
        already completed elsewhere is pulled back in as pending (re-dispatch).
        """
        await DispatchService.get_container(db, container_id)
        sort_order = await DispatchService._next_sort_order(db, container_id)
        assigned: list[DispatchAssignment] = []
        seen: set[str] = set()

        for doc in documents:
            # pending rows are not flushed yet, so a repeated id would slip past _get_assignment
            if doc.document_id in seen:
                continue
            seen.add(doc.document_id)
            existing = await DispatchService._get_assignment(db, doc.document_id)
            if existing is not None:
                if existing.container_id == container_id:
                    assigned.append(existing)
                    continue
                if existing.status != AssignmentStatus.COMPLETED.value:
                    raise AssignmentConflictError(
                        f"El documento {doc.document_id} ya está asignado a otro contenedor.",
                        document_id=doc.document_id,
                        container_id=existing.container_id,
                    )
                existing.container_id = container_id
                existing.status = AssignmentStatus.PENDING.value
                existing.sort_order = sort_order
                existing.assigned_by = assigned_by
                existing.assigned_at = utcnow()
                assigned.append(existing)
            else:
                row = DispatchAssignment(
                    container_id=container_id,
                    document_id=doc.document_id,
                    document_type=doc.document_type.value,
                    document_date=doc.document_date,
                    client_id=doc.client_id,
                    client_name=doc.client_name,
                    assigned_by=assigned_by,
                    assigned_at=utcnow(),
                    sort_order=sort_order,
                    status=AssignmentStatus.PENDING.value,
                )
                db.add(row)
                assigned.append(row)
            sort_order += 1

        await db.flush()
        logger.info("%d documents assigned to container %s by %s", len(assigned), container_id, assigned_by)
        return assigned

    @staticmethod
    async def update_assignment_order(db: AsyncSession, container_id: int, document_ids: list[str]) -> None:
        """sort_order becomes each document's index in document_ids."""
        for index, document_id in enumerate(document_ids):
            await db.execute(
                update(DispatchAssignment)
                .where(
                    DispatchAssignment.container_id == container_id,
                    DispatchAssignment.document_id == document_id,
                )
                .values(sort_order=index)
                .execution_options(synchronize_session="fetch")
            )
        await db.flush()

    @staticmethod
    async def move_assignment_to_container(
        db: AsyncSession,
        document_id: str,
        target_container_id: int,
    ) -> DispatchAssignment:
        await DispatchService.get_container(db, target_container_id)
        assignment = await DispatchService._get_assignment(db, document_id)
        if assignment is None:
            raise AssignmentNotFoundError(
                f"El documento {document_id} no está asignado a ningún contenedor.", document_id=document_id
            )
        if assignment.container_id != target_container_id:
            assignment.sort_order = await DispatchService._next_sort_order(db, target_container_id)
            assignment.container_id = target_container_id
        await db.flush()
        logger.info("Document %s moved to container %s", document_id, target_container_id)
        return assignment

    @staticmethod
    async def update_assignment_status(
        db: AsyncSession,
        document_id: str,
        status: AssignmentStatus,
    ) -> DispatchAssignment | None:
        """Returns None when the document was dispatched outside any container."""
        assignment = await DispatchService._get_assignment(db, document_id)
        if assignment is None:
            return None
        assignment.status = status.value
        await db.flush()
        return assignment

    @staticmethod
    async def reset_container_assignments(db: AsyncSession, container_id: int) -> None:
        await DispatchService.get_container(db, container_id)
        await db.execute(
            update(DispatchAssignment)
            .where(DispatchAssignment.container_id == container_id)
            .values(status=AssignmentStatus.PENDING.value)
            .execution_options(synchronize_session="fetch")
        )
        await db.flush()

    @staticmethod
    async def unassign_all_from_container(db: AsyncSession, container_id: int) -> None:
        await DispatchService.get_container(db, container_id)
        await db.execute(delete(DispatchAssignment).where(DispatchAssignment.container_id == container_id))
        await db.flush()

    @staticmethod
    async def get_next_document_in_container(
        db: AsyncSession,
        container_id: int,
        current_document_id: str,
    ) -> str | None:
        result = await db.execute(
            select(DispatchAssignment.document_id)
            .where(
                DispatchAssignment.container_id == container_id,
                DispatchAssignment.status == AssignmentStatus.PENDING.value,
                DispatchAssignment.document_id != current_document_id,
            )
            .order_by(DispatchAssignment.sort_order, DispatchAssignment.id)
            .limit(1)
        )
        return result.scalar_one_or_none()

    # ── Logs (append-only) ──────────────────────────────────────────────────

    @staticmethod
    async def log_dispatch(db: AsyncSession, body: DispatchLogCreate) -> DispatchLog:
        entry = DispatchLog(
            document_id=body.document_id,
            document_type=body.document_type.value,
            verified_at=utcnow(),
            verified_by_user_id=body.verified_by_user_id,
            verified_by_user_name=body.verified_by_user_name,
            items=body.items,
            notes=body.notes,
            vehicle_plate=body.vehicle_plate,
            driver_name=body.driver_name,
        )
        db.add(entry)
        await db.flush()
        await db.refresh(entry)
        logger.info("Dispatch logged for %s by %s", body.document_id, body.verified_by_user_name)
        return entry

    @staticmethod
    async def get_dispatch_logs(
        db: AsyncSession,
        document_id: str | None = None,
        limit: int = 200,
    ) -> list[DispatchLog]:
        q = select(DispatchLog).order_by(DispatchLog.verified_at.desc(), DispatchLog.id.desc()).limit(limit)
        if document_id:
            q = q.where(DispatchLog.document_id == document_id)
        result = await db.execute(q)
        return list(result.scalars().all())
