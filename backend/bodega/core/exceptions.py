"""Bodega WMS - Error taxonomy.

Store-layer functions raise these; the workflow and API layers are the only
places that turn them into operator-facing messages.
"""


class WarehouseError(Exception):
    """Base class for every domain error raised by the warehouse subsystem."""

    code = "WAREHOUSE_ERROR"
    status_code = 400
    title = "Error"

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details


# ── Validation ───────────────────────────────────────────────────────────────

class ValidationError(WarehouseError):
    code = "VALIDATION_ERROR"
    status_code = 422
    title = "Datos Inválidos"


class DuplicateCodeError(ValidationError):
    code = "DUPLICATE_CODE"
    status_code = 409
    title = "Código Duplicado"


class InvalidHierarchyError(ValidationError):
    code = "INVALID_HIERARCHY"


# ── Conflicts ────────────────────────────────────────────────────────────────

class ConflictError(WarehouseError):
    code = "CONFLICT"
    status_code = 409
    title = "Conflicto"


class LocationInUseError(ConflictError):
    code = "LOCATION_IN_USE"
    title = "Ubicación en Uso"


class LockConflictError(ConflictError):
    code = "LOCKED"
    title = "Recurso en Uso"


class AssignmentConflictError(ConflictError):
    code = "ASSIGNMENT_CONFLICT"


# ── Not found ────────────────────────────────────────────────────────────────

class NotFoundError(WarehouseError):
    code = "NOT_FOUND"
    status_code = 404
    title = "No Encontrado"


class LocationNotFoundError(NotFoundError):
    code = "LOCATION_NOT_FOUND"


class InventoryUnitNotFoundError(NotFoundError):
    code = "UNIT_NOT_FOUND"


class ContainerNotFoundError(NotFoundError):
    code = "CONTAINER_NOT_FOUND"


class AssignmentNotFoundError(NotFoundError):
    code = "ASSIGNMENT_NOT_FOUND"


class DocumentNotFoundError(NotFoundError):
    code = "DOCUMENT_NOT_FOUND"


# ── External dependencies ────────────────────────────────────────────────────

class ExternalServiceError(WarehouseError):
    code = "EXTERNAL_SERVICE_ERROR"
    status_code = 502
    title = "Error de Servicio Externo"


class ErpUnavailableError(ExternalServiceError):
    code = "ERP_UNAVAILABLE"


class CatalogUnavailableError(ExternalServiceError):
    code = "CATALOG_UNAVAILABLE"


class EmailDeliveryError(ExternalServiceError):
    code = "EMAIL_DELIVERY_FAILED"


class RenderError(ExternalServiceError):
    code = "RENDER_FAILED"
    status_code = 500


# ── Workflow / authorization ─────────────────────────────────────────────────

class PermissionDeniedError(WarehouseError):
    code = "PERMISSION_DENIED"
    status_code = 403
    title = "Acceso Denegado"


class InvalidTransitionError(WarehouseError):
    code = "INVALID_TRANSITION"
    status_code = 409
    title = "Acción no Permitida"


class WorkflowBusyError(InvalidTransitionError):
    code = "WORKFLOW_BUSY"
