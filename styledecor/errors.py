"""
Errores de dominio. Cada uno sabe con qué código HTTP se expone;
los handlers de main.py los convierten en {"success": false, "message": ...}.
"""


class DomainError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DomainError):
    """Entrada mal formada o incompleta."""
    status_code = 400


class UnauthorizedError(DomainError):
    status_code = 401


class ForbiddenError(DomainError):
    """Autenticado pero sin permiso para la acción."""
    status_code = 403


class NotFoundError(DomainError):
    status_code = 404


class ConflictError(DomainError):
    """Petición válida sobre un estado que no la admite."""
    status_code = 409


class GatewayError(DomainError):
    """Fallo del proveedor de pagos externo."""
    status_code = 502


class StorageError(DomainError):
    status_code = 503
