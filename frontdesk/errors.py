from __future__ import annotations


class FrontDeskError(Exception):
    """Errore di dominio; ``status_code`` è il codice HTTP corrispondente."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(FrontDeskError):
    """Input mancante o non valido."""

    status_code = 400


class NotFoundError(FrontDeskError):
    """Paziente o visita inesistente."""

    status_code = 404


class ConflictError(FrontDeskError):
    """Operazione non ammessa nello stato attuale del record."""

    status_code = 409


class StorageError(FrontDeskError):
    status_code = 503
