from __future__ import annotations


class AppError(Exception):
    # Base class for domain errors (intended, meaningful failures).
    pass


class NotFoundError(AppError):
    # Raised when an opportunity, questionnaire or host entity does not exist in the store.
    pass


class ImporterError(AppError):
    # Raised for importer-related failures (missing columns, unreadable file, etc.).
    pass
