"""Constructor catalog upload and item indexing package."""

from services.catalog.service import CatalogService
from services.catalog.types import CatalogTask, CatalogUploadResult, TaskStatus, UploadOperation

__all__ = [
    "CatalogService",
    "CatalogTask",
    "CatalogUploadResult",
    "TaskStatus",
    "UploadOperation",
]
