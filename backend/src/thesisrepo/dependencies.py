"""Global FastAPI dependencies for storage access.

The StorageRouter and DocumentResolver are built once in the application
lifespan and kept on ``app.state``; request handlers only read them.
"""

from fastapi import HTTPException, Request, status

from .config import Settings, get_settings
from .documents.resolver import DocumentResolver
from .infrastructure.storage.router import StorageRouter


def get_storage_router(request: Request) -> StorageRouter:
    """Return the process-wide storage router.

    Raises:
        HTTPException 503: If the application started without storage
    """
    storage = getattr(request.app.state, "storage_router", None)
    if storage is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Storage is not initialized",
        )
    return storage


def get_document_resolver(request: Request) -> DocumentResolver:
    resolver = getattr(request.app.state, "document_resolver", None)
    if resolver is None:
        resolver = DocumentResolver(get_storage_router(request))
        request.app.state.document_resolver = resolver
    return resolver


def get_app_settings(request: Request) -> Settings:
    """Settings the application was created with."""
    return getattr(request.app.state, "settings", None) or get_settings()
