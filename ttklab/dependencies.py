"""Request dependencies shared by the API routes."""

from fastapi import HTTPException, Request

from .services.data_loader import DataCatalog


def get_catalog(request: Request) -> DataCatalog:
    """Catalog loaded at startup."""
    catalog = getattr(request.app.state, "catalog", None)
    if catalog is None:
        raise HTTPException(status_code=503, detail="Catalog not loaded")
    return catalog
