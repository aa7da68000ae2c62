"""API routes: list collections, full audit, and per-collection analysis."""

from fastapi import APIRouter, Depends, HTTPException, Query

from api.auth import require_bearer_token
from api import db
from docdb_audit.errors import AuditConnectionError

router = APIRouter(prefix="/api", tags=["audit"])


@router.get("/collections")
async def list_collections(_: None = Depends(require_bearer_token)):
    """List the collections in the audited database."""
    try:
        collections = db.get_collections()
    except AuditConnectionError as e:
        raise HTTPException(status_code=503, detail={"detail": "Database unreachable"}) from e
    return {"database": db.get_store().describe(), "collections": collections}


@router.get("/audit")
async def get_audit(
    _: None = Depends(require_bearer_token),
    refresh: bool = Query(False, description="Ignore the cached result and audit again."),
):
    """Full audit: schema, quality, relationships and migration plan."""
    try:
        result = db.get_audit(refresh=refresh)
    except AuditConnectionError as e:
        raise HTTPException(status_code=503, detail={"detail": "Database unreachable"}) from e
    except Exception as e:
        raise HTTPException(status_code=500, detail={"detail": "Audit failed"}) from e
    return result.to_dict()


@router.get("/collections/{name}")
async def get_collection(
    name: str,
    _: None = Depends(require_bearer_token),
    refresh: bool = Query(False, description="Ignore the cached result and analyze again."),
):
    """Schema and quality analysis of one collection."""
    try:
        analysis = db.get_collection_analysis(name, refresh=refresh)
    except AuditConnectionError as e:
        raise HTTPException(status_code=503, detail={"detail": "Database unreachable"}) from e
    if analysis is None:
        raise HTTPException(status_code=404, detail={"detail": "Collection not found", "collection": name})
    return analysis.to_dict()
