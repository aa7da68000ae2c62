"""Azure Functions entrypoint for the audit API."""

import json
import os

import azure.functions as func

from api import db as db_module
from api.auth import token_matches
from docdb_audit.config import AuditConfig, load_env
from docdb_audit.errors import AuditConnectionError
from docdb_audit.rules import load_rules
from docdb_audit.stores import get_store

app = func.FunctionApp(http_auth_level=func.AuthLevel.ANONYMOUS)
_initialized = False


def _init() -> None:
    global _initialized
    if _initialized:
        return
    load_env()
    if not os.environ.get("DATABASE_URL"):
        raise RuntimeError("DATABASE_URL is not set (Key Vault or local settings)")
    if not os.environ.get("API_AUTH_TOKEN"):
        raise RuntimeError("API_AUTH_TOKEN is not set (Key Vault or local settings)")
    config = AuditConfig.from_env()
    store = get_store(os.environ["DATABASE_URL"], database_name=config.database_name)
    db_module.set_store(store, config, load_rules(os.environ.get("AUDIT_RULES_PATH")))
    _initialized = True


def _json_response(payload: dict, status: int = 200) -> func.HttpResponse:
    return func.HttpResponse(
        body=json.dumps(payload, default=str),
        status_code=status,
        mimetype="application/json",
    )


def _unauthorized() -> func.HttpResponse:
    return _json_response({"detail": "Unauthorized"}, status=401)


def _validate_bearer(req: func.HttpRequest) -> bool:
    token = os.environ.get("API_AUTH_TOKEN")
    if not token:
        return False
    return token_matches(req.headers.get("authorization", ""), token)


def _refresh(req: func.HttpRequest) -> bool:
    return (req.params.get("refresh") or "").strip().lower() in ("1", "true", "yes")


def _guard(req: func.HttpRequest):
    try:
        _init()
    except Exception as exc:
        return _json_response({"detail": str(exc)}, status=503)
    if not _validate_bearer(req):
        return _unauthorized()
    return None


@app.route(route="api/collections", methods=["GET"])
def list_collections(req: func.HttpRequest) -> func.HttpResponse:
    denied = _guard(req)
    if denied:
        return denied
    try:
        collections = db_module.get_collections()
    except AuditConnectionError:
        return _json_response({"detail": "Database unreachable"}, status=503)
    return _json_response({"database": db_module.get_store().describe(), "collections": collections})


@app.route(route="api/audit", methods=["GET"])
def get_audit(req: func.HttpRequest) -> func.HttpResponse:
    denied = _guard(req)
    if denied:
        return denied
    try:
        result = db_module.get_audit(refresh=_refresh(req))
    except AuditConnectionError:
        return _json_response({"detail": "Database unreachable"}, status=503)
    except Exception:
        return _json_response({"detail": "Audit failed"}, status=500)
    return _json_response(result.to_dict())


@app.route(route="api/collections/{name}", methods=["GET"])
def get_collection(req: func.HttpRequest) -> func.HttpResponse:
    denied = _guard(req)
    if denied:
        return denied

    name = (req.route_params.get("name") or "").strip()
    if not name:
        return _json_response({"detail": "Collection not found"}, status=404)
    try:
        analysis = db_module.get_collection_analysis(name, refresh=_refresh(req))
    except AuditConnectionError:
        return _json_response({"detail": "Database unreachable"}, status=503)
    if analysis is None:
        return _json_response({"detail": "Collection not found", "collection": name}, status=404)
    return _json_response(analysis.to_dict())
