"""FastAPI app: document database audit API with Bearer auth."""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from api.routes import router
from api import db
from docdb_audit.config import AuditConfig, load_env
from docdb_audit.rules import load_rules
from docdb_audit.stores import get_store


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load env (Key Vault), open the store, validate required env, then yield."""
    load_env()
    if not os.environ.get("DATABASE_URL"):
        raise RuntimeError("DATABASE_URL is not set (Key Vault or .env)")
    if not os.environ.get("API_AUTH_TOKEN"):
        raise RuntimeError("API_AUTH_TOKEN is not set (Key Vault or .env)")
    config = AuditConfig.from_env()
    store = get_store(os.environ["DATABASE_URL"], database_name=config.database_name)
    db.set_store(store, config, load_rules(os.environ.get("AUDIT_RULES_PATH")))
    yield
    store.close()


app = FastAPI(title="Document Database Audit API", lifespan=lifespan)
app.include_router(router)
