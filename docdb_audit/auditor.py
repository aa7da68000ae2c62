"""
Audit orchestration.

Runs the stages in order: catalog, per-collection analysis (schema and
quality on one shared sample), relationship checks, migration planning.
Collections are analyzed on a thread pool; each worker only reads from the
store and returns an immutable CollectionAnalysis, and results are joined
before planning.

Failure handling:
- The catalog failing raises AuditConnectionError; nothing else escapes.
- A collection that cannot be read becomes an analysis with an error marker.
- A relationship whose query fails carries the error on its check.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from .catalog import list_collections
from .config import AuditConfig
from .errors import CollectionAccessError
from .models import AuditResult, CollectionAnalysis, QualityReport, SchemaReport
from .planner import build_phases, plan_migrations
from .quality import score_quality
from .relationships import TargetIdCache, check_relationships
from .rules import AuditRules
from .schema_inference import infer_schema, sanitize_document
from .stores.base import DocumentStore

logger = logging.getLogger(__name__)


class DatabaseAuditor:
    """Audit one database through a DocumentStore."""

    def __init__(
        self,
        store: DocumentStore,
        config: Optional[AuditConfig] = None,
        rules: Optional[AuditRules] = None,
    ):
        self.store = store
        self.config = config or AuditConfig()
        self.rules = rules or AuditRules()

    def _with_retries(self, collection: str, what: str, query: Callable[[], Any]) -> Any:
        attempts = self.config.query_retries + 1
        last_error: Optional[Exception] = None
        for attempt in range(1, attempts + 1):
            try:
                return query()
            except Exception as e:
                last_error = e
                if attempt < attempts:
                    logger.warning(f"{collection}: {what} failed ({e}), retrying ({attempt}/{attempts - 1})")
        raise CollectionAccessError(collection, f"{what} failed: {last_error}") from last_error

    def analyze_collection(self, name: str) -> CollectionAnalysis:
        """Count, indexes, sample, schema and quality for one collection.

        Never raises for store errors: a failure is returned as an analysis
        whose schema report carries the error.
        """
        cfg = self.config
        try:
            count = self._with_retries(name, "count", lambda: self.store.count(name))
            indexes = self._with_retries(name, "list indexes", lambda: self.store.list_indexes(name))
            docs = self._with_retries(
                name, "sample", lambda: self.store.find(name, limit=cfg.sample_size)[:cfg.sample_size]
            )
        except CollectionAccessError as e:
            logger.warning(f"Error analyzing {name}: {e.message}")
            return CollectionAnalysis(
                name=name,
                schema=SchemaReport(collection=name, sample_size=0, error=e.message),
                quality=QualityReport(collection=name, total_docs=0),
                error=e.message,
            )

        redacted = self.rules.quality.redacted_keys
        schema, docs = infer_schema(
            self.store, name,
            sample_size=cfg.sample_size,
            redacted_keys=redacted,
            sample_value_cap=cfg.sample_value_cap,
            docs=docs,
        )
        quality = score_quality(docs, self.rules.quality, collection=name, issue_cap=cfg.issue_cap)
        logger.info(f"  {name}: {count} document(s), {len(schema.fields)} field(s), {quality.total_issues} issue(s)")

        return CollectionAnalysis(
            name=name,
            schema=schema,
            quality=quality,
            document_count=count,
            indexes=tuple(dict(i) for i in indexes),
            sample_document=sanitize_document(docs[0], redacted) if docs else None,
        )

    def _analyze_step(self, index: int, total: int, name: str,
                      cancel_event: threading.Event) -> Optional[CollectionAnalysis]:
        if cancel_event.is_set():
            return None
        logger.info(f"Analyzing collection {index}/{total}: {name}")
        return self.analyze_collection(name)

    def _analyze_all(self, collections: List[str],
                     cancel_event: threading.Event) -> Dict[str, CollectionAnalysis]:
        completed: Dict[str, CollectionAnalysis] = {}
        total = len(collections)
        executor = ThreadPoolExecutor(max_workers=self.config.max_workers)
        try:
            futures = {
                executor.submit(self._analyze_step, i, total, name, cancel_event): name
                for i, name in enumerate(collections, 1)
            }
            for future in as_completed(futures):
                analysis = future.result()
                if analysis is not None:
                    completed[futures[future]] = analysis
        except KeyboardInterrupt:
            cancel_event.set()
            executor.shutdown(wait=False, cancel_futures=True)
            raise
        finally:
            executor.shutdown(wait=True)

        # Catalog order, not completion order
        return {name: completed[name] for name in collections if name in completed}

    def run(self, cancel_event: Optional[threading.Event] = None) -> AuditResult:
        """Run a full audit.

        Setting ``cancel_event`` stops work that has not started yet; the
        result then holds everything that completed and ``cancelled=True``.

        Raises:
            AuditConnectionError: the collection catalog could not be read.
        """
        cancel_event = cancel_event or threading.Event()
        database = self.store.describe()
        logger.info(f"Auditing {database}")

        collections = list_collections(self.store)
        analyses = self._analyze_all(collections, cancel_event)

        relationships = []
        if not cancel_event.is_set():
            logger.info(f"Checking {len(self.rules.relationships)} relationship(s)")
            relationships = check_relationships(
                self.store,
                self.rules.relationships,
                collections,
                sample_size=self.config.relationship_sample_size,
                target_cache=TargetIdCache(self.store),
                cancel_event=cancel_event,
                max_workers=self.config.max_workers,
                orphan_sample_cap=self.config.orphan_sample_cap,
            )

        schema_reports = {name: a.schema for name, a in analyses.items()}
        quality_reports = {name: a.quality for name, a in analyses.items()}
        migrations = plan_migrations(schema_reports, quality_reports, self.rules.quality)
        phases = build_phases(migrations)

        cancelled = cancel_event.is_set()
        if cancelled:
            logger.warning(f"Audit cancelled: {len(analyses)}/{len(collections)} collection(s) analyzed")

        return AuditResult(
            database=database,
            generated_at=datetime.now(timezone.utc).isoformat(),
            collections=analyses,
            relationships=tuple(relationships),
            migrations=tuple(migrations),
            phases=tuple(phases),
            cancelled=cancelled,
        )
