"""
Migration Planner

Turns schema and quality reports into per-collection migration tasks and a
three-phase execution order. Pure: no store access, no side effects.
"""

import logging
import re
from typing import Dict, List, Mapping, Optional

from .models import (
    CollectionMigrations,
    MigrationPhase,
    MigrationTask,
    MigrationType,
    Priority,
    QualityCheck,
    QualityReport,
    SchemaReport,
)
from .rules import QualityRules

logger = logging.getLogger(__name__)

PHASE_TITLES = {
    Priority.HIGH: "Critical for functionality",
    Priority.MEDIUM: "Important for consistency",
    Priority.LOW: "Nice to have",
}

PHASE_ACTIONS = {
    Priority.HIGH: ("ID Standardization migrations", "Fix broken relationships"),
    Priority.MEDIUM: ("Price structure migrations", "Rating structure migrations"),
    Priority.LOW: ("Image structure migrations", "Boolean normalization"),
}


def script_name(collection: str, migration_type: MigrationType) -> str:
    """migrate-<collection>-<type-in-kebab-case>.js"""
    kebab = migration_type.value.lower().replace("_", "-")
    safe_collection = re.sub(r"[^A-Za-z0-9_.-]+", "-", collection)
    return f"migrate-{safe_collection}-{kebab}.js"


def _task(collection: str, kind: MigrationType, priority: Priority, description: str,
          affected: Optional[int] = None) -> MigrationTask:
    return MigrationTask(
        collection=collection,
        type=kind,
        priority=priority,
        description=description,
        affected_docs=affected,
        script=script_name(collection, kind),
    )


def _has_any(schema: SchemaReport, names) -> bool:
    return any(schema.has_field(n) for n in names)


def plan_collection(
    schema: SchemaReport,
    quality: Optional[QualityReport],
    rules: QualityRules,
) -> List[MigrationTask]:
    """Derive the tasks for one collection, in fixed rule order."""
    name = schema.collection
    quality = quality or QualityReport(collection=name, total_docs=0)
    tasks: List[MigrationTask] = []

    if schema.has_field(rules.primary_id_field) and _has_any(schema, rules.secondary_id_fields):
        secondary = next(f for f in rules.secondary_id_fields if schema.has_field(f))
        tasks.append(_task(
            name, MigrationType.ID_STANDARDIZATION, Priority.HIGH,
            f"Collection has both '{secondary}' and '{rules.primary_id_field}' fields",
        ))

    price_issues = quality.count(QualityCheck.PRICE_SHAPE)
    if _has_any(schema, rules.price_fields) and price_issues:
        tasks.append(_task(
            name, MigrationType.PRICE_STRUCTURE, Priority.MEDIUM,
            "Price format inconsistencies found", price_issues,
        ))

    rating_issues = quality.count(QualityCheck.RATING_SHAPE)
    if _has_any(schema, rules.rating_fields) and rating_issues:
        tasks.append(_task(
            name, MigrationType.RATING_STRUCTURE, Priority.MEDIUM,
            "Rating format inconsistencies found", rating_issues,
        ))

    if schema.has_field(rules.singular_image_field) and not schema.has_field(rules.plural_image_field):
        tasks.append(_task(
            name, MigrationType.IMAGE_STRUCTURE, Priority.LOW,
            f"Using singular '{rules.singular_image_field}' instead of "
            f"'{rules.plural_image_field}' array",
        ))

    boolean_issues = quality.count(QualityCheck.BOOLEAN_DRIFT)
    if boolean_issues:
        tasks.append(_task(
            name, MigrationType.BOOLEAN_NORMALIZATION, Priority.LOW,
            "String or numeric booleans found", boolean_issues,
        ))

    return tasks


def plan_migrations(
    schema_reports: Mapping[str, SchemaReport],
    quality_reports: Mapping[str, QualityReport],
    rules: Optional[QualityRules] = None,
) -> List[CollectionMigrations]:
    """Plan migrations for every collection that was read successfully.

    Collections with no task are left out. Output is sorted by collection.
    """
    rules = rules or QualityRules()
    plans: List[CollectionMigrations] = []
    for name in sorted(schema_reports):
        schema = schema_reports[name]
        if not schema.ok:
            continue
        tasks = plan_collection(schema, quality_reports.get(name), rules)
        if tasks:
            plans.append(CollectionMigrations(collection=name, tasks=tuple(tasks)))

    total = sum(len(p.tasks) for p in plans)
    logger.info(f"Planned {total} migration(s) across {len(plans)} collection(s)")
    return plans


def build_phases(plans: List[CollectionMigrations]) -> List[MigrationPhase]:
    """Group tasks into phase 1 (HIGH), 2 (MEDIUM) and 3 (LOW).

    All three phases are always returned, empty or not.
    """
    by_priority: Dict[Priority, List[MigrationTask]] = {p: [] for p in Priority}
    for plan in plans:
        for task in plan.tasks:
            by_priority[task.priority].append(task)

    return [
        MigrationPhase(
            number=priority.rank,
            priority=priority,
            title=PHASE_TITLES[priority],
            tasks=tuple(by_priority[priority]),
        )
        for priority in sorted(Priority, key=lambda p: p.rank)
    ]


def priority_counts(plans: List[CollectionMigrations]) -> Dict[Priority, int]:
    counts = {p: 0 for p in Priority}
    for plan in plans:
        for task in plan.tasks:
            counts[task.priority] += 1
    return counts
