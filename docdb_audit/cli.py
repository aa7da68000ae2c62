"""
Command line entry point.

Usage:
  docdb-audit mongodb://localhost:27017/shop ./reports
  docdb-audit --snapshot dump.json ./reports --excel
  DATABASE_URL=postgresql://... docdb-audit "" ./reports --database public
"""

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from pymongo.errors import PyMongoError
from sqlalchemy.exc import SQLAlchemyError

from .auditor import DatabaseAuditor
from .config import AuditConfig, load_env
from .errors import AuditConnectionError, ConfigError
from .excel_export import write_workbook
from .reporting import write_reports
from .rules import load_rules
from .stores import MemoryStore, get_store, redact_url

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docdb-audit",
        description="Audit a document database: schema, data quality, references and migrations",
    )
    parser.add_argument("database_url", nargs="?", default=None,
                        help="Database URL (default: DATABASE_URL env)")
    parser.add_argument("output_dir", nargs="?", default="audit-reports",
                        help="Directory for the reports (default: ./audit-reports)")
    parser.add_argument("--database", default=None,
                        help="MongoDB database or SQL schema to audit (default: DATABASE_NAME env or URL default)")
    parser.add_argument("--snapshot", default=None,
                        help="Audit a JSON snapshot file instead of a live database")
    parser.add_argument("--sample-size", type=int, default=None,
                        help="Documents sampled per collection for schema and quality (default: 10)")
    parser.add_argument("--relationship-sample-size", type=int, default=None,
                        help="Source documents sampled per relationship (default: 100)")
    parser.add_argument("--workers", type=int, default=None,
                        help="Collections analyzed in parallel (default: min(8, CPUs))")
    parser.add_argument("--rules", default=None,
                        help="YAML rules file (default: AUDIT_RULES_PATH env or built-in rules)")
    parser.add_argument("--excel", action="store_true",
                        help="Also write audit.xlsx into the output directory")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
    load_env()

    parser = build_parser()
    args = parser.parse_args(argv)

    output_dir = Path(args.output_dir)
    if args.snapshot and args.database_url and args.output_dir == parser.get_default("output_dir"):
        # "--snapshot dump.json ./reports": the only positional is the output dir
        output_dir = Path(args.database_url)
    database_url = args.snapshot or args.database_url or os.environ.get("DATABASE_URL")
    if not database_url:
        parser.error("database_url required (argument, --snapshot or DATABASE_URL env)")

    try:
        config = AuditConfig.from_env().with_overrides(
            sample_size=args.sample_size,
            relationship_sample_size=args.relationship_sample_size,
            max_workers=args.workers,
            database_name=args.database,
        )
        rules = load_rules(args.rules or os.environ.get("AUDIT_RULES_PATH"))
    except ConfigError as e:
        parser.error(str(e))

    logger.info(f"Connecting to {redact_url(database_url)}")
    try:
        if args.snapshot:
            store = MemoryStore.from_json(args.snapshot)
        else:
            store = get_store(database_url, database_name=config.database_name)
    except (ValueError, OSError, ImportError, SQLAlchemyError, PyMongoError) as e:
        logger.error(f"Could not open {redact_url(database_url)}: {e}")
        return 1

    with store:
        try:
            result = DatabaseAuditor(store, config, rules).run()
        except AuditConnectionError as e:
            logger.error(f"Audit failed: {e}")
            return 1
        except KeyboardInterrupt:
            logger.warning("Interrupted")
            return 130

    write_reports(result, output_dir)
    if args.excel:
        write_workbook(result, output_dir / "audit.xlsx")

    logger.info(
        f"Done  {len(result.collections)} collections, {len(result.relationships)} relationships, "
        f"{result.total_tasks} migrations"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
