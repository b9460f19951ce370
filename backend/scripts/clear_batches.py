import argparse
import logging

from db.session import SessionLocal
from db.base import Base
from db.session import engine
from models.prtimes_uploads import PRTimesUpload, TERMINAL_STATUSES
from services.batch_eviction import describe_batch, evict_batch
from services.errors import IngestionError

logger = logging.getLogger("clear_batches")


def _target_batches(db, batch_ids: list[str], clear_all: bool) -> list[str]:
    if not clear_all:
        return batch_ids
    rows = (
        db.query(PRTimesUpload.batch_id)
        .filter(PRTimesUpload.status.in_(TERMINAL_STATUSES))
        .order_by(PRTimesUpload.upload_date.asc())
        .all()
    )
    return [r.batch_id for r in rows]


def run(batch_ids: list[str], clear_all: bool = False, dry_run: bool = False) -> dict:
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    report = {"evicted": [], "skipped": [], "dryRun": dry_run}
    try:
        for batch_id in _target_batches(db, batch_ids, clear_all):
            try:
                if dry_run:
                    plan = describe_batch(db, batch_id)
                    logger.info("DRY RUN: batch=%s status=%s records=%s", batch_id, plan["status"], plan["records"])
                    report["evicted"].append(plan)
                    continue
                result = evict_batch(db, batch_id)
                logger.info("Evicted batch=%s records=%s", batch_id, result["deletedRecords"])
                report["evicted"].append({"batchId": batch_id, **result})
            except IngestionError as exc:
                logger.warning("Skipped batch=%s: %s", batch_id, exc)
                report["skipped"].append({"batchId": batch_id, "reason": str(exc)})
    finally:
        db.close()
    return report


def main(argv: list[str] | None = None):
    parser = argparse.ArgumentParser(description="Delete PR TIMES upload batches and their records.")
    parser.add_argument("batch_ids", nargs="*", help="batch ids to delete")
    parser.add_argument("--all", action="store_true", dest="clear_all", help="delete every finished batch")
    parser.add_argument("--dry-run", action="store_true", help="only report what would be deleted")
    args = parser.parse_args(argv)

    if not args.batch_ids and not args.clear_all:
        raise SystemExit("Pass one or more batch ids, or --all")

    logging.basicConfig(level=logging.INFO)
    report = run(args.batch_ids, clear_all=args.clear_all, dry_run=args.dry_run)

    total = sum(item.get("deletedRecords", item.get("records", 0)) for item in report["evicted"])
    verb = "would delete" if args.dry_run else "deleted"
    print(f"batches={len(report['evicted'])} skipped={len(report['skipped'])} records {verb}={total}")


if __name__ == "__main__":
    main()
