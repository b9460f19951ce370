import pytest

from models.prtimes_companies import PRTimesCompany
from models.prtimes_uploads import PRTimesUpload
from scripts import clear_batches
from services import ingestion_coordinator


def _seed(db, make_row):
    ingestion_coordinator.start_upload(db, "a.csv", 2, "admin", batch_id="A")
    ingestion_coordinator.ingest_rows(db, "A", [make_row(1), make_row(2)])
    ingestion_coordinator.start_upload(db, "b.csv", 1, "admin", batch_id="B")
    ingestion_coordinator.ingest_rows(db, "B", [make_row(3)])
    ingestion_coordinator.start_upload(db, "open.csv", 5, "admin", batch_id="OPEN")


def test_dry_run_reports_without_deleting(db, make_row):
    _seed(db, make_row)

    report = clear_batches.run(["A", "missing"], dry_run=True)

    assert report["dryRun"] is True
    assert [item["batchId"] for item in report["evicted"]] == ["A"]
    assert report["evicted"][0]["records"] == 2
    assert report["skipped"][0]["batchId"] == "missing"
    assert db.query(PRTimesCompany).count() == 3


def test_all_evicts_only_finished_batches(db, make_row):
    _seed(db, make_row)

    report = clear_batches.run([], clear_all=True)

    assert sorted(item["batchId"] for item in report["evicted"]) == ["A", "B"]
    assert db.query(PRTimesCompany).count() == 0
    assert [u.batch_id for u in db.query(PRTimesUpload).all()] == ["OPEN"]


def test_cli_requires_targets():
    with pytest.raises(SystemExit):
        clear_batches.main([])


def test_cli_prints_summary(db, make_row, capsys):
    _seed(db, make_row)

    clear_batches.main(["B", "--dry-run"])

    assert "records would delete=1" in capsys.readouterr().out
