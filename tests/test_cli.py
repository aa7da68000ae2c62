"""Tests for the docdb-audit command."""

import json

import pytest

from docdb_audit import cli

from conftest import shop_collections


@pytest.fixture
def snapshot(temp_dir):
    path = temp_dir / "shop.json"
    path.write_text(json.dumps(shop_collections()), encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def _no_keyvault(monkeypatch, temp_dir):
    monkeypatch.delenv("KEYVAULT_NAME", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.chdir(temp_dir)


class TestCli:

    def test_snapshot_audit(self, snapshot, temp_dir):
        out = temp_dir / "reports"
        code = cli.main([str(snapshot), str(out), "--workers", "1", "--excel"])

        assert code == 0
        assert (out / "SUMMARY.md").exists()
        assert (out / "raw-analysis-data.json").exists()
        assert (out / "audit.xlsx").exists()

    def test_snapshot_flag_takes_single_positional_as_output(self, snapshot, temp_dir):
        out = temp_dir / "snap-reports"
        assert cli.main(["--snapshot", str(snapshot), str(out)]) == 0
        assert (out / "MIGRATION_PLAN.md").exists()

    def test_sample_size_flag(self, snapshot, temp_dir):
        out = temp_dir / "r"
        cli.main([str(snapshot), str(out), "--sample-size", "1"])
        data = json.loads((out / "raw-analysis-data.json").read_text(encoding="utf-8"))
        assert data["collections"]["products"]["schema"]["sample_size"] == 1

    def test_missing_url_is_usage_error(self):
        with pytest.raises(SystemExit) as exc:
            cli.main([])
        assert exc.value.code == 2

    def test_unreachable_database_exits_1(self, temp_dir):
        # SQLite cannot open a database under a missing directory
        url = f"sqlite:///{temp_dir / 'missing' / 'x.db'}"
        assert cli.main([url, str(temp_dir / "out")]) == 1

    def test_unknown_sqlalchemy_dialect_exits_1(self, temp_dir):
        assert cli.main(["nosuchdialect://host/db", str(temp_dir / "out")]) == 1
        assert not (temp_dir / "out" / "SUMMARY.md").exists()
