#!/usr/bin/env python3
"""
Dispatcher, worker pool and locator tests.

End-to-end runs use real snapshot files and a SQLite warehouse; the
concurrency checks use a fake source opener.
"""

import threading
import time

import pytest

from core.dispatcher import MigrationDispatcher
from core.errors import DiscoveryError, SchemaReadError
from core.locator import SourceLocator
from core.schema import SourceFile
from core.worker_pool import BoundedWorkerPool
from extensions.plugins.sqlite_adapter import SQLiteAdapter
from snapshot_fixtures import NOUNS_DDL, VERBS_DDL, noun_rows, write_snapshot


class TestBoundedWorkerPool:

    def test_rejects_zero_workers(self):
        with pytest.raises(ValueError):
            BoundedWorkerPool(0)

    def test_never_exceeds_max_workers(self):
        lock = threading.Lock()
        active = [0]
        peak = [0]

        def job(item):
            with lock:
                active[0] += 1
                peak[0] = max(peak[0], active[0])
            time.sleep(0.05)
            with lock:
                active[0] -= 1
            return item * 2

        outcomes = BoundedWorkerPool(max_workers=4).map(job, range(12))

        assert peak[0] <= 4
        assert sorted(o.result for o in outcomes) == [i * 2 for i in range(12)]

    def test_failure_does_not_cancel_other_jobs(self):
        def job(item):
            if item == 3:
                raise RuntimeError("bad file")
            return item

        outcomes = BoundedWorkerPool(max_workers=2).map(job, range(6))

        failed = [o for o in outcomes if not o.ok]
        assert len(outcomes) == 6
        assert len(failed) == 1
        assert failed[0].item == 3
        assert str(failed[0].error) == "bad file"


class FakeSource:
    """Stands in for a snapshot with no tables; tracks concurrent opens"""

    lock = threading.Lock()
    active = 0
    peak = 0

    def __init__(self, path):
        with FakeSource.lock:
            FakeSource.active += 1
            FakeSource.peak = max(FakeSource.peak, FakeSource.active)
        self.path = path

    def get_tables(self):
        time.sleep(0.05)
        return []

    def close(self):
        with FakeSource.lock:
            FakeSource.active -= 1


class TestMigrationDispatcher:

    def test_at_most_four_files_in_flight(self, warehouse, tmp_path):
        FakeSource.active = 0
        FakeSource.peak = 0
        files = [SourceFile(tmp_path / f"{code}_data.sqlite", code) for code in
                 ('en', 'de', 'fr', 'es', 'it', 'pt', 'ru', 'sv', 'nb', 'da')]

        dispatcher = MigrationDispatcher(warehouse, source_opener=FakeSource, record_versions=False)
        report = dispatcher.run(files)

        assert 1 <= FakeSource.peak <= 4
        assert len(report.files) == 10
        assert report.errors == []

    def test_migrates_every_file_and_table(self, make_snapshot, warehouse):
        en = make_snapshot('en', {
            'nouns': (NOUNS_DDL, noun_rows(120)),
            'verbs': (VERBS_DDL, [("run", "to run", "2024-01-01 00:00:00")]),
        })
        de = make_snapshot('de', {'nouns': (NOUNS_DDL, noun_rows(30))})

        report = MigrationDispatcher(warehouse, batch_size=50).run([
            SourceFile(en, 'en'), SourceFile(de, 'de'),
        ])

        assert report.errors == []
        assert report.tables_migrated == 3
        assert report.rows_migrated == 151
        assert warehouse.count_rows('en_nouns') == 120
        assert warehouse.count_rows('en_verbs') == 1
        assert warehouse.count_rows('de_nouns') == 30
        assert [r.source.language_code for r in report.files] == ['de', 'en']

    def test_records_language_versions(self, make_snapshot, warehouse):
        en = make_snapshot('en', {'nouns': (NOUNS_DDL, noun_rows(3))})
        MigrationDispatcher(warehouse).run([SourceFile(en, 'en')])

        versions = warehouse.get_language_versions()
        assert list(versions) == ['en']

        # A second run updates the same row
        MigrationDispatcher(warehouse).run([SourceFile(en, 'en')])
        assert list(warehouse.get_language_versions()) == ['en']

    def test_versions_can_be_disabled(self, make_snapshot, warehouse):
        en = make_snapshot('en', {'nouns': (NOUNS_DDL, noun_rows(3))})
        MigrationDispatcher(warehouse, record_versions=False).run([SourceFile(en, 'en')])
        assert not warehouse.table_exists('language_data_versions')

    def test_file_errors_are_isolated(self, make_snapshot, snapshot_dir, warehouse):
        good = make_snapshot('en', {'nouns': (NOUNS_DDL, noun_rows(10))})
        broken = snapshot_dir / "TranslationData.sqlite_xx.sqlite"
        broken.write_bytes(b"this is not a database file at all" * 100)

        report = MigrationDispatcher(warehouse).run([SourceFile(good, 'en'), SourceFile(broken, 'xx')])

        assert warehouse.count_rows('en_nouns') == 10
        assert report.files_failed == 1
        assert len(report.errors) == 1
        assert str(broken) in report.errors[0]
        assert list(warehouse.get_language_versions()) == ['en']

    def test_table_errors_do_not_stop_sibling_tables(self, make_snapshot, warehouse, monkeypatch):
        en = make_snapshot('en', {
            'nouns': (NOUNS_DDL, noun_rows(10)),
            'verbs': (VERBS_DDL, [("run", "to run", None)]),
        })
        real_get_schema = SQLiteAdapter.get_schema

        def get_schema(self, table_name):
            if table_name == 'nouns':
                raise SchemaReadError(table_name, "corrupt page")
            return real_get_schema(self, table_name)

        monkeypatch.setattr(SQLiteAdapter, 'get_schema', get_schema)
        report = MigrationDispatcher(warehouse).run([SourceFile(en, 'en')])

        assert report.files[0].tables == ['en_verbs']
        assert len(report.errors) == 1
        assert report.errors[0].startswith('[en]')
        assert 'corrupt page' in report.errors[0]
        assert not warehouse.table_exists('en_nouns')
        # A partially failed file does not bump its version
        assert warehouse.get_language_versions() == {}

    def test_empty_run(self, warehouse):
        report = MigrationDispatcher(warehouse).run([])
        assert report.files == []
        assert report.errors == []


class TestSourceLocator:

    def test_discovers_sorted_snapshots(self, make_snapshot, snapshot_dir):
        make_snapshot('fr', {'nouns': (NOUNS_DDL, [])})
        make_snapshot('de', {'nouns': (NOUNS_DDL, [])})
        (snapshot_dir / "notes.txt").write_text("ignored")

        files = SourceLocator(snapshot_dir).discover()

        assert [f.language_code for f in files] == ['de', 'fr']
        assert all(f.path.suffix == '.sqlite' for f in files)

    def test_region_files_get_their_own_code(self, make_snapshot, snapshot_dir):
        make_snapshot('en', {'nouns': (NOUNS_DDL, [])})
        write_snapshot(snapshot_dir / "en_US.sqlite", {'nouns': (NOUNS_DDL, [])})
        files = SourceLocator(snapshot_dir).discover()
        assert [f.language_code for f in files] == ['en', 'en_US']

    def test_region_files_migrate_to_separate_tables(self, make_snapshot, snapshot_dir, warehouse):
        make_snapshot('en', {'nouns': (NOUNS_DDL, noun_rows(3))})
        write_snapshot(snapshot_dir / "en_US.sqlite", {'nouns': (NOUNS_DDL, noun_rows(5))})

        report = SourceLocator(snapshot_dir).run(MigrationDispatcher(warehouse))

        assert report.errors == []
        assert warehouse.count_rows('en_nouns') == 3
        assert warehouse.count_rows('en_US_nouns') == 5

    def test_unrecognized_names_are_rejected_not_fatal(self, make_snapshot, snapshot_dir):
        make_snapshot('en', {'nouns': (NOUNS_DDL, [])})
        write_snapshot(snapshot_dir / "en-GB.sqlite", {'nouns': (NOUNS_DDL, [])})

        locator = SourceLocator(snapshot_dir)
        files = locator.discover()

        assert [f.language_code for f in files] == ['en']
        assert [e.filename for e in locator.rejected] == ['en-GB.sqlite']

    def test_missing_directory_is_fatal(self, tmp_path):
        with pytest.raises(DiscoveryError) as exc_info:
            SourceLocator(tmp_path / "nope").discover()
        assert exc_info.value.is_fatal

    def test_run_reports_rejected_files(self, make_snapshot, snapshot_dir, warehouse):
        make_snapshot('en', {'nouns': (NOUNS_DDL, noun_rows(4))})
        write_snapshot(snapshot_dir / "en-GB.sqlite", {'nouns': (NOUNS_DDL, [])})

        report = SourceLocator(snapshot_dir).run(MigrationDispatcher(warehouse))

        assert report.rows_migrated == 4
        assert len(report.errors) == 1
        assert 'en-GB.sqlite' in report.errors[0]
