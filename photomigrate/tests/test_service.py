"""Tests for MigrationService class."""

from unittest.mock import MagicMock

import pytest

from photomigrate.batch_stats import BatchStats
from photomigrate.batch_worker import BatchWorker
from photomigrate.config import DatabaseConfig, GoogleConfig, MigrationConfig, S3Config
from photomigrate.exceptions import ConfigError
from photomigrate.google_client import DriveClient
from photomigrate.s3_client import S3Client
from photomigrate.scanner import DiscoveryScanner, ScanResult
from photomigrate.service import MigrationService


def assert_conserved(meta):
    assert meta.total_photos == meta.processed_photos + meta.pending_photos + meta.error_photos


class TestMigrationService:
    """Tests for MigrationService class."""

    @pytest.fixture
    def service(self, db, item_store, meta_store, migration_log, logger):
        return MigrationService(
            db,
            item_store=item_store,
            meta_store=meta_store,
            migration_log=migration_log,
            logger=logger,
        )

    def test_start_and_pause(self, service):
        meta = service.start('agency-1', MigrationConfig(concurrency=5))
        assert meta.status == 'running'
        assert meta.concurrency == 5

        paused = service.pause('agency-1')
        assert paused.status == 'paused'

    def test_start_rejects_invalid_config(self, service):
        with pytest.raises(ConfigError, match="target_quality"):
            service.start('agency-1', MigrationConfig(target_quality=150))

    def test_reset_errors_keeps_counters_conserved(self, service, meta_store, item_store, add_item):
        """Test a reset moves errors back to pending in both items and counters."""
        for _ in range(3):
            add_item()
        meta_store.get_or_create('agency-1')
        failed = [add_item(status='processing') for _ in range(2)]
        for item in failed:
            item_store.mark_error(item.id, 'boom')
        meta_store.refresh_counts('agency-1')

        count = service.reset_errors('agency-1')

        assert count == 2
        meta = meta_store.get('agency-1')
        assert meta.error_photos == 0
        assert meta.pending_photos == 5
        assert_conserved(meta)
        assert item_store.count_by_status('agency-1').errors == 0

    def test_reset_errors_all_tenants_refreshes(self, service, meta_store, item_store, add_item):
        a = add_item(tenant_id='agency-a', status='error')
        b = add_item(tenant_id='agency-b', status='error')
        meta_store.get_or_create('agency-a')
        meta_store.get_or_create('agency-b')

        assert service.reset_errors() == 2

        for tenant in ('agency-a', 'agency-b'):
            meta = meta_store.get(tenant)
            assert meta.error_photos == 0
            assert meta.pending_photos == 1
        assert item_store.get(a.id).migration_status == 'pending'
        assert item_store.get(b.id).migration_status == 'pending'

    def test_queue_all(self, service, meta_store, add_item):
        meta_store.get_or_create('agency-1')
        add_item(status='none')
        add_item(status='none')

        assert service.queue_all('agency-1') == 2
        assert meta_store.get('agency-1').pending_photos == 2

    def test_get_status_uses_live_counts(self, service, meta_store, add_item):
        """Test status counts come from the items, run state from the record."""
        add_item(status='done')
        add_item(status='pending')
        add_item(status='none')
        add_item(status='error')
        meta_store.start('agency-1')

        status = service.get_status('agency-1')

        assert status.total_photos == 4
        assert status.processed_photos == 1
        assert status.pending_photos == 2
        assert status.error_photos == 1
        assert status.status == 'running'
        assert status.percent_complete == 25.0

    def test_get_status_without_tenant_uses_latest(self, service, meta_store, add_item):
        add_item(tenant_id='agency-a')
        add_item(tenant_id='agency-b')
        meta_store.start('agency-b')

        status = service.get_status()

        assert status.total_photos == 2
        assert status.status == 'running'

    def test_get_status_without_record(self, service):
        status = service.get_status('agency-1')

        assert status.status == 'idle'
        assert status.total_photos == 0
        assert status.percent_complete == 100.0
        assert status.to_dict()['started_at'] is None

    def test_errored_items_and_logs(self, service, add_item, migration_log):
        add_item(status='error', migration_error='boom')

        assert len(service.errored_items()) == 1
        assert service.recent_logs() == []

    def test_run_requires_worker(self, service):
        with pytest.raises(ConfigError):
            service.run('agency-1')
        with pytest.raises(ConfigError):
            service.run_batch('agency-1')

    def test_scan_requires_scanner(self, service):
        with pytest.raises(ConfigError):
            service.scan()

    def test_run_starts_and_drives_worker(self, service, meta_store):
        worker = MagicMock(spec=BatchWorker)
        worker.run_until_idle.return_value = [BatchStats(tenant_id='agency-1', run_completed=True)]
        service.worker = worker

        batches = service.run('agency-1', MigrationConfig(batch_size=10), max_batches=3)

        assert batches[0].run_completed is True
        assert meta_store.get('agency-1').batch_size == 10
        worker.run_until_idle.assert_called_once_with('agency-1', max_batches=3, progress=None)

    def test_dry_run_keeps_paused_run_paused(self, service, meta_store, item_store, migration_log, add_item, logger):
        """Test a dry run neither resumes a paused run nor touches its items."""
        item = add_item()
        meta_store.start('agency-1')
        meta_store.pause('agency-1')
        source = MagicMock(spec=DriveClient)
        service.worker = BatchWorker(
            item_store, meta_store, migration_log,
            source=source, storage=MagicMock(spec=S3Client),
            dry_run=True, logger=logger,
        )

        service.run('agency-1', MigrationConfig(batch_size=10))

        meta = meta_store.get('agency-1')
        assert meta.status == 'paused'
        assert meta.batch_size != 10
        assert item_store.get(item.id).migration_status == 'pending'
        source.download.assert_not_called()

    def test_scan_delegates(self, service):
        scanner = MagicMock(spec=DiscoveryScanner)
        scanner.scan.return_value = ScanResult(rows_scanned=1)
        service.scanner = scanner

        assert service.scan(limit=5).rows_scanned == 1
        scanner.scan.assert_called_once_with(limit=5)


class TestFromConfig:
    """Tests for building a service from configuration."""

    def test_database_only(self, tmp_path):
        service = MigrationService.from_config(DatabaseConfig(url=f"sqlite:///{tmp_path / 'a.db'}"))

        assert service.worker is None
        assert service.scanner is None

    def test_full_configuration(self, tmp_path, s3_config, google_config, mocker):
        mocker.patch('photomigrate.s3_client.boto3.client')

        service = MigrationService.from_config(
            DatabaseConfig(url=f"sqlite:///{tmp_path / 'a.db'}"),
            s3_config,
            google_config,
        )

        assert isinstance(service.worker, BatchWorker)
        assert isinstance(service.scanner, DiscoveryScanner)

    def test_google_without_sheet_builds_no_scanner(self, tmp_path, s3_config, mocker):
        mocker.patch('photomigrate.s3_client.boto3.client')

        service = MigrationService.from_config(
            DatabaseConfig(url=f"sqlite:///{tmp_path / 'a.db'}"),
            s3_config,
            GoogleConfig(access_token='t'),
        )

        assert service.worker is not None
        assert service.scanner is None

    def test_invalid_s3_builds_no_worker(self, tmp_path, google_config):
        service = MigrationService.from_config(
            DatabaseConfig(url=f"sqlite:///{tmp_path / 'a.db'}"),
            S3Config(),
            google_config,
        )

        assert service.worker is None
        assert service.scanner is not None
