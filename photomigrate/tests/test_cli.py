"""Tests for CLI module."""

import json

import pytest

from photomigrate.cli import create_parser, get_migration_config, get_s3_config, main


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path / 'cli.db'}"


@pytest.fixture
def clean_env(monkeypatch):
    """Remove storage and Google settings from the environment."""
    for name in ('S3_BUCKET', 'S3_ACCESS_KEY', 'S3_SECRET_KEY', 'S3_ENDPOINT',
                 'GOOGLE_ACCESS_TOKEN', 'SOURCE_SPREADSHEET_ID', 'DATABASE_URL',
                 'MIGRATION_BATCH_SIZE', 'MIGRATION_CONCURRENCY',
                 'MIGRATION_QUALITY', 'MIGRATION_MAX_WIDTH'):
        monkeypatch.delenv(name, raising=False)


class TestCreateParser:
    """Tests for argument parser creation."""

    def test_parser_created(self):
        """Test parser is created successfully."""
        parser = create_parser()
        assert parser is not None

    def test_run_command(self):
        """Test run command parsing."""
        parser = create_parser()
        args = parser.parse_args([
            'run', '--tenant', 'agency-1', '--batch-size', '20',
            '--concurrency', '4', '--quality', '80', '--max-batches', '2', '--show-files'
        ])

        assert args.command == 'run'
        assert args.tenant == 'agency-1'
        assert args.batch_size == 20
        assert args.target_quality == 80
        assert args.max_batches == 2
        assert args.show_files is True

    def test_start_requires_tenant(self):
        parser = create_parser()
        with pytest.raises(SystemExit):
            parser.parse_args(['start'])

    def test_logs_command(self):
        parser = create_parser()
        args = parser.parse_args(['logs', '--limit', '10', '--status', 'error'])

        assert args.limit == 10
        assert args.status == 'error'

    def test_database_url_on_every_command(self):
        parser = create_parser()
        for command in (['status'], ['init-db'], ['queue'], ['reset-errors']):
            args = parser.parse_args(command + ['--database-url', 'sqlite://'])
            assert args.database_url == 'sqlite://'

    def test_verbose_before_or_after_command(self):
        """Test -v is honoured on either side of the command name."""
        parser = create_parser()

        assert parser.parse_args(['-v', 'status']).verbose is True
        assert parser.parse_args(['status', '-v']).verbose is True
        assert parser.parse_args(['status']).verbose is False

    def test_scan_json_flag(self):
        args = create_parser().parse_args(['scan', '--json', '--limit', '5'])

        assert args.json is True
        assert args.limit == 5


class TestConfigFromArgs:
    """Tests for combining environment and CLI settings."""

    def test_cli_overrides_env(self, monkeypatch):
        monkeypatch.setenv('S3_BUCKET', 'env-bucket')
        args = create_parser().parse_args(['run', '--tenant', 't', '--s3-bucket', 'cli-bucket'])

        assert get_s3_config(args).bucket == 'cli-bucket'

    def test_migration_config(self, clean_env, monkeypatch):
        monkeypatch.setenv('MIGRATION_CONCURRENCY', '6')
        args = create_parser().parse_args(['start', '--tenant', 't', '--max-width', '1200'])

        config = get_migration_config(args)

        assert config.overrides() == {'concurrency': 6, 'max_width': 1200}


class TestMain:
    """Tests for main entry point."""

    def test_no_command(self):
        assert main([]) == 1

    def test_missing_database_url(self, clean_env):
        assert main(['status']) == 1

    def test_init_db_and_status(self, clean_env, database_url, capsys):
        """Test tables can be created and an empty status reported as JSON."""
        assert main(['init-db', '--database-url', database_url]) == 0
        capsys.readouterr()

        assert main(['status', '--json', '--database-url', database_url]) == 0

        status = json.loads(capsys.readouterr().out)
        assert status['status'] == 'idle'
        assert status['total_photos'] == 0

    def test_start_pause(self, clean_env, database_url):
        main(['init-db', '--database-url', database_url])

        assert main(['start', '--tenant', 'agency-1', '--database-url', database_url]) == 0
        assert main(['pause', '--tenant', 'agency-1', '--database-url', database_url]) == 0

    def test_pause_unknown_tenant(self, clean_env, database_url):
        main(['init-db', '--database-url', database_url])
        assert main(['pause', '--tenant', 'nobody', '--database-url', database_url]) == 1

    def test_run_without_storage_config(self, clean_env, database_url):
        assert main(['run', '--tenant', 'agency-1', '--database-url', database_url]) == 1

    def test_scan_without_google_config(self, clean_env, database_url):
        assert main(['scan', '--database-url', database_url]) == 1

    def test_reset_and_queue(self, clean_env, database_url, capsys):
        main(['init-db', '--database-url', database_url])

        assert main(['reset-errors', '--database-url', database_url]) == 0
        assert main(['queue', '--database-url', database_url]) == 0

        out = capsys.readouterr().out
        assert 'Requeued 0 photos' in out
        assert 'Queued 0 photos' in out

    def test_logs(self, clean_env, database_url, capsys):
        main(['init-db', '--database-url', database_url])

        assert main(['logs', '--database-url', database_url]) == 0
        assert main(['logs', '--errors', '--database-url', database_url]) == 0

        out = capsys.readouterr().out
        assert 'No migration attempts logged.' in out
        assert 'No photos in error state.' in out
