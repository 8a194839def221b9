"""Tests for configuration objects."""

from photomigrate.config import DatabaseConfig, GoogleConfig, MigrationConfig


class TestDatabaseConfig:
    def test_from_env(self, monkeypatch):
        monkeypatch.setenv('DATABASE_URL', 'mysql+mysqlconnector://u:p@db:3306/app')
        monkeypatch.setenv('DATABASE_POOL_SIZE', '10')

        config = DatabaseConfig.from_env()

        assert config.url == 'mysql+mysqlconnector://u:p@db:3306/app'
        assert config.pool_size == 10
        assert config.validate() == []

    def test_validate_missing_url(self):
        assert DatabaseConfig().validate() == ["DATABASE_URL is not set"]


class TestGoogleConfig:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv('SOURCE_SHEET_NAME', raising=False)
        monkeypatch.setenv('GOOGLE_ACCESS_TOKEN', 'token')

        config = GoogleConfig.from_env()

        assert config.sheet_name == 'Renta/Long Term'
        assert config.values_range == 'A2:AA'
        assert config.notes_range == 'T2:T1500'

    def test_sheet_range(self):
        config = GoogleConfig(sheet_name='Units')
        assert config.sheet_range('A2:AA') == "'Units'!A2:AA"

    def test_validate(self):
        assert GoogleConfig().validate() == ["GOOGLE_ACCESS_TOKEN is not set"]
        assert GoogleConfig(access_token='t').validate() == []
        assert GoogleConfig(access_token='t').validate(require_sheet=True) == [
            "SOURCE_SPREADSHEET_ID is not set"
        ]


class TestMigrationConfig:
    def test_overrides_skip_unset(self):
        config = MigrationConfig(batch_size=50, concurrency=None, target_quality=0)
        assert config.overrides() == {'batch_size': 50}

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv('MIGRATION_BATCH_SIZE', '20')
        monkeypatch.setenv('MIGRATION_MAX_WIDTH', '1200')
        monkeypatch.delenv('MIGRATION_CONCURRENCY', raising=False)
        monkeypatch.delenv('MIGRATION_QUALITY', raising=False)

        config = MigrationConfig.from_env()

        assert config.overrides() == {'batch_size': 20, 'max_width': 1200}

    def test_validate_quality_range(self):
        assert MigrationConfig(target_quality=70).validate() == []
        assert MigrationConfig(target_quality=101).validate() == [
            "target_quality must be between 1 and 100"
        ]
