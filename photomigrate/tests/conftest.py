"""
Pytest fixtures for photomigrate tests.
"""

import io
import itertools
from datetime import datetime, timedelta

import pytest
from PIL import Image


_AUTO = object()


@pytest.fixture
def logger():
    """Fixture providing a logger."""
    import logging
    return logging.getLogger('test')


@pytest.fixture
def db(tmp_path, logger):
    """Fixture providing a SQLite-backed Database with all tables created."""
    from photomigrate.database import Database

    database = Database.from_url(f"sqlite:///{tmp_path / 'migration.db'}", logger=logger)
    database.create_tables()
    yield database
    database.dispose()


@pytest.fixture
def item_store(db, logger):
    from photomigrate.media_store import MediaItemStore
    return MediaItemStore(db, logger)


@pytest.fixture
def meta_store(db, item_store, logger):
    from photomigrate.meta_store import MigrationMetaStore
    return MigrationMetaStore(db, item_store, logger)


@pytest.fixture
def migration_log(db, logger):
    from photomigrate.migration_log import MigrationLog
    return MigrationLog(db, logger)


@pytest.fixture
def add_item(item_store):
    """
    Fixture providing a factory that inserts media items.

    Items get increasing ``created_at`` values so listing order follows
    insertion order.
    """
    from photomigrate.models import MediaItem

    counter = itertools.count()
    base = datetime(2026, 1, 1)

    def _add(
        item_id=None,
        tenant_id='agency-1',
        parent_id='unit-1',
        source_file_id=_AUTO,
        status='pending',
        **extra
    ):
        n = next(counter)
        item = MediaItem(
            id=item_id or f"item-{n}",
            tenant_id=tenant_id,
            parent_id=parent_id,
            source_file_id=f"drive-{n}" if source_file_id is _AUTO else source_file_id,
            file_name=f"photo_{n}.jpg",
            migration_status=status,
            created_at=base + timedelta(seconds=n),
            **extra
        )
        assert item_store.insert_if_absent(item)
        return item

    return _add


@pytest.fixture
def add_unit(item_store):
    """Fixture providing a factory that inserts units."""
    from photomigrate.models import Unit

    def _add(unit_id='unit-1', tenant_id='agency-1', source_row_id='R1', name=None):
        unit = Unit(id=unit_id, tenant_id=tenant_id, source_row_id=source_row_id, name=name)
        item_store.add_unit(unit)
        return unit

    return _add


@pytest.fixture
def s3_config():
    """Fixture providing S3 configuration."""
    from photomigrate.config import S3Config

    return S3Config(
        endpoint='https://test-endpoint.example.com:9000',
        bucket='test-bucket',
        prefix='external-units/images',
        access_key='test-access-key',
        secret_key='test-secret-key',
        region='us-east-1',
    )


@pytest.fixture
def google_config():
    """Fixture providing Google configuration."""
    from photomigrate.config import GoogleConfig

    return GoogleConfig(
        access_token='test-token',
        spreadsheet_id='sheet-123',
        sheet_name='Renta/Long Term',
    )


def _image_bytes(size, mode='RGB', color='red', fmt='JPEG'):
    img = Image.new(mode, size, color=color)
    buffer = io.BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def wide_jpeg_bytes():
    """Fixture providing a 2000x1000 JPEG."""
    return _image_bytes((2000, 1000))


@pytest.fixture
def small_jpeg_bytes():
    """Fixture providing an 800x600 JPEG."""
    return _image_bytes((800, 600), color='blue')


@pytest.fixture
def sample_png_bytes():
    """Fixture providing sample PNG image bytes with transparency."""
    return _image_bytes((100, 100), mode='RGBA', color=(255, 0, 0, 128), fmt='PNG')
