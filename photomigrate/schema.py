"""
Table definitions for the migration pipeline.

Three record types are owned by the pipeline (media items, migration meta,
migration logs). The units table belongs to the surrounding platform and
is declared here so the scanner can resolve source rows to units.
"""

from sqlalchemy import (
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
)

metadata = MetaData()

# Longest error message stored on a media item.
MAX_ERROR_LENGTH = 1000

units = Table(
    'external_units',
    metadata,
    Column('id', String(64), primary_key=True),
    Column('tenant_id', String(64), nullable=False, index=True),
    Column('source_row_id', String(128), unique=True),
    Column('name', String(255)),
)

media_items = Table(
    'external_unit_media',
    metadata,
    Column('id', String(64), primary_key=True),
    Column('tenant_id', String(64), index=True),
    Column('parent_id', String(64), nullable=False, index=True),
    Column('source_file_id', String(128)),
    Column('file_name', String(500)),
    Column('storage_url', String(2000)),
    Column('storage_path', String(1000)),
    Column('width', Integer),
    Column('height', Integer),
    Column('byte_size', Integer),
    Column('quality_version', Integer),
    Column('migration_status', String(16), nullable=False, default='none'),
    Column('migration_error', String(MAX_ERROR_LENGTH)),
    Column('migrated_at', DateTime),
    Column('claim_token', String(64)),
    Column('claimed_at', DateTime),
    Column('slot', String(32)),
    Column('position', Integer),
    Column('created_at', DateTime),
    Column('updated_at', DateTime),
    Index('ix_media_migration_status', 'migration_status'),
    Index('ix_media_claim_token', 'claim_token'),
)

migration_meta = Table(
    'photo_migration_meta',
    metadata,
    Column('id', String(64), primary_key=True),
    Column('tenant_id', String(64), nullable=False, unique=True),
    Column('total_photos', Integer, nullable=False, default=0),
    Column('processed_photos', Integer, nullable=False, default=0),
    Column('pending_photos', Integer, nullable=False, default=0),
    Column('error_photos', Integer, nullable=False, default=0),
    Column('last_batch_size', Integer, nullable=False, default=0),
    Column('status', String(16), nullable=False, default='idle'),
    Column('error_message', Text),
    Column('batch_size', Integer, nullable=False, default=100),
    Column('concurrency', Integer, nullable=False, default=3),
    Column('target_quality', Integer, nullable=False, default=70),
    Column('max_width', Integer, nullable=False, default=1600),
    Column('started_at', DateTime),
    Column('paused_at', DateTime),
    Column('completed_at', DateTime),
    Column('last_updated_at', DateTime),
    Column('created_at', DateTime),
)

migration_logs = Table(
    'photo_migration_logs',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('migration_meta_id', String(64), index=True),
    Column('photo_id', String(64), nullable=False, index=True),
    Column('status', String(16), nullable=False),
    Column('error_message', Text),
    Column('original_size', Integer),
    Column('processed_size', Integer),
    Column('original_width', Integer),
    Column('original_height', Integer),
    Column('processed_width', Integer),
    Column('processed_height', Integer),
    Column('processing_time_ms', Integer),
    Column('processed_at', DateTime, index=True),
)
