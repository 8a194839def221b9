"""
Command Line Interface for the photo migration.
"""

import argparse
import json
import logging
import urllib3
from typing import List, Optional

from .batch_progress import BatchProgress
from .config import DatabaseConfig, GoogleConfig, MigrationConfig, S3Config
from .exceptions import BatchFatalError, ConfigError
from .models import LogStatus
from .reporter import Reporter
from .service import MigrationService


def setup_logging(verbose: bool) -> logging.Logger:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    logging.getLogger('boto3').setLevel(logging.WARNING)
    logging.getLogger('botocore').setLevel(logging.WARNING)
    logging.getLogger('urllib3').setLevel(logging.WARNING)
    logging.getLogger('sqlalchemy').setLevel(logging.WARNING)

    return logging.getLogger('photomigrate')


def get_database_config(args: argparse.Namespace) -> DatabaseConfig:
    """Get database configuration from environment and CLI overrides."""
    config = DatabaseConfig.from_env()
    if getattr(args, 'database_url', None):
        config.url = args.database_url
    return config


def get_s3_config(args: argparse.Namespace) -> S3Config:
    """Get S3 configuration from environment and CLI overrides."""
    config = S3Config.from_env()

    if getattr(args, 's3_endpoint', None):
        config.endpoint = args.s3_endpoint
    if getattr(args, 's3_bucket', None):
        config.bucket = args.s3_bucket
    if getattr(args, 's3_prefix', None):
        config.prefix = args.s3_prefix
    if getattr(args, 's3_access_key', None):
        config.access_key = args.s3_access_key
    if getattr(args, 's3_secret_key', None):
        config.secret_key = args.s3_secret_key

    return config


def get_google_config(args: argparse.Namespace) -> GoogleConfig:
    """Get Google configuration from environment and CLI overrides."""
    config = GoogleConfig.from_env()
    if getattr(args, 'spreadsheet_id', None):
        config.spreadsheet_id = args.spreadsheet_id
    if getattr(args, 'sheet_name', None):
        config.sheet_name = args.sheet_name
    return config


def get_migration_config(args: argparse.Namespace) -> MigrationConfig:
    """Run overrides from environment, replaced by any CLI flags given."""
    config = MigrationConfig.from_env()
    for name in ('batch_size', 'concurrency', 'target_quality', 'max_width'):
        value = getattr(args, name, None)
        if value is not None:
            setattr(config, name, value)
    return config


def build_service(
    args: argparse.Namespace,
    logger: logging.Logger,
    need_worker: bool = False,
    need_scanner: bool = False
) -> Optional[MigrationService]:
    """
    Build the service, logging configuration problems.

    Returns:
        The service, or None if required configuration is missing
    """
    db_config = get_database_config(args)
    s3_config = get_s3_config(args) if need_worker else None
    google_config = get_google_config(args) if need_worker or need_scanner else None

    errors = list(db_config.validate())
    if s3_config is not None:
        errors.extend(s3_config.validate())
    if google_config is not None:
        errors.extend(google_config.validate(require_sheet=need_scanner))
    if errors:
        for error in errors:
            logger.error(error)
        return None

    return MigrationService.from_config(db_config, s3_config, google_config, logger=logger)


def add_database_arguments(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group('Database')
    group.add_argument('--database-url', help='Override DATABASE_URL')


def add_storage_arguments(parser: argparse.ArgumentParser) -> None:
    """Add storage configuration arguments to a parser."""
    s3_group = parser.add_argument_group('S3 Storage')
    s3_group.add_argument('--s3-endpoint', help='Override S3_ENDPOINT')
    s3_group.add_argument('--s3-bucket', help='Override S3_BUCKET')
    s3_group.add_argument('--s3-prefix', help='Override S3_PREFIX')
    s3_group.add_argument('--s3-access-key', help='Override S3_ACCESS_KEY')
    s3_group.add_argument('--s3-secret-key', help='Override S3_SECRET_KEY')


def add_run_config_arguments(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group('Run Settings')
    group.add_argument('--batch-size', type=int, help='Items claimed per batch')
    group.add_argument('--concurrency', type=int, help='Items processed in parallel')
    group.add_argument('--quality', dest='target_quality', type=int, help='WebP quality (1-100)')
    group.add_argument('--max-width', type=int, help='Maximum output width in pixels')


def cmd_status(args: argparse.Namespace) -> int:
    """Execute status command."""
    logger = setup_logging(args.verbose)
    service = build_service(args, logger)
    if service is None:
        return 1

    try:
        snapshot = service.get_status(args.tenant)
        if args.json:
            print(json.dumps(snapshot.to_dict(), indent=2))
            return 0

        meta = service.get_meta(args.tenant)
        reporter = Reporter()
        reporter.report_status(
            snapshot,
            meta=meta,
            average_ms=service.average_processing_ms(args.tenant),
            tenant_id=args.tenant,
        )
        return 0
    except Exception as e:
        logger.exception(f"Status failed: {e}")
        return 1
    finally:
        service.close()


def cmd_start(args: argparse.Namespace) -> int:
    """Execute start command."""
    logger = setup_logging(args.verbose)
    service = build_service(args, logger)
    if service is None:
        return 1

    try:
        meta = service.start(args.tenant, get_migration_config(args))
        logger.info(
            f"Run is {meta.status}: batch size {meta.batch_size}, concurrency {meta.concurrency}, "
            f"quality {meta.target_quality}, max width {meta.max_width}px"
        )
        return 0
    except ConfigError as e:
        logger.error(str(e))
        return 1
    finally:
        service.close()


def cmd_pause(args: argparse.Namespace) -> int:
    """Execute pause command."""
    logger = setup_logging(args.verbose)
    service = build_service(args, logger)
    if service is None:
        return 1

    try:
        meta = service.pause(args.tenant)
        if meta is None:
            logger.warning(f"No migration record for tenant {args.tenant}")
            return 1
        return 0
    finally:
        service.close()


def cmd_run(args: argparse.Namespace) -> int:
    """Execute run command."""
    logger = setup_logging(args.verbose)
    urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    service = build_service(args, logger, need_worker=True)
    if service is None:
        return 1

    service.worker.cadence = args.cadence
    service.worker.dry_run = args.dry_run

    if args.max_batches:
        logger.info(f"Test mode: limiting to {args.max_batches} batches")

    progress = None
    if not args.quiet:
        progress = BatchProgress(show_files=args.show_files, logger=logger)

    try:
        batches = service.run(
            args.tenant,
            config=get_migration_config(args),
            max_batches=args.max_batches,
            progress=progress,
        )
        if not args.quiet:
            print()
            Reporter().report_run(batches)
        return 0 if all(b.errors == 0 for b in batches) else 1

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except BatchFatalError as e:
        logger.error(f"Run stopped: {e}")
        return 1
    except ConfigError as e:
        logger.error(str(e))
        return 1
    except Exception as e:
        logger.exception(f"Run failed: {e}")
        return 1
    finally:
        service.close()


def cmd_scan(args: argparse.Namespace) -> int:
    """Execute scan command."""
    logger = setup_logging(args.verbose)
    service = build_service(args, logger, need_scanner=True)
    if service is None:
        return 1

    if args.limit:
        logger.info(f"Test mode: limiting to {args.limit} rows")

    try:
        result = service.scan(limit=args.limit)
        if args.json:
            print(json.dumps(result.to_dict(), indent=2))
        elif not args.quiet:
            print()
            Reporter().report_scan(result)
        return 0
    except Exception as e:
        logger.exception(f"Scan failed: {e}")
        return 1
    finally:
        service.close()


def cmd_reset_errors(args: argparse.Namespace) -> int:
    """Execute reset-errors command."""
    logger = setup_logging(args.verbose)
    service = build_service(args, logger)
    if service is None:
        return 1

    try:
        count = service.reset_errors(args.tenant)
        print(f"Requeued {count} photos")
        return 0
    finally:
        service.close()


def cmd_queue(args: argparse.Namespace) -> int:
    """Execute queue command."""
    logger = setup_logging(args.verbose)
    service = build_service(args, logger)
    if service is None:
        return 1

    try:
        count = service.queue_all(args.tenant)
        print(f"Queued {count} photos")
        return 0
    finally:
        service.close()


def cmd_logs(args: argparse.Namespace) -> int:
    """Execute logs command."""
    logger = setup_logging(args.verbose)
    service = build_service(args, logger)
    if service is None:
        return 1

    try:
        reporter = Reporter()
        if args.errors:
            reporter.report_errors(service.errored_items(limit=args.limit, tenant_id=args.tenant))
        else:
            status = LogStatus(args.status) if args.status else None
            reporter.report_logs(service.recent_logs(limit=args.limit, status=status))
        return 0
    finally:
        service.close()


def cmd_init_db(args: argparse.Namespace) -> int:
    """Execute init-db command."""
    logger = setup_logging(args.verbose)
    service = build_service(args, logger)
    if service is None:
        return 1

    try:
        service.db.create_tables()
        logger.info("Tables created")
        return 0
    except Exception as e:
        logger.exception(f"Table creation failed: {e}")
        return 1
    finally:
        service.close()


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog='photomigrate',
        description='Migrate Drive-hosted unit photos into canonical storage',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Workflow:
  1. Scan:    python -m photomigrate scan
  2. Start:   python -m photomigrate start --tenant AGENCY
  3. Run:     python -m photomigrate run --tenant AGENCY
  4. Status:  python -m photomigrate status --tenant AGENCY

Retry failures with reset-errors, then run again.

Testing:
  Use --max-batches 1 --batch-size 3 to migrate only 3 photos
"""
    )

    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    status_parser = subparsers.add_parser('status', help='Show migration progress')
    status_parser.add_argument('--tenant', help='Tenant (default: all, with latest run state)')
    status_parser.add_argument('--json', action='store_true', help='Print the status as JSON')

    start_parser = subparsers.add_parser('start', help='Start or resume a run')
    start_parser.add_argument('--tenant', required=True, help='Tenant to migrate')
    add_run_config_arguments(start_parser)

    pause_parser = subparsers.add_parser('pause', help='Pause a run after the current batch')
    pause_parser.add_argument('--tenant', required=True, help='Tenant to pause')

    run_parser = subparsers.add_parser('run', help='Start a run and process batches until done')
    run_parser.add_argument('--tenant', required=True, help='Tenant to migrate')
    run_parser.add_argument('-c', '--cadence', type=float, default=0.0, help='Seconds between batches')
    run_parser.add_argument('--max-batches', type=int, metavar='N', help='Stop after N batches')
    run_parser.add_argument('-n', '--dry-run', action='store_true', help='Show what would be claimed')
    run_parser.add_argument('-q', '--quiet', action='store_true', help='Suppress progress output')
    run_parser.add_argument('--show-files', action='store_true',
                            help='Print each photo as processed with result')
    add_run_config_arguments(run_parser)
    add_storage_arguments(run_parser)

    scan_parser = subparsers.add_parser('scan', help='Queue photos from Drive folders linked in the sheet')
    scan_parser.add_argument('--spreadsheet-id', help='Override SOURCE_SPREADSHEET_ID')
    scan_parser.add_argument('--sheet-name', help='Override SOURCE_SHEET_NAME')
    scan_parser.add_argument('--limit', type=int, metavar='N', help='Limit to N rows (for testing)')
    scan_parser.add_argument('-q', '--quiet', action='store_true', help='Suppress the summary')
    scan_parser.add_argument('--json', action='store_true', help='Print the scan result as JSON')

    reset_parser = subparsers.add_parser('reset-errors', help='Requeue photos whose migration failed')
    reset_parser.add_argument('--tenant', help='Tenant (default: all)')

    queue_parser = subparsers.add_parser('queue', help='Queue every never-queued photo')
    queue_parser.add_argument('--tenant', help='Tenant (default: all)')

    logs_parser = subparsers.add_parser('logs', help='Show recent migration attempts')
    logs_parser.add_argument('--limit', type=int, default=100, help='Number of entries (default: 100)')
    logs_parser.add_argument('--status', choices=[s.value for s in LogStatus], help='Filter by outcome')
    logs_parser.add_argument('--errors', action='store_true', help='List photos in error state instead')
    logs_parser.add_argument('--tenant', help='Tenant for --errors (default: all)')

    subparsers.add_parser('init-db', help='Create the migration tables')

    for subparser in subparsers.choices.values():
        subparser.add_argument(
            '-v', '--verbose', action='store_true', default=argparse.SUPPRESS,
            help='Enable verbose logging'
        )
        add_database_arguments(subparser)

    return parser


COMMANDS = {
    'status': cmd_status,
    'start': cmd_start,
    'pause': cmd_pause,
    'run': cmd_run,
    'scan': cmd_scan,
    'reset-errors': cmd_reset_errors,
    'queue': cmd_queue,
    'logs': cmd_logs,
    'init-db': cmd_init_db,
}


def main(args: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if not parsed_args.command:
        parser.print_help()
        return 1

    return COMMANDS[parsed_args.command](parsed_args)
