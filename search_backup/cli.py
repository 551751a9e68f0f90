import sys
import logging
import argparse

from search_backup.config import load_config
from search_backup.exceptions import SearchBackupError
from search_backup.pipeline import Pipeline
from search_backup.search_connection import get_source_client, get_target_client


logger = logging.getLogger('search_backup')

LOG_FORMAT = '[%(asctime)s: %(levelname)s/%(name)s] %(message)s'

COMMANDS = ('all', 'backup', 'restore', 'verify')


def get_parser():
    parser = argparse.ArgumentParser(description='Back up an Azure AI Search index to JSON files and restore it '
                                                 'into another index')
    parser.add_argument('command', nargs='?', choices=COMMANDS, default='all',
                        help="stages to run: all (default), backup (schema + documents), restore (recreate target "
                             "index + upload), verify (compare document counts)")
    parser.add_argument('--config', action='store', default=None,
                        help="settings file, defaults to $SEARCH_BACKUP_SETTINGS")
    parser.add_argument('--source-service', dest='SOURCE_SEARCH_SERVICE_NAME', help="source search service name or URL")
    parser.add_argument('--source-index', dest='SOURCE_INDEX_NAME', help="source index name")
    parser.add_argument('--target-service', dest='TARGET_SEARCH_SERVICE_NAME', help="target search service name or URL")
    parser.add_argument('--target-index', dest='TARGET_INDEX_NAME', help="target index name")
    parser.add_argument('--backup-dir', dest='BACKUP_DIRECTORY', help="staging directory for schema and documents")
    parser.add_argument('--batch-size', dest='MAX_BATCH_SIZE', type=int, help="documents per staging file (max 1000)")
    parser.add_argument('--parallel-jobs', dest='PARALLELIZED_JOBS', type=int, help="concurrent export requests")
    parser.add_argument('--verify-delay', dest='VERIFY_DELAY', type=float,
                        help="seconds to wait before comparing document counts")
    parser.add_argument('--log-level', default='INFO', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help="logging verbosity")
    return parser


def main(argv=None):
    args = get_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format=LOG_FORMAT)

    overrides = {k: v for k, v in vars(args).items() if k.isupper()}
    try:
        run_config = load_config(args.config, overrides)
        pipeline = Pipeline(run_config, get_source_client(run_config), get_target_client(run_config))

        if args.command == 'backup':
            report = pipeline.backup()
        elif args.command == 'restore':
            report = pipeline.restore()
        elif args.command == 'verify':
            pipeline.verify()
            report = pipeline.report
        else:
            report = pipeline.run()
    except SearchBackupError as e:
        logger.error("%s failed: %s", args.command, e)
        return 1

    if report.export is not None and not report.export.complete:
        logger.warning("re-run the backup to stage the missing batches: %s",
                       ', '.join(str(f.batch.sequence) for f in report.export.failed))
    return 0


if __name__ == '__main__':
    sys.exit(main())
