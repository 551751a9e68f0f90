import os
import time
import logging

from search_backup.exceptions import CountMismatchError
from search_backup.lib.schema import fetch_schema, load_schema, delete_index, create_index
from search_backup.lib.exporter import BatchExporter, clear_staging
from search_backup.lib.importer import BatchImporter


logger = logging.getLogger(__name__)

CONFIGURE = 'configure'
CAPTURE_SCHEMA = 'capture_schema'
EXPORT_DOCUMENTS = 'export_documents'
DELETE_TARGET_INDEX = 'delete_target_index'
CREATE_TARGET_INDEX = 'create_target_index'
IMPORT_DOCUMENTS = 'import_documents'
VERIFY = 'verify'
DONE = 'done'

STAGES = (CONFIGURE, CAPTURE_SCHEMA, EXPORT_DOCUMENTS, DELETE_TARGET_INDEX, CREATE_TARGET_INDEX, IMPORT_DOCUMENTS,
          VERIFY, DONE)


class VerificationReport(object):
    def __init__(self, source_count, target_count):
        self.source_count = source_count
        self.target_count = target_count

    @property
    def matches(self):
        return self.source_count == self.target_count

    @property
    def mismatch(self):
        """
        :return: CountMismatchError|None
        """
        if self.matches:
            return None
        return CountMismatchError(self.source_count, self.target_count)


class RunReport(object):
    def __init__(self):
        self.state = CONFIGURE
        self.schema = None
        self.export = None
        self.index_deleted = None
        self.created_index = None
        self.import_ = None
        self.verification = None

    @property
    def done(self):
        return self.state == DONE


class Pipeline(object):
    """
    Copy an index through the staging directory:

        configure -> capture_schema -> export_documents -> delete_target_index
                  -> create_target_index -> import_documents -> verify -> done

    Stages run strictly in order. A failing stage raises and stops the run, whatever was already
    done (staging files written, target index deleted) stays as it is. A failed export batch does
    not stop the run and a count mismatch at verification is only reported.
    """

    def __init__(self, run_config, source_client, target_client, sleep=time.sleep, clock=time.monotonic):
        self.config = run_config
        self.source_client = source_client
        self.target_client = target_client
        self.sleep = sleep
        self.clock = clock
        self.report = RunReport()

    def _enter(self, state):
        logger.info("stage: %s", state)
        self.report.state = state

    def capture_schema(self):
        self._enter(CAPTURE_SCHEMA)
        self.report.schema = fetch_schema(self.source_client, self.config.source_index, self.config.backup_directory)
        return self.report.schema

    def export_documents(self):
        self._enter(EXPORT_DOCUMENTS)
        total_count = self.source_client.count(self.config.source_index)
        logger.info("source index %s contains %d docs", self.config.source_index, total_count)

        clear_staging(self.config.backup_directory, self.config.source_index)
        exporter = BatchExporter.from_config(self.source_client, self.config)
        self.report.export = exporter.export_all(total_count)
        return self.report.export

    def delete_target_index(self):
        self._enter(DELETE_TARGET_INDEX)
        self.report.index_deleted = delete_index(self.target_client, self.config.target_index)
        return self.report.index_deleted

    def create_target_index(self):
        self._enter(CREATE_TARGET_INDEX)
        schema = self.report.schema
        if schema is None:
            schema = load_schema(self.config.backup_directory, self.config.source_index)
        self.report.created_index = create_index(self.target_client, schema, self.config.target_index)
        return self.report.created_index

    def import_documents(self):
        self._enter(IMPORT_DOCUMENTS)
        importer = BatchImporter.from_config(self.target_client, self.config)
        self.report.import_ = importer.import_all()
        return self.report.import_

    def wait_for_target(self, source_count):
        """
        Give the target service time to index the uploads: wait the configured delay, then poll
        the target count until it reaches the source count, stops changing, or the timeout expires.
        :return: int; last target count
        """
        if self.config.verify_delay:
            logger.info("waiting %s seconds for target to index content before validating", self.config.verify_delay)
            self.sleep(self.config.verify_delay)

        deadline = self.clock() + self.config.verify_timeout
        target_count = self.target_client.count(self.config.target_index)
        while target_count != source_count and self.clock() < deadline:
            self.sleep(self.config.verify_poll_interval)
            previous, target_count = target_count, self.target_client.count(self.config.target_index)
            logger.debug("target index %s count: %d (previous %d)", self.config.target_index, target_count, previous)
            if target_count == previous:
                break
        return target_count

    def verify(self):
        self._enter(VERIFY)
        source_count = self.source_client.count(self.config.source_index)
        target_count = self.wait_for_target(source_count)

        verification = VerificationReport(source_count, target_count)
        logger.info("safeguard check: source and target index counts should match")
        logger.info("source index %s contains %d docs", self.config.source_index, source_count)
        logger.info("target index %s contains %d docs", self.config.target_index, target_count)
        if verification.mismatch is not None:
            logger.warning("count mismatch: %s", verification.mismatch)
        self.report.verification = verification
        return verification

    def _run(self, *stages):
        try:
            for stage in stages:
                stage()
        except Exception:
            logger.exception("pipeline aborted at stage %s", self.report.state)
            raise
        return self.report

    def backup(self):
        os.makedirs(self.config.backup_directory, exist_ok=True)
        return self._run(self.capture_schema, self.export_documents)

    def restore(self):
        return self._run(self.delete_target_index, self.create_target_index, self.import_documents)

    def run(self):
        """
        :return: RunReport
        """
        logger.info("START INDEX BACKUP")
        self.backup()
        logger.info("START INDEX RESTORE")
        self.restore()
        self._run(self.verify)
        self.report.state = DONE
        logger.info("stage: %s", DONE)
        return self.report
