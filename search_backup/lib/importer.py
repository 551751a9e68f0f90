import os
import logging
from collections import namedtuple

from search_backup.lib.codec import count_envelope, decode_for_import
from search_backup.lib.exporter import find_staging_files


logger = logging.getLogger(__name__)

UploadedFile = namedtuple('UploadedFile', ['path', 'count'])


class ImportReport(object):
    def __init__(self, uploaded):
        self.uploaded = uploaded

    @property
    def documents(self):
        return sum(u.count for u in self.uploaded)


def list_staging_files(staging_dir, index):
    """
    Staging files written for an index, i.e. <index><n>.json. Upload order doesn't matter,
    they are returned by batch number for readable logs.
    :param staging_dir: str
    :param index: str; source index name the files were exported from
    :return: List[str]
    """
    return [os.path.join(staging_dir, name) for _, name in find_staging_files(staging_dir, index)]


class BatchImporter(object):
    """
    Upload staging files to the target index, one docs/index request per file. The first
    failed upload stops the import.
    """

    def __init__(self, client, source_index, target_index, staging_dir):
        self.client = client
        self.source_index = source_index
        self.target_index = target_index
        self.staging_dir = staging_dir

    @classmethod
    def from_config(cls, client, run_config):
        return cls(client, run_config.source_index, run_config.target_index, run_config.backup_directory)

    def import_file(self, path):
        logger.info("uploading documents from file %s", path)
        with open(path, 'rb') as f:
            data = f.read()

        count = count_envelope(data)
        self.client.upload(self.target_index, decode_for_import(data))
        logger.info("uploaded %d documents from %s to %s", count, path, self.target_index)
        return UploadedFile(path, count)

    def import_all(self):
        """
        :return: ImportReport
        """
        files = list_staging_files(self.staging_dir, self.source_index)
        logger.info("uploading %d staging file(s) for %s from %s to index %s", len(files), self.source_index,
                    self.staging_dir, self.target_index)
        if not files:
            logger.warning("no staging files found for index %s in %s", self.source_index, self.staging_dir)

        uploaded = []
        for path in files:
            try:
                uploaded.append(self.import_file(path))
            except Exception as e:
                logger.error("upload of %s to index %s failed: %s", path, self.target_index, e)
                raise
        report = ImportReport(uploaded)
        logger.info("uploaded %d documents from %d file(s) to %s", report.documents, len(uploaded), self.target_index)
        return report
