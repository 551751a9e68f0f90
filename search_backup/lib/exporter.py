import os
import re
import logging
import traceback
from collections import namedtuple
from concurrent.futures import ThreadPoolExecutor, as_completed

from search_backup.exceptions import PartialExportError
from search_backup.lib.codec import encode_envelope


logger = logging.getLogger(__name__)

# the docs/search API refuses skip values above this
MAX_SKIP = 100000

Batch = namedtuple('Batch', ['sequence', 'offset', 'size'])
StagingFile = namedtuple('StagingFile', ['path', 'batch', 'count'])
BatchFailure = namedtuple('BatchFailure', ['batch', 'error'])


def staging_file_name(index, sequence):
    return '%s%d.json' % (index, sequence)


def staging_file_re(index):
    return re.compile(r'^%s(\d+)\.json$' % re.escape(index))


def find_staging_files(staging_dir, index):
    """
    Staging files of an index, as (sequence, file name) pairs sorted by sequence.

    <index><n>.json is ambiguous when another index is named <index><digits>: for "hotels" and
    "hotels1", hotels12.json could be batch 12 of one or batch 2 of the other. Such files are
    skipped with a warning whenever a <index><digits>.schema backup sits in the same directory.
    :param staging_dir: str
    :param index: str
    :return: List[Tuple[int, str]]
    """
    schema_re = re.compile(r'^%s(\d+)\.schema$' % re.escape(index))
    pattern = staging_file_re(index)

    names = os.listdir(staging_dir)
    other_suffixes = [m.group(1) for m in map(schema_re.match, names) if m]

    files = []
    for name in names:
        match = pattern.match(name)
        if not match:
            continue
        digits = match.group(1)
        owners = [index + s for s in other_suffixes if digits.startswith(s) and len(digits) > len(s)]
        if owners:
            logger.warning("skipping %s in %s, it may belong to index %s", name, staging_dir, ', '.join(owners))
            continue
        files.append((int(digits), name))
    return sorted(files)


def plan_batches(total_count, batch_size):
    """
    Split [0, total_count) into consecutive batches, numbered from 1; only the last may be short
    :param total_count: int
    :param batch_size: int
    :return: List[Batch]
    """
    if total_count < 0:
        raise ValueError('total_count must not be negative: %d' % total_count)
    if batch_size < 1:
        raise ValueError('batch_size must be at least 1: %d' % batch_size)

    batches = []
    for i, offset in enumerate(range(0, total_count, batch_size)):
        batches.append(Batch(i + 1, offset, min(batch_size, total_count - offset)))
    return batches


def clear_staging(staging_dir, index):
    """
    Remove staging files left by an earlier export of the same index. Files that may belong to
    another index (see find_staging_files) are kept.
    :return: int; number of files removed
    """
    removed = 0
    for _, name in find_staging_files(staging_dir, index):
        os.remove(os.path.join(staging_dir, name))
        removed += 1
    if removed:
        logger.info("removed %d stale staging file(s) for index %s from %s", removed, index, staging_dir)
    return removed


class ExportReport(object):
    def __init__(self, total_count, batches, written, failed):
        self.total_count = total_count
        self.batches = batches
        self.written = sorted(written, key=lambda s: s.batch.sequence)
        self.failed = sorted(failed, key=lambda f: f.batch.sequence)

    @property
    def documents(self):
        return sum(s.count for s in self.written)

    @property
    def missing_documents(self):
        return sum(f.batch.size for f in self.failed)

    @property
    def complete(self):
        return not self.failed

    def gap(self):
        """
        :return: PartialExportError|None
        """
        return PartialExportError(self.failed) if self.failed else None


class BatchExporter(object):
    """
    Dump an index into one staging file per batch, fetching batches concurrently.

    At most `parallelism` fetches are in flight; a worker picks up the next batch as soon
    as it finishes one. A failed batch is logged and skipped, the others carry on.
    """

    def __init__(self, client, index, staging_dir, batch_size=500, parallelism=5):
        self.client = client
        self.index = index
        self.staging_dir = staging_dir
        self.batch_size = batch_size
        self.parallelism = parallelism

    @classmethod
    def from_config(cls, client, run_config):
        return cls(client, run_config.source_index, run_config.backup_directory, run_config.batch_size,
                   run_config.parallelism)

    def export_batch(self, batch):
        """
        Fetch one batch and write it to its staging file. The file is written under a temporary
        name and renamed when complete, so an interrupted write never leaves a partial staging file.
        :param batch: Batch
        :return: StagingFile
        """
        path = os.path.join(self.staging_dir, staging_file_name(self.index, batch.sequence))
        logger.info("export to %s - skip: %d STARTED", path, batch.offset)

        docs = self.client.fetch(self.index, skip=batch.offset, top=batch.size)
        data = encode_envelope(docs)

        tmp_path = os.path.join(self.staging_dir, '.%s.tmp' % os.path.basename(path))
        try:
            with open(tmp_path, 'wb') as f:
                f.write(data)
            os.replace(tmp_path, path)
        except OSError:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

        if len(docs) != batch.size:
            logger.warning("batch %d (skip: %d) returned %d documents, expected %d", batch.sequence, batch.offset,
                           len(docs), batch.size)
        logger.info("export to %s - skip: %d DONE, %d documents", path, batch.offset, len(docs))
        return StagingFile(path, batch, len(docs))

    def export_all(self, total_count):
        """
        :param total_count: int; number of documents in the source index
        :return: ExportReport
        """
        batches = plan_batches(total_count, self.batch_size)
        if total_count > MAX_SKIP + self.batch_size:
            logger.warning("index %s has %d documents, batches past skip %d will be rejected by the service",
                           self.index, total_count, MAX_SKIP)
        logger.info("exporting %d documents from %s in %d batch(es) of up to %d, %d parallel job(s)",
                    total_count, self.index, len(batches), self.batch_size, self.parallelism)

        written, failed = [], []
        with ThreadPoolExecutor(max_workers=self.parallelism, thread_name_prefix='export') as executor:
            futures = {executor.submit(self.export_batch, batch): batch for batch in batches}
            for future in as_completed(futures):
                batch = futures[future]
                try:
                    written.append(future.result())
                except Exception as e:
                    logger.error("export of batch %d (skip: %d, size: %d) from %s failed: %s\n%s", batch.sequence,
                                 batch.offset, batch.size, self.index, e, traceback.format_exc())
                    failed.append(BatchFailure(batch, e))

        report = ExportReport(total_count, batches, written, failed)
        gap = report.gap()
        if gap is not None:
            logger.warning("partial export of %s: %s, %d document(s) not staged", self.index, gap,
                           report.missing_documents)
        else:
            logger.info("exported %d documents from %s to %d file(s)", report.documents, self.index,
                        len(report.written))
        return report
