"""
Errors raised while backing up and restoring a search index.

Shaped after elasticsearch-py's exceptions: transport level errors carry the
HTTP status code, a short error string and the decoded response body.
"""


class SearchBackupError(Exception):
    """Base class for every error raised by search_backup."""


class TransportError(SearchBackupError):
    """Network or service level failure talking to a search service."""

    def __init__(self, status_code=None, error='', info=None):
        super(TransportError, self).__init__(status_code, error, info)
        self.status_code = status_code
        self.error = error
        self.info = info

    def __str__(self):
        cause = ''
        if isinstance(self.info, dict) and 'error' in self.info:
            err = self.info['error']
            cause = ', %s' % (err.get('message', '') if isinstance(err, dict) else err)
        return '%s(%s, %r%s)' % (self.__class__.__name__, self.status_code, self.error, cause)


class AuthenticationError(TransportError):
    """Credentials were rejected (HTTP 401/403)."""


class NotFoundError(TransportError):
    """Index or resource does not exist (HTTP 404)."""


class ConflictError(TransportError):
    """Index already exists or was modified concurrently (HTTP 409/412)."""


class ValidationError(TransportError):
    """Malformed schema, document or configuration."""


class PartialExportError(SearchBackupError):
    """One or more export batches failed and left a gap in the staged files."""

    def __init__(self, failed):
        self.failed = failed
        sequences = ', '.join(str(f.batch.sequence) for f in failed)
        super(PartialExportError, self).__init__('%d export batch(es) failed: %s' % (len(failed), sequences))


class CountMismatchError(SearchBackupError):
    """Source and target document counts differ after a restore."""

    def __init__(self, source_count, target_count):
        self.source_count = source_count
        self.target_count = target_count
        super(CountMismatchError, self).__init__('source index has %d docs, target index has %d docs' %
                                                 (source_count, target_count))
