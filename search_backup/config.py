import os
import logging

from flask import Config

from search_backup.exceptions import ValidationError


logger = logging.getLogger(__name__)

SETTINGS_ENVVAR = 'SEARCH_BACKUP_SETTINGS'
ENV_PREFIX = 'SEARCH_BACKUP'

# upper bound accepted by the docs/index and docs/search APIs
MAX_BATCH_LIMIT = 1000

DEFAULTS = {
    'SOURCE_SEARCH_SERVICE_NAME': None,
    'SOURCE_INDEX_NAME': None,
    'TARGET_SEARCH_SERVICE_NAME': None,
    'TARGET_INDEX_NAME': None,
    'BACKUP_DIRECTORY': '.',
    'MAX_BATCH_SIZE': 500,
    'PARALLELIZED_JOBS': 5,
    'API_VERSION': '2023-11-01',
    'SEARCH_ENDPOINT_SUFFIX': 'search.windows.net',
    'SOURCE_API_KEY': None,
    'TARGET_API_KEY': None,
    'REQUEST_TIMEOUT': 120,
    'VERIFY_DELAY': 10,
    'VERIFY_POLL_INTERVAL': 5,
    'VERIFY_TIMEOUT': 60,
}

REQUIRED = ('SOURCE_SEARCH_SERVICE_NAME', 'SOURCE_INDEX_NAME', 'TARGET_SEARCH_SERVICE_NAME', 'TARGET_INDEX_NAME')


def _text(value):
    """environment values arrive JSON decoded, an index named 2024 must stay a string"""
    return None if value is None else str(value)


class RunConfiguration(object):
    """
    Settings for a single backup/restore run.

    Built once before any index operation and handed to every component that needs it;
    attributes can't be reassigned after construction.
    """

    __slots__ = ('source_service', 'source_index', 'target_service', 'target_index', 'backup_directory',
                 'batch_size', 'parallelism', 'api_version', 'endpoint_suffix', 'source_api_key',
                 'target_api_key', 'request_timeout', 'verify_delay', 'verify_poll_interval', 'verify_timeout')

    def __init__(self, source_service, source_index, target_service, target_index, backup_directory='.',
                 batch_size=500, parallelism=5, api_version='2023-11-01', endpoint_suffix='search.windows.net',
                 source_api_key=None, target_api_key=None, request_timeout=120, verify_delay=10,
                 verify_poll_interval=5, verify_timeout=60):
        values = dict(locals())
        del values['self']
        for name in self.__slots__:
            object.__setattr__(self, name, values[name])
        self.validate()

    def __setattr__(self, name, value):
        raise AttributeError('RunConfiguration is immutable, cannot set %s' % name)

    def __repr__(self):
        return '%s(%s)' % (self.__class__.__name__, ', '.join(
            '%s=%r' % (k, '***' if k.endswith('api_key') and getattr(self, k) else getattr(self, k))
            for k in self.__slots__
        ))

    def validate(self):
        for attr in ('source_service', 'source_index', 'target_service', 'target_index'):
            if not getattr(self, attr):
                raise ValidationError(None, 'missing configuration value: %s' % attr)
        if not isinstance(self.batch_size, int) or not 1 <= self.batch_size <= MAX_BATCH_LIMIT:
            raise ValidationError(None, 'batch size must be between 1 and %d, got %r' % (MAX_BATCH_LIMIT,
                                                                                          self.batch_size))
        if not isinstance(self.parallelism, int) or self.parallelism < 1:
            raise ValidationError(None, 'parallelism must be a positive integer, got %r' % self.parallelism)
        for attr in ('verify_delay', 'verify_poll_interval', 'verify_timeout'):
            if getattr(self, attr) < 0:
                raise ValidationError(None, '%s must not be negative' % attr)

    def service_url(self, service_name):
        """
        Base URL of a search service. A full URL is passed through untouched.
        :param service_name: str; service name (ex. "my-search") or endpoint URL
        :return: str
        """
        if service_name.startswith('http://') or service_name.startswith('https://'):
            return service_name.rstrip('/')
        return 'https://%s.%s' % (service_name, self.endpoint_suffix)

    @property
    def source_url(self):
        return self.service_url(self.source_service)

    @property
    def target_url(self):
        return self.service_url(self.target_service)

    @property
    def schema_path(self):
        return os.path.join(self.backup_directory, '%s.schema' % self.source_index)

    @classmethod
    def from_config(cls, config):
        """
        Build from a flask Config (or any mapping) using the settings file key names.
        :param config: Mapping[str, any]
        :return: RunConfiguration
        """
        return cls(
            source_service=_text(config['SOURCE_SEARCH_SERVICE_NAME']),
            source_index=_text(config['SOURCE_INDEX_NAME']),
            target_service=_text(config['TARGET_SEARCH_SERVICE_NAME']),
            target_index=_text(config['TARGET_INDEX_NAME']),
            backup_directory=_text(config['BACKUP_DIRECTORY']),
            batch_size=int(config['MAX_BATCH_SIZE']),
            parallelism=int(config['PARALLELIZED_JOBS']),
            api_version=_text(config['API_VERSION']),
            endpoint_suffix=_text(config['SEARCH_ENDPOINT_SUFFIX']),
            source_api_key=_text(config['SOURCE_API_KEY']),
            target_api_key=_text(config['TARGET_API_KEY']),
            request_timeout=float(config['REQUEST_TIMEOUT']),
            verify_delay=float(config['VERIFY_DELAY']),
            verify_poll_interval=float(config['VERIFY_POLL_INTERVAL']),
            verify_timeout=float(config['VERIFY_TIMEOUT']),
        )


def load_config(settings_file=None, overrides=None, root_path=None):
    """
    Load run settings: defaults, then the settings file, then SEARCH_BACKUP_* environment
    variables, then explicit overrides (ex. from the command line).
    :param settings_file: str; python settings file, falls back to $SEARCH_BACKUP_SETTINGS
    :param overrides: Dict[str, any]; values set to None are ignored
    :param root_path: str; directory relative settings file paths are resolved against
    :return: RunConfiguration
    """
    config = Config(root_path or os.getcwd(), DEFAULTS)

    if settings_file:
        config.from_pyfile(os.path.abspath(settings_file))
    elif os.environ.get(SETTINGS_ENVVAR):
        config.from_envvar(SETTINGS_ENVVAR)
    config.from_prefixed_env(prefix=ENV_PREFIX)

    if overrides:
        config.from_mapping({k: v for k, v in overrides.items() if v is not None})

    missing = [k for k in REQUIRED if not config.get(k)]
    if missing:
        raise ValidationError(None, 'missing required settings: %s' % ', '.join(missing))

    try:
        run_config = RunConfiguration.from_config(config)
    except (TypeError, ValueError) as e:
        raise ValidationError(None, 'invalid setting value: %s' % e)

    logger.info("source service and index: %s, %s", run_config.source_service, run_config.source_index)
    logger.info("target service and index: %s, %s", run_config.target_service, run_config.target_index)
    logger.info("backup directory: %s", run_config.backup_directory)
    return run_config
