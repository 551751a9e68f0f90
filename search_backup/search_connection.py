import time
import threading
import logging

import requests
from requests.auth import AuthBase
from azure.core.exceptions import ClientAuthenticationError
from azure.identity import DefaultAzureCredential

from search_backup.exceptions import AuthenticationError
from search_backup.lib.search_client import SearchServiceClient


logger = logging.getLogger(__name__)

SEARCH_SCOPE = 'https://search.azure.com/.default'


class ApiKeyAuth(AuthBase):
    """Attach an admin api-key header to every request."""

    def __init__(self, api_key):
        self.api_key = api_key

    def __call__(self, r):
        r.headers['api-key'] = self.api_key
        return r


class BearerTokenAuth(AuthBase):
    """
    Attach an Entra ID bearer token for Azure AI Search, requesting a new one from the
    credential shortly before the current token expires. Shared by the export worker threads.
    """

    refresh_margin = 300

    def __init__(self, credential, scope=SEARCH_SCOPE):
        self.credential = credential
        self.scope = scope
        self._token = None
        self._lock = threading.Lock()

    def get_token(self):
        with self._lock:
            if self._token is None or self._token.expires_on - self.refresh_margin <= time.time():
                logger.debug("requesting access token for %s", self.scope)
                try:
                    self._token = self.credential.get_token(self.scope)
                except ClientAuthenticationError as e:
                    raise AuthenticationError(None, 'unable to get an access token for %s: %s' % (self.scope, e))
            return self._token.token

    def __call__(self, r):
        r.headers['Authorization'] = 'Bearer %s' % self.get_token()
        return r


def get_auth(api_key=None, credential=None):
    """
    api-key auth when a key is configured, otherwise a token from azure-identity's default credential chain
    :param api_key: str
    :param credential: azure.core.credentials.TokenCredential
    :return: AuthBase
    """
    if api_key:
        return ApiKeyAuth(api_key)
    if credential is None:
        credential = DefaultAzureCredential()
    return BearerTokenAuth(credential)


def get_search_client(service_url, run_config, api_key=None, credential=None):
    session = requests.Session()
    session.auth = get_auth(api_key, credential)
    session.headers.update({'Accept': 'application/json'})
    return SearchServiceClient(service_url, session=session, api_version=run_config.api_version,
                               timeout=run_config.request_timeout)


def get_source_client(run_config, credential=None):
    return get_search_client(run_config.source_url, run_config, run_config.source_api_key, credential)


def get_target_client(run_config, credential=None):
    return get_search_client(run_config.target_url, run_config, run_config.target_api_key, credential)
