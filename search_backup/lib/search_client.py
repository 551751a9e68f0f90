import json
import logging

import requests

from search_backup.exceptions import (AuthenticationError, ConflictError, NotFoundError, TransportError,
                                      ValidationError)


logger = logging.getLogger(__name__)

HTTP_EXCEPTIONS = {
    400: ValidationError,
    401: AuthenticationError,
    403: AuthenticationError,
    404: NotFoundError,
    409: ConflictError,
    412: ConflictError,
    422: ValidationError,
}

JSON_CONTENT = 'application/json; charset=utf-8'


class SearchServiceClient(object):
    """
    Thin wrapper over the Azure AI Search REST API, covering the calls needed to copy an index:
        GET    /indexes/{name}
        POST   /indexes
        DELETE /indexes/{name}
        POST   /indexes/{name}/docs/search
        POST   /indexes/{name}/docs/index
    Schemas and upload payloads are passed through as raw text so nothing is lost re-encoding them.
    """

    def __init__(self, service_url, session=None, api_version='2023-11-01', timeout=120):
        self.service_url = service_url.rstrip('/')
        self.session = session or requests.Session()
        self.api_version = api_version
        self.timeout = timeout

    def __repr__(self):
        return '%s(%s)' % (self.__class__.__name__, self.service_url)

    def perform_request(self, method, path, body=None):
        """
        :param method: str; HTTP method
        :param path: str; path relative to the service URL
        :param body: str|bytes|None; request body, sent as JSON
        :return: requests.Response
        """
        url = '%s%s' % (self.service_url, path)
        headers = {}
        if body is not None:
            headers['Content-Type'] = JSON_CONTENT
            if isinstance(body, str):
                body = body.encode('utf-8')
        try:
            resp = self.session.request(method, url, params={'api-version': self.api_version}, data=body,
                                        headers=headers, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise TransportError('N/A', '%s %s failed: %s' % (method, url, e), e)

        logger.debug("%s %s [status:%s]", method, url, resp.status_code)
        if not 200 <= resp.status_code < 300:
            self._raise_error(method, url, resp)
        return resp

    @staticmethod
    def _raise_error(method, url, resp):
        try:
            info = resp.json()
        except ValueError:
            info = resp.text
        error_cls = HTTP_EXCEPTIONS.get(resp.status_code, TransportError)
        raise error_cls(resp.status_code, '%s %s: %s' % (method, url, resp.reason), info)

    @staticmethod
    def _json(resp):
        try:
            return resp.json()
        except ValueError as e:
            raise TransportError(resp.status_code, 'malformed JSON response from %s: %s' % (resp.url, e), resp.text)

    def get_index(self, index):
        """returns the raw index definition exactly as served"""
        return self.perform_request('GET', '/indexes/%s' % index).text

    def create_index(self, schema):
        """
        :param schema: str; index definition JSON
        :return: Dict; created index definition
        """
        return self._json(self.perform_request('POST', '/indexes', body=schema))

    def delete_index(self, index):
        self.perform_request('DELETE', '/indexes/%s' % index)

    def search(self, index, skip=0, top=50, include_total_count=False, select=None):
        """
        Unsorted, unfiltered match-all query.
        :return: Dict; response with "value" and, if requested, "@odata.count"
        """
        query = {
            'search': '*',
            'searchMode': 'all',
            'skip': skip,
            'top': top,
            'count': include_total_count,
        }
        if select:
            query['select'] = select
        return self._json(self.perform_request('POST', '/indexes/%s/docs/search' % index, body=json.dumps(query)))

    def count(self, index):
        resp = self.search(index, top=0, include_total_count=True)
        try:
            return int(resp['@odata.count'])
        except (KeyError, TypeError, ValueError):
            raise TransportError(None, 'no document count in search response for index %s' % index, resp)

    def fetch(self, index, skip, top):
        """
        :return: List[Dict]; one page of documents
        """
        resp = self.search(index, skip=skip, top=top)
        if not isinstance(resp.get('value'), list):
            raise TransportError(None, 'search response for index %s has no document list' % index, resp)
        return resp['value']

    def upload(self, index, data):
        """
        Bulk index a {"value": [...]} payload. HTTP 207 means some documents were rejected,
        those are reported as a ValidationError.
        :param data: bytes; payload sent verbatim
        :return: Dict; per document results
        """
        resp = self.perform_request('POST', '/indexes/%s/docs/index' % index, body=data)
        result = self._json(resp)
        if resp.status_code == 207:
            rejected = [r for r in result.get('value', []) if not r.get('status')]
            messages = ['%s: %s' % (r.get('key'), r.get('errorMessage')) for r in rejected[:10]]
            raise ValidationError(207, '%d document(s) rejected by index %s: %s' % (len(rejected), index,
                                                                                    '; '.join(messages)), result)
        return result
