import json
import copy

import pytest

from search_backup.config import RunConfiguration
from search_backup.exceptions import ConflictError, NotFoundError, TransportError


def make_schema(name, key='hotelId'):
    return json.dumps({
        '@odata.context': 'https://source.search.windows.net/$metadata#indexes/$entity',
        '@odata.etag': '"0x8DBF2C1A"',
        'name': name,
        'fields': [
            {'name': key, 'type': 'Edm.String', 'key': True, 'searchable': False},
            {'name': 'hotelName', 'type': 'Edm.String', 'key': False, 'searchable': True},
            {'name': 'location', 'type': 'Edm.GeographyPoint', 'key': False, 'filterable': True},
        ],
        'scoringProfiles': [],
        'suggesters': [],
    })


def make_docs(count, geo=False):
    docs = []
    for i in range(1, count + 1):
        doc = {'hotelId': str(i), 'hotelName': 'hotel %d' % i, 'rating': i % 5}
        if geo:
            doc['location'] = {
                'Latitude': 47.0 + i / 1000.0,
                'Longitude': -122.0,
                'IsEmpty': False,
                'Z': None,
                'M': None,
                'CoordinateSystem': {'EpsgId': 4326, 'Id': '4326', 'Name': 'WGS84'},
            }
        docs.append(doc)
    return docs


class FakeSearchClient(object):
    """In-memory stand-in for SearchServiceClient."""

    def __init__(self, service_url='https://fake.search.windows.net'):
        self.service_url = service_url
        self.indexes = {}
        self.fail_skips = set()
        self.uploads = []
        self.calls = []

    def add_index(self, name, docs=(), schema=None):
        self.indexes[name] = {'schema': schema or make_schema(name), 'docs': list(docs)}

    def _index(self, name):
        if name not in self.indexes:
            raise NotFoundError(404, 'index %s not found' % name)
        return self.indexes[name]

    def get_index(self, index):
        self.calls.append(('get_index', index))
        return self._index(index)['schema']

    def create_index(self, schema):
        obj = json.loads(schema)
        self.calls.append(('create_index', obj['name']))
        if obj['name'] in self.indexes:
            raise ConflictError(409, 'index %s already exists' % obj['name'])
        self.indexes[obj['name']] = {'schema': schema, 'docs': []}
        return obj

    def delete_index(self, index):
        self.calls.append(('delete_index', index))
        self._index(index)
        del self.indexes[index]

    def count(self, index):
        return len(self._index(index)['docs'])

    def fetch(self, index, skip, top):
        if skip in self.fail_skips:
            raise TransportError(503, 'service unavailable at skip %d' % skip)
        docs = self._index(index)['docs'][skip:skip + top]
        return [dict(copy.deepcopy(d), **{'@search.score': 1.0}) for d in docs]

    def upload(self, index, data):
        target = self._index(index)
        self.uploads.append(data)
        docs = json.loads(data)['value']
        target['docs'].extend(docs)
        return {'value': [{'key': d.get('hotelId'), 'status': True, 'statusCode': 201} for d in docs]}


@pytest.fixture
def source_client():
    return FakeSearchClient('https://source.search.windows.net')


@pytest.fixture
def target_client():
    return FakeSearchClient('https://target.search.windows.net')


@pytest.fixture
def run_config(tmp_path):
    return RunConfiguration(
        source_service='source',
        source_index='hotels',
        target_service='target',
        target_index='hotels-copy',
        backup_directory=str(tmp_path),
        batch_size=500,
        parallelism=5,
        verify_delay=0,
        verify_poll_interval=0,
        verify_timeout=0,
    )
