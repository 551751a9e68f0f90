import json

import pytest

from search_backup.exceptions import ValidationError
from search_backup.lib.codec import (count_envelope, decode_for_import, encode_envelope, encode_record,
                                     is_geo_compound, transform_record)


GEO = {
    'Latitude': 47.6062,
    'Longitude': -122.3321,
    'IsEmpty': False,
    'Z': None,
    'M': None,
    'CoordinateSystem': {'EpsgId': 4326, 'Id': '4326', 'Name': 'WGS84'},
}


def test_geo_compound_becomes_point():
    encoded = encode_record({'hotelId': '1', 'location': GEO})
    doc = json.loads(encoded)

    assert doc['location'] == {'type': 'Point', 'coordinates': [47.6062, -122.3321]}
    for field in ('Latitude', 'Longitude', 'IsEmpty', 'CoordinateSystem', 'EpsgId', 'WGS84'):
        assert field not in encoded.decode('utf-8')


def test_record_without_geo_is_unchanged():
    record = {'hotelId': '7', 'tags': ['pool', 'wifi'], 'address': {'city': 'Seattle', 'zip': '98101'},
              'rating': 4.5, 'open': True, 'notes': None}
    assert json.loads(encode_record(record)) == record
    assert list(json.loads(encode_record(record))) == list(record)


def test_nested_geo_values_are_rewritten():
    record = {'hotelId': '1', 'rooms': [{'entrance': dict(GEO)}], 'address': {'point': dict(GEO)}}
    doc = transform_record(record)
    assert doc['rooms'][0]['entrance']['type'] == 'Point'
    assert doc['address']['point']['coordinates'] == [47.6062, -122.3321]


def test_latitude_longitude_only_is_rewritten():
    doc = transform_record({'location': {'Latitude': 1.5, 'Longitude': 2}})
    assert doc['location'] == {'type': 'Point', 'coordinates': [1.5, 2]}


def test_unrecognized_geo_layouts_are_left_alone():
    empty = dict(GEO, IsEmpty=True)
    missing = dict(GEO, Latitude=None)
    extra = dict(GEO, Altitude=10)
    record = {'a': empty, 'b': missing, 'c': extra, 'd': {'Latitude': 1.0}}
    assert transform_record(record) == record


def test_is_geo_compound():
    assert is_geo_compound(GEO)
    assert not is_geo_compound({'Latitude': 1.0})
    assert not is_geo_compound([1.0, 2.0])
    assert not is_geo_compound({'type': 'Point', 'coordinates': [1.0, 2.0]})


def test_search_annotations_are_dropped():
    doc = transform_record({'@search.score': 1.0, '@search.highlights': {}, 'hotelId': '1'})
    assert doc == {'hotelId': '1'}


def test_envelope_is_valid_json():
    records = [{'hotelId': str(i), 'location': dict(GEO)} for i in range(3)]
    envelope = json.loads(encode_envelope(records))
    assert list(envelope) == ['value']
    assert [d['hotelId'] for d in envelope['value']] == ['0', '1', '2']


def test_empty_envelope():
    data = encode_envelope([])
    assert json.loads(data) == {'value': []}
    assert count_envelope(data) == 0


def test_non_ascii_content_is_utf8():
    data = encode_envelope([{'hotelName': 'Hôtel Zürich'}])
    assert 'Hôtel Zürich'.encode('utf-8') in data
    assert json.loads(data.decode('utf-8'))['value'][0]['hotelName'] == 'Hôtel Zürich'


def test_decode_for_import_is_identity():
    data = encode_envelope([{'hotelId': '1', 'location': dict(GEO)}])
    assert decode_for_import(data) is data


def test_count_envelope_rejects_malformed_content():
    with pytest.raises(ValidationError):
        count_envelope(b'{"value": [{"hotelId": "1"},]}')
    with pytest.raises(ValidationError):
        count_envelope(b'[]')
