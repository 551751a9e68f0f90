import json

import pytest

from search_backup.exceptions import ConflictError, NotFoundError, TransportError, ValidationError
from search_backup.lib.schema import (create_index, delete_index, fetch_schema, get_key_field_name, load_schema,
                                      rename_schema)

from conftest import make_schema


def test_rename_changes_only_the_index_name():
    schema = make_schema('hotels')
    renamed = json.loads(rename_schema(schema, 'hotels-copy'))
    original = json.loads(schema)

    assert renamed['name'] == 'hotels-copy'
    assert renamed['fields'] == original['fields']
    for key in ('scoringProfiles', 'suggesters'):
        assert renamed[key] == original[key]
    assert not [k for k in renamed if k.startswith('@odata.')]


def test_rename_does_not_touch_fields_called_name():
    schema = json.dumps({'fields': [{'name': 'hotels', 'type': 'Edm.String', 'key': True}], 'name': 'hotels'})
    renamed = json.loads(rename_schema(schema, 'copy'))
    assert renamed == {'fields': [{'name': 'hotels', 'type': 'Edm.String', 'key': True}], 'name': 'copy'}


def test_rename_rejects_schema_without_name():
    with pytest.raises(ValidationError):
        rename_schema('{"fields": []}', 'copy')
    with pytest.raises(ValidationError):
        rename_schema('not json', 'copy')


def test_key_field_name():
    assert get_key_field_name(make_schema('hotels', key='docId')) == 'docId'

    no_key = json.dumps({'name': 'x', 'fields': [{'name': 'a', 'key': False}]})
    two_keys = json.dumps({'name': 'x', 'fields': [{'name': 'a', 'key': True}, {'name': 'b', 'key': True}]})
    for schema in (no_key, two_keys):
        with pytest.raises(ValidationError):
            get_key_field_name(schema)


def test_fetch_schema_saves_raw_schema(tmp_path, source_client):
    source_client.add_index('hotels')
    schema = fetch_schema(source_client, 'hotels', str(tmp_path))

    assert (tmp_path / 'hotels.schema').read_text(encoding='utf-8') == schema
    assert load_schema(str(tmp_path), 'hotels') == schema


def test_fetch_schema_of_missing_index(tmp_path, source_client):
    with pytest.raises(NotFoundError):
        fetch_schema(source_client, 'hotels', str(tmp_path))
    assert not (tmp_path / 'hotels.schema').exists()


def test_load_missing_schema(tmp_path):
    with pytest.raises(NotFoundError):
        load_schema(str(tmp_path), 'hotels')


def test_delete_is_idempotent(target_client):
    target_client.add_index('hotels-copy')

    assert delete_index(target_client, 'hotels-copy') is True
    assert 'hotels-copy' not in target_client.indexes
    assert delete_index(target_client, 'hotels-copy') is False
    assert 'hotels-copy' not in target_client.indexes


def test_delete_propagates_other_errors(target_client):
    def unavailable(index):
        raise TransportError(503, 'service unavailable')
    target_client.delete_index = unavailable

    with pytest.raises(TransportError):
        delete_index(target_client, 'hotels-copy')


def test_create_index_under_new_name(target_client):
    created = create_index(target_client, make_schema('hotels'), 'hotels-copy')

    assert created['name'] == 'hotels-copy'
    assert 'hotels-copy' in target_client.indexes
    assert 'hotels' not in target_client.indexes


def test_create_existing_index_conflicts(target_client):
    target_client.add_index('hotels-copy')
    with pytest.raises(ConflictError):
        create_index(target_client, make_schema('hotels'), 'hotels-copy')
