import os
import json
import logging

from search_backup.exceptions import NotFoundError, ValidationError


logger = logging.getLogger(__name__)


def schema_file(staging_dir, index):
    return os.path.join(staging_dir, '%s.schema' % index)


def parse_schema(schema):
    """
    :param schema: str; raw index definition
    :return: Dict
    """
    try:
        obj = json.loads(schema)
    except ValueError as e:
        raise ValidationError(None, 'index schema is not valid JSON: %s' % e)
    if not isinstance(obj, dict) or 'name' not in obj:
        raise ValidationError(None, 'index schema has no "name" property')
    return obj


def get_key_field_name(schema):
    """
    name of the field marked as the document key
    :param schema: str|Dict; index definition
    :return: str
    """
    obj = parse_schema(schema) if isinstance(schema, str) else schema
    keys = [f.get('name') for f in obj.get('fields', []) if f.get('key') is True]
    if len(keys) != 1:
        raise ValidationError(None, 'index %s must have exactly one key field, found %d: %s' %
                              (obj.get('name'), len(keys), keys))
    return keys[0]


def fetch_schema(client, index, staging_dir):
    """
    Download an index definition and save it untouched to <staging_dir>/<index>.schema
    :param client: SearchServiceClient
    :param index: str; source index name
    :param staging_dir: str
    :return: str; raw index definition
    """
    schema = client.get_index(index)
    key_field = get_key_field_name(schema)
    logger.info("index %s has key field %s", index, key_field)

    path = schema_file(staging_dir, index)
    logger.info("backing up source index schema to %s", path)
    with open(path, 'w', encoding='utf-8') as f:
        f.write(schema)
    return schema


def load_schema(staging_dir, index):
    path = schema_file(staging_dir, index)
    try:
        with open(path, encoding='utf-8') as f:
            return f.read()
    except FileNotFoundError:
        raise NotFoundError(None, 'no schema backup for index %s at %s' % (index, path))


def rename_schema(schema, new_name):
    """
    Change the index name in a captured definition. Service annotations like @odata.context and
    @odata.etag are dropped, everything else (field definitions, analyzers, scoring profiles...) is kept.
    :param schema: str; raw index definition
    :param new_name: str; target index name
    :return: str
    """
    obj = parse_schema(schema)
    renamed = {k: v for k, v in obj.items() if not k.startswith('@odata.')}
    renamed['name'] = new_name
    return json.dumps(renamed, ensure_ascii=False)


def delete_index(client, index):
    """
    Delete an index if it exists.
    :return: bool; False if there was no index to delete
    """
    logger.info("deleting index %s in %s, if it exists", index, client.service_url)
    try:
        client.delete_index(index)
    except NotFoundError:
        logger.info("index %s does not exist, nothing to delete", index)
        return False
    logger.info("deleted index %s", index)
    return True


def create_index(client, schema, new_index):
    """
    :param client: SearchServiceClient; target service
    :param schema: str; raw definition captured from the source index
    :param new_index: str; name of the index to create
    :return: Dict; definition returned by the service
    """
    body = rename_schema(schema, new_index)
    get_key_field_name(body)
    logger.info("creating index %s in %s", new_index, client.service_url)
    return client.create_index(body)
