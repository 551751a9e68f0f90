"""
Conversion between search results and the staging file format.

A staging file holds one batch in the shape the docs/index API accepts:

    {"value": [{...}, {...}]}

Geography values serialized by the .NET SDK (Latitude/Longitude plus IsEmpty, Z, M and
CoordinateSystem metadata) are normalized to {"type": "Point", "coordinates": [lat, long]}
on export. Staged content is uploaded as-is, nothing is decoded on import.
"""

import json
import math
import numbers
import logging

from shapely.geometry import Point

from search_backup.exceptions import ValidationError


logger = logging.getLogger(__name__)

_LATITUDE = 'Latitude'
_LONGITUDE = 'Longitude'

GEO_COORDINATE_FIELDS = {_LATITUDE, _LONGITUDE}
GEO_METADATA_FIELDS = {'IsEmpty', 'Z', 'M', 'CoordinateSystem'}
GEO_FIELDS = GEO_COORDINATE_FIELDS | GEO_METADATA_FIELDS

SEARCH_ANNOTATION_PREFIX = '@search.'


def is_geo_compound(value):
    """
    :param value: any
    :return: bool; True for a dict made of Latitude/Longitude and, optionally, the geography metadata fields
    """
    return isinstance(value, dict) and GEO_COORDINATE_FIELDS <= set(value) <= GEO_FIELDS


def to_point(value):
    """
    Convert a geography compound to a point node.
    :param value: Dict; geography compound
    :return: Dict|None; None if the compound can't be expressed as a point
    """
    lat, lon = value[_LATITUDE], value[_LONGITUDE]
    if value.get('IsEmpty') is True:
        return None
    if not all(isinstance(c, numbers.Real) and not isinstance(c, bool) and math.isfinite(c) for c in (lat, lon)):
        return None

    # x is longitude; the staged coordinate pair is written latitude first
    point = Point(lon, lat)
    if point.is_empty:
        return None
    return {
        'type': point.geom_type,
        'coordinates': [point.y, point.x],
    }


def rewrite_geo(value, path=''):
    """
    Walk a decoded JSON value, replacing every geography compound by a point node.
    :param value: any
    :param path: str; location in the record, used for logging
    :return: any
    """
    if is_geo_compound(value):
        point = to_point(value)
        if point is None:
            logger.debug("geo value at %s left unchanged: %s", path or '.', value)
            return value
        return point
    if isinstance(value, dict):
        return {k: rewrite_geo(v, '%s.%s' % (path, k) if path else k) for k, v in value.items()}
    if isinstance(value, list):
        return [rewrite_geo(v, '%s[%d]' % (path, i)) for i, v in enumerate(value)]
    return value


def transform_record(record):
    """
    Drop search result annotations (@search.score, @search.highlights...) and normalize geography values.
    :param record: Dict; document as returned by a search
    :return: Dict
    """
    doc = {k: v for k, v in record.items() if not k.startswith(SEARCH_ANNOTATION_PREFIX)}
    return rewrite_geo(doc)


def encode_record(record):
    return json.dumps(transform_record(record), ensure_ascii=False).encode('utf-8')


def encode_envelope(records):
    """
    :param records: List[Dict]; documents of one batch, may be empty
    :return: bytes; UTF-8 JSON {"value": [...]}
    """
    return b'{"value": [' + b',\n'.join(encode_record(r) for r in records) + b']}'


def decode_for_import(data):
    """staged bytes are uploaded verbatim"""
    return data


def count_envelope(data):
    """
    :param data: bytes; staging file content
    :return: int; number of documents
    """
    try:
        envelope = json.loads(data)
    except ValueError as e:
        raise ValidationError(None, 'staged content is not valid JSON: %s' % e)
    if not isinstance(envelope, dict) or not isinstance(envelope.get('value'), list):
        raise ValidationError(None, 'staged content has no "value" document list')
    return len(envelope['value'])
