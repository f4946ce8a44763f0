from flask import jsonify
from datetime import datetime, timezone


def respond_error(message, status=400):
    """Return a standardized error response."""
    return jsonify({'success': False, 'error': message}), status


def respond_success(payload=None, status=200):
    if payload is None:
        payload = {}
    body = {'success': True}
    if isinstance(payload, dict):
        body.update(payload)
    else:
        body['data'] = payload
    return jsonify(body), status


def utc_now() -> datetime:
    """Timezone-aware current UTC time at BSON (millisecond) precision.

    Used for every stored timestamp, so a value reads back from MongoDB
    exactly as it was written.
    """
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def as_utc(value):
    """Attach UTC to a naive datetime (as returned by a non tz_aware client)."""
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def normalize_doc(obj):
    """Recursively convert BSON types (ObjectId) and datetimes to JSON-serializable values.

    - ObjectId -> str(ObjectId)
    - datetime -> ISO string
    - recursively handles dicts and lists
    Returns a new object (does not mutate input) for safety.
    """
    from bson import ObjectId

    if obj is None:
        return None
    if isinstance(obj, dict):
        return {k: normalize_doc(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [normalize_doc(v) for v in obj]
    if isinstance(obj, ObjectId):
        return str(obj)
    if isinstance(obj, datetime):
        return obj.isoformat()
    return obj
