"""Version control utilities for optimistic locking.

Message documents carry a version field (_v) that is bumped on every
reaction write, so a read-modify-write only lands if nobody else wrote
the document in between.

Usage:
    from dm_server.utils.versioning import (
        versioned_update,
        add_version_to_doc,
        get_version,
    )
"""
from typing import Any, Dict, Optional

from dm_server.utils.helpers import utc_now


VERSION_FIELD = '_v'


def add_version_to_doc(doc: Dict[str, Any], initial_version: int = 1) -> Dict[str, Any]:
    """Add version field to a document if not present.

    Args:
        doc: Document to add version to
        initial_version: Starting version number (default: 1)

    Returns:
        Document with version field added
    """
    if VERSION_FIELD not in doc:
        doc[VERSION_FIELD] = initial_version
    return doc


def increment_version(update_doc: Dict[str, Any]) -> Dict[str, Any]:
    """Add version increment to an update document.

    Args:
        update_doc: MongoDB update document (with $set, $inc, etc.)

    Returns:
        Update document with version increment added
    """
    if '$inc' not in update_doc:
        update_doc['$inc'] = {}
    update_doc['$inc'][VERSION_FIELD] = 1
    return update_doc


def versioned_update(
    collection,
    query: Dict[str, Any],
    update_doc: Dict[str, Any],
    expected_version: Optional[int] = None
) -> Dict[str, Any]:
    """Perform an update with optimistic locking.

    If expected_version is provided, the update will only succeed
    if the document's current version matches.

    Args:
        collection: MongoDB collection object
        query: Query to find the document
        update_doc: Update operations to apply
        expected_version: Expected version for optimistic locking

    Returns:
        Dict with 'success', 'modified_count', and optional 'version_mismatch'
    """
    if expected_version is not None:
        query = {**query, VERSION_FIELD: expected_version}

    update_doc = increment_version(update_doc)

    if '$set' not in update_doc:
        update_doc['$set'] = {}
    update_doc['$set']['updated_at'] = utc_now()

    result = collection.update_one(query, update_doc)

    response = {
        'success': result.modified_count > 0,
        'modified_count': result.modified_count
    }

    # If we expected a version but no docs were modified, it's likely a version mismatch
    if expected_version is not None and result.modified_count == 0:
        response['version_mismatch'] = True

    return response


def get_version(doc: Dict[str, Any]) -> int:
    """Get the version from a document (0 if not present)."""
    return doc.get(VERSION_FIELD, 0)
