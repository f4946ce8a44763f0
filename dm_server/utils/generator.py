from bson import ObjectId


def generate_message_id() -> str:
    """Message ids are ObjectId hex strings so they sort by creation time."""
    return str(ObjectId())
