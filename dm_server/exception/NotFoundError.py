class NotFoundError(Exception):
    """Raised when a referenced message or user does not exist in the store."""
    def __init__(self, message, resource=None, resource_id=None):
        super().__init__(message)
        self.resource = resource
        self.resource_id = resource_id
