class ChatApiError(Exception):
    """Raised by the API client when the server answers with a failure."""
    def __init__(self, message, status=None):
        self.message = message
        self.status = status
        super().__init__(message)
