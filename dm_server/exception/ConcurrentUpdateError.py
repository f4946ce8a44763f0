class ConcurrentUpdateError(Exception):
    """Raised when a compare-and-set write keeps losing to concurrent writers."""
    def __init__(self, message):
        super().__init__(message)
