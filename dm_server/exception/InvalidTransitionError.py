class InvalidTransitionError(Exception):
    """Raised when a single-item status or reaction request violates the state machine.

    Batch requests never raise this; invalid items are skipped instead.
    """
    def __init__(self, message, current=None, requested=None):
        super().__init__(message)
        self.current = current
        self.requested = requested
