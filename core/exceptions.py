class PersistenceError(Exception):
    """Raised when a read or write against the database fails.

    The message is safe to show to the user; the underlying database error is
    kept as the exception's __cause__.
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
