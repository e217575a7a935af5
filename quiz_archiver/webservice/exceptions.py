class InvalidParameterError(Exception):
    """Raised when webservice call parameters fail structural validation.

    The request is rejected before any business logic runs.
    """
