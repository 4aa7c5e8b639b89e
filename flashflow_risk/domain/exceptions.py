"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class InvalidSubmissionError(DomainException):
    """Submission is structurally invalid (missing class tag or amount)"""

    pass


class UnknownAssetClassError(DomainException):
    """Asset class tag does not name a supported asset class"""

    def __init__(self, tag: object):
        super().__init__(f"Unknown asset class: {tag!r}")
        self.tag = tag


class EnhancementUnavailableError(DomainException):
    """Enhancer timed out or failed; callers fall back to the raw input"""

    pass


class AllocationConflictError(DomainException):
    """Basket changed underneath an assignment; retry the whole assign call"""

    retryable = True


class AllocationRejectedError(DomainException):
    """Asset cannot be placed in any basket of its tier without breaching the ceiling"""

    retryable = False


class BasketPersistenceError(DomainException):
    """Basket store failed to persist an assignment; nothing was committed"""

    retryable = True
