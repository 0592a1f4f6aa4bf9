"""Root exception shared by every runtime failure in the package."""


class SearchError(Exception):
    """Base exception for embedding and store failures.

    Callers that only care whether a search succeeded can catch this single
    type; subclasses carry the failing stage.
    """
    pass
