"""Error taxonomy for the sync engine."""


class SyncError(Exception):
    """Base class for errors raised while mirroring upstream data."""


class FetchFailed(SyncError):
    """A GitHub API call did not produce a usable response.

    Attributes:
        collection: Collection or endpoint being fetched (e.g. "pulls", "comments")
        id_or_page: Item number or page index the call was for
        cause: The underlying exception
    """

    def __init__(self, collection: str, id_or_page: int, cause: BaseException) -> None:
        self.collection = collection
        self.id_or_page = id_or_page
        self.cause = cause
        super().__init__(f"Failed to fetch {collection} {id_or_page}: {cause}")


class TransportError(FetchFailed):
    """Network failure or timeout talking to GitHub."""


class UpstreamStatusError(FetchFailed):
    """GitHub answered with a non-success status."""

    def __init__(self, collection: str, id_or_page: int, cause: BaseException, status_code: int) -> None:
        self.status_code = status_code
        super().__init__(collection, id_or_page, cause)


class DataShapeError(SyncError):
    """An upstream payload is missing a field or has an unexpected type."""
