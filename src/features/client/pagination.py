"""Loop detection for callers that walk pagination links."""

from src.features.client.errors import RepeatedPaginationURLError
from src.features.client.redact import sanitize_url_for_log
from src.features.client.sanitize import sanitize_terminal


class NextLinkTracker:
    """Remembers the continuation links seen while paging through a collection.

    Example:
        tracker = NextLinkTracker()
        body = client.get("/v1/apps")
        while tracker.advance(next_link_of(body)):
            body = client.get_next_page(tracker.current)
    """

    def __init__(self) -> None:
        self._seen: set[str] = set()
        self._current = ""

    @property
    def current(self) -> str:
        """The most recently accepted link (empty before the first)."""
        return self._current

    @property
    def pages_seen(self) -> int:
        """Number of distinct links accepted so far."""
        return len(self._seen)

    def advance(self, next_url: str | None) -> bool:
        """Record the next link.

        Args:
            next_url: Continuation link from the last page, or None/empty at
                the end of the collection.

        Returns:
            True if there is another page to fetch, False when done.

        Raises:
            RepeatedPaginationURLError: If the link was already seen.
        """
        link = (next_url or "").strip()
        if not link:
            return False
        if link in self._seen:
            safe_link = sanitize_terminal(sanitize_url_for_log(link))
            msg = f'detected repeated pagination URL "{safe_link}"'
            raise RepeatedPaginationURLError(msg)
        self._seen.add(link)
        self._current = link
        return True
