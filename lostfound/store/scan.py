"""Full-collection scans over the paginated query interface."""

from collections.abc import Iterator, Sequence

from lostfound.store.protocols import Document, DocumentStore, FieldFilter


def iter_documents(
    store: DocumentStore,
    collection: str,
    filters: Sequence[FieldFilter] = (),
    page_size: int = 500,
) -> Iterator[Document]:
    """Yield every matching document, one page at a time."""
    cursor: str | None = None
    while True:
        page = store.query(collection, filters=filters, limit=page_size, cursor=cursor)
        yield from page.documents
        if page.next_cursor is None:
            return
        cursor = page.next_cursor
