"""
Bookshelf core for the reading shelf backend.

- Tag registry: ordered, sparsely patched tags of read entries
- Shelf entry store: read and want-to-read entries with owner checks
- Shelf query engine: filtered, paginated shelf listings
- Shelf mutation service: transactional create/update/delete/shift
"""
