"""
Repository package for catalog data access.

The default implementation is the in-memory catalog loaded from
`CATALOG_DATA_PATH` (or the packaged `data/catalog.json`); anything exposing
`get(content_id)` and `list_entries()` can be passed to `create_app`.
"""
