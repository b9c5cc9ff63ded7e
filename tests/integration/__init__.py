"""
Integration tests for the viz3d backend.

These tests go through the whole stack: multipart upload, ingestion, file
storage, the SQLite registry on disk and the stored-dataset endpoints.

Run all integration tests:
    pytest tests/integration/ -v
"""
