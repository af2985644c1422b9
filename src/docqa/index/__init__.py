"""Chunk storage, vector index and the ingestion/retrieval pipelines."""
