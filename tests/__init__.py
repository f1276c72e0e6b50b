"""
Tests Package - Unit tests for SU Advisor.
==========================================

Test modules:
- test_shared: Settings, schemas and helpers
- test_indexing: Embedding cache, embedding providers and vector store
- test_retrieval: Query expansion, hybrid search and rerank
- test_local_context: Catalog, instructor matching and web snippets
- test_prompts: Templates, few-shots and reasoning helpers
- test_gateway: Streaming pipeline, rate limiting and generation providers
- test_ingestion: Chunker and document ingestion
- test_service: Service facade and HTTP API

Run tests with:
    pytest tests/
    pytest tests/ -m "not slow"
"""
