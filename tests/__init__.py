"""
Tests Package - Unit and integration tests for the Embeddings Evaluator.
========================================================================

Test modules:
- test_shared: Config, schemas, utilities
- test_indexing: Embedding providers and the vector store
- test_retrieval: Result shaping, rerankers, retriever
- test_evaluation: Metrics, validation, datasets, runner

Run tests with:
    pytest tests/
    pytest tests/ -v -m "not integration"
"""
