"""
Ingestion — chunking, embedding, and background indexing of documents.

This module converts uploaded files (PDF, plain text) and raw text into
embedded chunks stored in a vector database, reporting progress through
the job registry.
"""
