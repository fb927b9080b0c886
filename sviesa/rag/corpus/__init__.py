"""
RAG Corpus Module
=================

Contains the built-in seed documents.
"""

from .seed_data import get_all_seed_documents, get_initial_chunks

__all__ = ["get_all_seed_documents", "get_initial_chunks"]
