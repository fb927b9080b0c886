"""
Tikėjimo Šviesa
===============

Retrieval, ranking and multi-tier memoization pipeline behind a
question-answering assistant grounded in a local Catholic text corpus.

Subpackages:
    - rag: corpus chunking, chunk store, relevance scoring, query embeddings
    - cache: embedding cache and exact response cache
    - memory: local and shared semantic (question/answer) memory
    - ai: generative provider clients, prompts, query gate, token usage
    - orchestrator: answer pipeline, background tasks, logging
    - api: HTTP surface
"""

__version__ = "0.1.0"
