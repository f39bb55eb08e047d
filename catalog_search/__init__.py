"""
StudyShop catalog search.

Semantic retrieval for the product catalog: a background indexer that
embeds products into a pgvector store, and a query path that turns a
natural-language question into a grounded answer with citations.
"""

__version__ = "0.1.0"
