"""
Core application engine for orchestrating the download process.

The `TitleSession` drives one movie or series, delegating each individual
retrieval to the `RetrievalOrchestrator`.
"""
