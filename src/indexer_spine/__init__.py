"""
indexer-spine - control plane for a rindexer blockchain indexer.

Accepts batches of contract registrations over HTTP, gives every contract a
stable internal id, merges the contracts into the indexer's ``rindexer.yaml``,
writes their ABI files and restarts the indexer process.
"""

__version__ = "0.1.0"
