"""
Contract registry: validation, id mapping, processing and the batch commit
into the indexer's configuration document and ABI directory.
"""
