"""
Collection ingestion: page through the remote API and store every record.
"""
