"""
Shared Layer - Cross-Cutting Concerns
Configuration-aware infrastructure used by the webhook module: database,
logging, error contract, auth helpers and crypto utilities.
"""
