# Path: core/__init__.py
# Purpose: Package initializer for core application layer.
# Layer: core.
# Details: Groups embedders, vector and metadata stores, ingestion, search, and reconciliation.
