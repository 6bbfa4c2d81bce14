"""Data models for packages, operations and recipe manifests."""
