"""Core scanning engine: models, registries, extraction, classification, and sessions."""
