"""AI-assisted incremental localization of key/value string tables."""

__version__ = "1.4.0"
