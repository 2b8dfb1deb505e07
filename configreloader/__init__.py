"""Parse, rewrite, validate and reload per-namespace fluentd configuration."""

__version__ = "0.1.0"