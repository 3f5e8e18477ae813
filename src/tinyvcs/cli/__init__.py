"""Command-line interface for TinyVCS."""
