"""Command-line search over the conversation archive."""
