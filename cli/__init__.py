"""Command line entry points for schema-runner."""
