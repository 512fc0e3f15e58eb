"""Command line interface for digitnet."""
