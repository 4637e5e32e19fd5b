"""Shared plumbing: exceptions, configuration, logging and the CLI."""
