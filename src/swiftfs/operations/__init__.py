"""
Operations package - glue between the CLI and the filesystem.

Centralizes error mapping and output formatting so CLI commands stay thin.
"""
from .mappers import exit_code_for, run_and_exit

__all__ = ["exit_code_for", "run_and_exit"]
