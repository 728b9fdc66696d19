"""
Error mapping and CLI utilities.

Provides centralized exception-to-exit-code mapping and CLI command wrappers
to ensure consistent error handling across all Typer commands.
"""
from __future__ import annotations

import typer
from typing import Callable, TypeVar

T = TypeVar('T')

EXIT_CODES = {
    "SwiftNotFound": 1,
    "FileNotFoundError": 1,
    "SwiftConfigurationError": 2,
    "SwiftBadRequest": 2,
    "ValueError": 2,
    "SwiftConnectionError": 3,
    "SwiftInvalidResponse": 3,
    "SwiftAuthenticationError": 4,
    "SwiftOperationFailed": 5,
    "SwiftPartialRename": 6,
    "SwiftUnsupportedFeature": 7,
}


def exit_code_for(exc: BaseException) -> int:
    """
    Map exception to standardized exit code.

    - 0: Success
    - 1: Path not found (SwiftNotFound)
    - 2: Bad configuration or arguments (SwiftConfigurationError, SwiftBadRequest)
    - 3: Network or server error (SwiftConnectionError, SwiftInvalidResponse) or unknown error
    - 4: Authentication rejected (SwiftAuthenticationError)
    - 5: Filesystem operation refused (SwiftOperationFailed)
    - 6: Directory rename only partly done (SwiftPartialRename)
    - 7: Unsupported operation (SwiftUnsupportedFeature)

    Args:
        exc: Exception to map

    Returns:
        Exit code (1-7, with 3 as fallback for unknown exceptions)
    """
    return EXIT_CODES.get(type(exc).__name__, 3)


def run_and_exit(func: Callable[[], T]) -> T:
    """
    Unified error wrapper for CLI commands.

    Executes the given function and maps any exceptions to appropriate
    exit codes using typer.Exit, after reporting the error on stderr.

    Raises:
        typer.Exit: With appropriate exit code if function raises exception
    """
    try:
        return func()
    except typer.Exit:
        raise
    except Exception as e:
        from .printers import print_error, print_partial_rename
        from ..errors import SwiftPartialRename
        if isinstance(e, SwiftPartialRename):
            print_partial_rename(e)
        else:
            print_error(e)
        raise typer.Exit(code=exit_code_for(e)) from e
