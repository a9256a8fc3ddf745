"""
Error mapping and CLI utilities.

Provides centralized exception-to-exit-code mapping and CLI command wrappers
to ensure consistent error handling across all Typer commands.
"""
from __future__ import annotations

import asyncio
from typing import Any, Callable

import typer

# Exit code mapping by exception class name
EXIT_CODES = {
    "ResourceNotFound": 1,
    "ScriptNameNotRecognized": 2,
    "UnknownSettingKey": 2,
    "InvalidSettingValue": 2,
    "UnsupportedSharedScript": 2,
    "ValueError": 2,
    "RemoteOperationFailed": 3,
    "PlanIncomplete": 4,
}


def exit_code_for(exc: BaseException) -> int:
    """
    Map exception to standardized exit code.

    Returns exit codes:
    - 0: Success
    - 1: Resource not found (ResourceNotFound)
    - 2: User input error (unrecognized script name, unknown key, bad value)
    - 3: Remote operation failure or unknown error
    - 4: Not all plan steps completed (PlanIncomplete)

    Args:
        exc: Exception to map

    Returns:
        Exit code (1-4, with 3 as fallback for unknown exceptions)
    """
    return EXIT_CODES.get(type(exc).__name__, 3)


def run_and_exit(func: Callable[[], Any]) -> Any:
    """
    Unified error wrapper for CLI commands.

    Executes the given function and maps any exceptions to appropriate
    exit codes using typer.Exit. Coroutine functions are driven to completion
    on a fresh event loop. This centralizes error handling so CLI commands
    don't need individual try/except blocks.

    Args:
        func: Function or coroutine function to execute

    Returns:
        Function result if successful

    Raises:
        typer.Exit: With appropriate exit code if function raises exception
    """
    from .printers import print_error

    try:
        result = func()
        if asyncio.iscoroutine(result):
            result = asyncio.run(result)
        return result
    except typer.Exit:
        raise
    except Exception as e:
        print_error(e)
        raise typer.Exit(code=exit_code_for(e)) from e

