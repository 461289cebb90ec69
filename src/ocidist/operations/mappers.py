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
    "NotFoundError": 1,
    "ValidationError": 2,
    "DigestMismatchError": 2,
    "UrlParseError": 2,
    "UnsupportedSchemeError": 2,
    "ValueError": 2,
    "NetworkError": 3,
    "ProtocolError": 3,
    "OperationNotSupported": 4,
    "LocalIOError": 5,
}

def exit_code_for(exc: BaseException) -> int:
    """
    Map exception to standardized exit code.
    
    Returns:
    - 1: Not found (NotFoundError)
    - 2: Bad input or content (ValidationError, DigestMismatchError,
      UrlParseError, UnsupportedSchemeError, ValueError)
    - 3: Network/protocol error (NetworkError, ProtocolError) or unknown error
    - 4: Operation not supported by the backend (OperationNotSupported)
    - 5: Local file I/O error (LocalIOError)
    
    Subclasses without an entry of their own use their nearest mapped base.
    
    Args:
        exc: Exception to map
        
    Returns:
        Exit code (1-5, with 3 as fallback for unknown exceptions)
    """
    for cls in type(exc).__mro__:
        if cls.__name__ in EXIT_CODES:
            return EXIT_CODES[cls.__name__]
    return 3

def run_and_exit(func: Callable[[], T]) -> T:
    """
    Unified error wrapper for CLI commands.
    
    Executes the given function and maps any exceptions to appropriate
    exit codes using typer.Exit. The error message is printed to stderr
    before exiting.
    
    Args:
        func: Function to execute
        
    Returns:
        Function result if successful
        
    Raises:
        typer.Exit: With appropriate exit code if function raises exception
    """
    try:
        return func()
    except typer.Exit:
        raise
    except Exception as e:
        from .printers import print_error
        print_error(e)
        raise typer.Exit(code=exit_code_for(e)) from e
