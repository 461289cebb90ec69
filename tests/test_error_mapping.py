"""
Test error mapping and CLI exit code functionality.

Validates that exceptions are correctly mapped to exit codes and that
the run_and_exit wrapper handles errors appropriately for CLI commands.
"""
from __future__ import annotations

import pytest
import typer

from ocidist.errors import (
    DigestMismatchError,
    LocalIOError,
    NetworkError,
    NotFoundError,
    OciError,
    OperationNotSupported,
    ProtocolError,
    UnsupportedSchemeError,
    UrlParseError,
    ValidationError,
    VerificationResult,
)
from ocidist.operations.mappers import EXIT_CODES, exit_code_for, run_and_exit


class TestExitCodeMapping:
    """Test exception to exit code mapping."""
    
    @pytest.mark.parametrize("exc, code", [
        (NotFoundError("missing"), 1),
        (ValidationError("bad"), 2),
        (DigestMismatchError("bad", expected="sha256:a", actual="sha256:b"), 2),
        (UrlParseError("bad url"), 2),
        (UnsupportedSchemeError("ftp"), 2),
        (ValueError("bad value"), 2),
        (NetworkError("refused"), 3),
        (ProtocolError("teapot", status=418), 3),
        (OperationNotSupported("layout"), 4),
        (LocalIOError("disk"), 5),
    ])
    def test_known_exceptions_mapped_correctly(self, exc, code):
        assert exit_code_for(exc) == code
    
    def test_unknown_exception_maps_to_fallback(self):
        """Test that unknown exceptions map to fallback exit code."""
        assert exit_code_for(RuntimeError("test")) == 3
        assert exit_code_for(OciError("base")) == 3
    
    def test_subclass_uses_nearest_mapped_base(self):
        class LayerCountError(ValidationError):
            pass
        
        assert exit_code_for(LayerCountError("two layers")) == 2
    
    def test_builtin_os_errors_use_fallback(self):
        """Test that only our own local I/O errors map to 5."""
        assert exit_code_for(FileNotFoundError("test")) == 3
    
    def test_exit_code_completeness(self):
        """Test that every error class is mapped."""
        assert set(EXIT_CODES) == {
            "NotFoundError",
            "ValidationError",
            "DigestMismatchError",
            "UrlParseError",
            "UnsupportedSchemeError",
            "ValueError",
            "NetworkError",
            "ProtocolError",
            "OperationNotSupported",
            "LocalIOError",
        }


class TestRunAndExit:
    """Test run_and_exit wrapper functionality."""
    
    def test_successful_function_returns_result(self):
        assert run_and_exit(lambda: "success result") == "success result"
    
    def test_function_exception_raises_typer_exit(self, capsys):
        def failing_func():
            raise NotFoundError("Not found: manifest ns/app:v1")
        
        with pytest.raises(typer.Exit) as exc_info:
            run_and_exit(failing_func)
        
        assert exc_info.value.exit_code == 1
        assert "Not found: manifest ns/app:v1" in capsys.readouterr().err
    
    def test_exception_chaining_preserved(self):
        """Test that original exception is preserved as cause."""
        original_error = ProtocolError("Failed to PUT", status=500)
        
        def failing_func():
            raise original_error
        
        with pytest.raises(typer.Exit) as exc_info:
            run_and_exit(failing_func)
        
        assert exc_info.value.__cause__ is original_error
    
    def test_error_message_markup_is_escaped(self, capsys):
        def failing_func():
            raise ValidationError("bad tags [bold]x[/bold]")
        
        with pytest.raises(typer.Exit):
            run_and_exit(failing_func)
        
        assert "[bold]x[/bold]" in capsys.readouterr().err
    
    def test_typer_exit_passes_through(self):
        def exiting_func():
            raise typer.Exit(code=0)
        
        with pytest.raises(typer.Exit) as exc_info:
            run_and_exit(exiting_func)
        assert exc_info.value.exit_code == 0


class TestErrorTypes:
    """Test the error classes themselves."""
    
    def test_protocol_error_carries_status(self):
        err = ProtocolError("Failed to PUT manifest", status=400)
        
        assert err.status == 400
        assert str(err) == "Failed to PUT manifest"
    
    def test_digest_mismatch_is_validation_error(self):
        err = DigestMismatchError("mismatch", expected="sha256:a", actual="sha256:b")
        
        assert isinstance(err, ValidationError)
        assert (err.expected, err.actual) == ("sha256:a", "sha256:b")
    
    def test_local_io_error_is_os_error(self):
        assert isinstance(LocalIOError("disk"), OSError)
    
    def test_verification_result_truthiness(self):
        assert VerificationResult(True, "Verified OK")
        assert not VerificationResult(False, "Verification Failed: nope")
