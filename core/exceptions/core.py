"""Mimir Core Exceptions - Core exception classes for error handling.

This module contains the exception hierarchy for the Mimir system. Each class
names one failure category so callers can decide whether to retry, degrade,
or abort the current pipeline invocation.
"""

from typing import Optional, Any, Dict


class MimirError(Exception):
    """Base exception for all Mimir-specific errors.

    This is the root exception class that all other Mimir exceptions
    inherit from. It carries a context dictionary and the underlying cause
    so that logs and CLI output can show where a failure happened.
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        """Initialize Mimir error.

        Args:
            message: Human-readable error description
            context: Optional dictionary with error context (e.g., file paths, chunk IDs)
            cause: Optional underlying exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.cause = cause

    def __str__(self) -> str:
        """Return formatted error message with context."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} (context: {context_str})"
        return self.message

    def add_context(self, key: str, value: Any) -> "MimirError":
        """Add context information to the error."""
        self.context[key] = value
        return self


class ValidationError(MimirError):
    """Raised when input data fails validation."""

    def __init__(
        self,
        field: str,
        value: Any,
        reason: str,
        context: Optional[Dict[str, Any]] = None
    ):
        """Initialize validation error.

        Args:
            field: Name of the field that failed validation
            value: The invalid value
            reason: Description of why validation failed
            context: Optional additional context
        """
        message = f"Validation failed for field '{field}': {reason}"
        super().__init__(message, context)
        self.field = field
        self.value = value
        self.reason = reason


class ConfigurationError(MimirError):
    """Raised when configuration is invalid or missing.

    Configuration errors are fatal and are raised before any ingestion or
    query work starts.
    """

    def __init__(
        self,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        reason: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        """Initialize configuration error.

        Args:
            config_key: Configuration key that caused the error
            config_value: Invalid configuration value
            reason: Description of what went wrong
            context: Optional additional context
        """
        if config_key:
            message = f"Configuration error for '{config_key}': {reason}"
        else:
            message = f"Configuration error: {reason}" if reason else "Configuration error"

        super().__init__(message, context)
        self.config_key = config_key
        self.config_value = config_value
        self.reason = reason


class ProviderError(MimirError):
    """Raised when an LLM provider call fails permanently."""

    def __init__(
        self,
        provider: Optional[str] = None,
        service: Optional[str] = None,
        status_code: Optional[int] = None,
        reason: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        """Initialize provider error.

        Args:
            provider: Provider name (e.g., "openai")
            service: Service or endpoint that failed (e.g., "embeddings", "chat")
            status_code: HTTP status code if applicable
            reason: Description of what went wrong
            context: Optional additional context
            cause: Optional underlying SDK exception
        """
        parts = []
        if provider:
            parts.append(f"provider={provider}")
        if service:
            parts.append(f"service={service}")
        if status_code:
            parts.append(f"status={status_code}")

        prefix = f"Provider error ({', '.join(parts)})" if parts else "Provider error"
        message = f"{prefix}: {reason}" if reason else prefix

        super().__init__(message, context, cause)
        self.provider = provider
        self.service = service
        self.status_code = status_code
        self.reason = reason


class TransientProviderError(ProviderError):
    """Raised for network failures, 5xx responses, throttling and timeouts.

    The request scheduler retries these up to the configured budget and then
    surfaces the last one.
    """


class DataIntegrityError(MimirError):
    """Raised when results do not line up with the request that produced them.

    Examples are an embedding batch returning a different number of vectors
    than texts sent, or a synchronizer input that cannot describe one document.
    """

    def __init__(
        self,
        operation: str,
        expected: Any,
        actual: Any,
        context: Optional[Dict[str, Any]] = None
    ):
        """Initialize data integrity error.

        Args:
            operation: Operation whose output was inconsistent
            expected: Expected value (usually a count)
            actual: Value that was observed
            context: Optional additional context
        """
        message = f"Data integrity violation in {operation}: expected {expected}, got {actual}"
        super().__init__(message, context)
        self.operation = operation
        self.expected = expected
        self.actual = actual


class DatabaseError(MimirError):
    """Raised when chunk store operations fail."""

    def __init__(
        self,
        operation: Optional[str] = None,
        table: Optional[str] = None,
        reason: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        """Initialize database error.

        Args:
            operation: Database operation that failed (e.g., "upsert", "vector_search")
            table: Database table involved in the operation
            reason: Description of what went wrong
            context: Optional additional context
            cause: Optional underlying driver exception
        """
        parts = []
        if operation:
            parts.append(f"operation={operation}")
        if table:
            parts.append(f"table={table}")

        prefix = f"Database error ({', '.join(parts)})" if parts else "Database error"
        message = f"{prefix}: {reason}" if reason else prefix

        super().__init__(message, context, cause)
        self.operation = operation
        self.table = table
        self.reason = reason


class LexicalSearchUnavailable(DatabaseError):
    """Raised when the store cannot serve lexical (full-text) queries.

    The retrieval ranker catches this and continues with vector results only.
    """

    def __init__(self, reason: str, cause: Optional[Exception] = None):
        super().__init__(operation="lexical_search", reason=reason, cause=cause)


class OperationCancelledError(MimirError):
    """Raised when a cancellation token fires during a wait, retry or call."""

    def __init__(self, operation: Optional[str] = None):
        message = f"Operation cancelled: {operation}" if operation else "Operation cancelled"
        super().__init__(message)
        self.operation = operation


class IngestionError(MimirError):
    """Raised when an ingestion run fails.

    Carries the statistics accumulated before the fault so the caller can
    report how much work completed.
    """

    def __init__(self, stats: Any, cause: Exception):
        super().__init__(f"Ingestion failed: {cause}", cause=cause)
        self.stats = stats


class QueryError(MimirError):
    """Raised when answering a question fails."""

    def __init__(self, question: str, cause: Exception):
        super().__init__(f"Query failed: {cause}", context={"question": question}, cause=cause)
        self.question = question
