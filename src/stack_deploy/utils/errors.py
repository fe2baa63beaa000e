"""Error handling framework for stack deployment operations."""

from typing import Optional, Dict, Any, List
from enum import Enum
from dataclasses import dataclass
from stack_deploy.utils.logging import get_logger

logger = get_logger(__name__)


class ErrorCategory(Enum):
    """Categories of errors that can occur during deployment."""
    CONFIGURATION = "configuration"
    REPOSITORY = "repository"
    WORKSPACE = "workspace"
    SECRET = "secret"
    ENGINE = "engine"
    CLUSTER = "cluster"
    VALIDATION = "validation"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors.

    Recoverable problems are reported as warnings on the result rather than
    raised, so every raised error is at least a failed step.
    """
    CRITICAL = "critical"  # Deployment cannot continue
    ERROR = "error"  # Step failed


@dataclass
class ErrorContext:
    """Context information for an error."""
    project_name: Optional[str] = None
    operation: Optional[str] = None
    path: Optional[str] = None
    command: Optional[str] = None


class DeploymentError(Exception):
    """Base exception for deployment errors."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
        suggestions: Optional[List[str]] = None
    ):
        """Initialize deployment error.

        Args:
            message: Human-readable error message
            category: Error category
            severity: Error severity
            context: Additional context about the error
            cause: Original exception that caused this error
            suggestions: List of suggested fixes
        """
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.cause = cause
        self.suggestions = suggestions or []

    def to_user_message(self) -> str:
        """Convert error to user-friendly message.

        Returns:
            Formatted error message for display to user
        """
        lines = []

        lines.append(f"{self.severity.value.upper()}: {self.message}")

        if self.context.project_name:
            lines.append(f"   Project: {self.context.project_name}")
        if self.context.operation:
            lines.append(f"   Operation: {self.context.operation}")
        if self.context.path:
            lines.append(f"   Path: {self.context.path}")
        if self.context.command:
            lines.append(f"   Command: {self.context.command}")

        if self.cause:
            lines.append(f"   Cause: {str(self.cause)}")

        if self.suggestions:
            lines.append("\nSuggested fixes:")
            for i, suggestion in enumerate(self.suggestions, 1):
                lines.append(f"   {i}. {suggestion}")

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization.

        Returns:
            Dictionary representation of the error
        """
        return {
            'message': self.message,
            'category': self.category.value,
            'severity': self.severity.value,
            'context': {
                'project_name': self.context.project_name,
                'operation': self.context.operation,
                'path': self.context.path,
                'command': self.context.command
            },
            'cause': str(self.cause) if self.cause else None,
            'suggestions': self.suggestions
        }


class ConfigurationError(DeploymentError):
    """Settings point at a tool or file that does not exist."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class RepositoryError(DeploymentError):
    """Error while materializing the git repository."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.REPOSITORY,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )


class WorkspaceError(DeploymentError):
    """Error while preparing the on-disk working directory."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.WORKSPACE,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )


class SecretDecryptionError(DeploymentError):
    """Error while decrypting a secret file."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.SECRET,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )


class EngineError(DeploymentError):
    """Error returned by the compose deploy engine."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.ENGINE,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )


class ClusterError(DeploymentError):
    """Error returned by the swarm control plane."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.CLUSTER,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )


class ValidationError(DeploymentError):
    """Error during request validation."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )


class DeploymentCancelledError(DeploymentError):
    """The caller cancelled the deployment before the next step started."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.CANCELLED,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )


class StackDeploymentError(DeploymentError):
    """Opaque failure surfaced to callers of deploy and undeploy.

    The message is always the same; the underlying error is kept on
    ``cause`` and has already been logged.
    """

    MESSAGE = "stack deployment failure"

    def __init__(self, cause: Optional[DeploymentError] = None, **kwargs):
        super().__init__(
            self.MESSAGE,
            category=cause.category if cause else ErrorCategory.UNKNOWN,
            severity=ErrorSeverity.CRITICAL,
            context=cause.context if cause else None,
            cause=cause,
            **kwargs
        )


class ErrorHandler:
    """Converts arbitrary exceptions into categorized deployment errors."""

    def __init__(self):
        """Initialize error handler."""
        self.logger = get_logger(__name__)

    def handle_exception(
        self,
        error: Exception,
        context: Optional[ErrorContext] = None
    ) -> DeploymentError:
        """Handle an exception and convert to DeploymentError.

        Args:
            error: The exception to handle
            context: Additional context about where the error occurred

        Returns:
            DeploymentError with categorization and suggestions
        """
        if isinstance(error, DeploymentError):
            return error

        context = context or ErrorContext()

        if isinstance(error, OSError):
            return WorkspaceError(
                message=f"Filesystem error: {error}",
                context=context,
                cause=error,
                suggestions=['Check permissions on the destination directory']
            )

        return DeploymentError(
            message=str(error),
            category=ErrorCategory.UNKNOWN,
            severity=ErrorSeverity.ERROR,
            context=context,
            cause=error,
            suggestions=['Check logs for more details']
        )

    def log_error(self, error: DeploymentError):
        """Log a fatal error with its context, and its details at debug level.

        Args:
            error: The error to log
        """
        self.logger.error(error.to_user_message())
        self.logger.debug(f"Error details: {error.to_dict()}")


# Global error handler instance
error_handler = ErrorHandler()
