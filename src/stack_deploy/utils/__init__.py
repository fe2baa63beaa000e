"""Utility modules for logging, errors and external process execution."""

from stack_deploy.utils.errors import (
    ErrorCategory,
    ErrorSeverity,
    ErrorContext,
    DeploymentError,
    ConfigurationError,
    RepositoryError,
    WorkspaceError,
    SecretDecryptionError,
    EngineError,
    ClusterError,
    ValidationError,
    DeploymentCancelledError,
    StackDeploymentError,
    ErrorHandler,
    error_handler
)
from stack_deploy.utils.logging import get_logger, setup_logging, LogContext
from stack_deploy.utils.process import (
    CommandRunner,
    CommandCancelledError,
    ProcessError,
    tool_path
)

__all__ = [
    # Errors
    'ErrorCategory',
    'ErrorSeverity',
    'ErrorContext',
    'DeploymentError',
    'ConfigurationError',
    'RepositoryError',
    'WorkspaceError',
    'SecretDecryptionError',
    'EngineError',
    'ClusterError',
    'ValidationError',
    'DeploymentCancelledError',
    'StackDeploymentError',
    'ErrorHandler',
    'error_handler',

    # Logging
    'get_logger',
    'setup_logging',
    'LogContext',

    # Processes
    'CommandRunner',
    'CommandCancelledError',
    'ProcessError',
    'tool_path',
]
