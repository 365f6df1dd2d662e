"""
Centralized error handling decorators for database operations.
Provides reusable decorators to wrap database operations with try-except
blocks that classify, log and (optionally) re-raise failures.
"""
import functools
import inspect
import logging
import traceback
from typing import Any, Callable, Optional

from sqlalchemy.exc import (
    DisconnectionError,
    IntegrityError,
    InvalidRequestError,
    OperationalError,
    PendingRollbackError,
    SQLAlchemyError,
    StatementError,
    TimeoutError,
)
from sqlalchemy.ext.asyncio import AsyncSession


logger = logging.getLogger(__name__)


class DatabaseErrorHandler:
    """Centralized database error handling utilities."""

    DATABASE_EXCEPTIONS = (
        SQLAlchemyError,
        IntegrityError,
        OperationalError,
        DisconnectionError,
        TimeoutError,
        StatementError,
        InvalidRequestError,
        PendingRollbackError,
        ConnectionError,
    )

    # Business rule failures raised by services; expected, never logged as errors
    BUSINESS_EXCEPTIONS = (ValueError, LookupError, PermissionError)

    @staticmethod
    def handle_database_error(
        exc: Exception,
        operation: str,
        context: Optional[dict] = None
    ) -> tuple[bool, str]:
        """
        Handle database errors with detailed logging and classification.

        Args:
            exc: The exception that occurred
            operation: Description of the database operation
            context: Additional context information

        Returns:
            Tuple of (is_recoverable, error_message)
        """
        context_str = f" | Context: {context}" if context else ""

        if isinstance(exc, IntegrityError):
            error_msg = f"Database integrity error during {operation}: {str(exc)}{context_str}"
            logger.warning(error_msg)
            return False, error_msg

        elif isinstance(exc, (ConnectionError, DisconnectionError)):
            error_msg = f"Database connection error during {operation}: {str(exc)}{context_str}"
            logger.error(error_msg)
            return True, error_msg

        elif isinstance(exc, TimeoutError):
            error_msg = f"Database timeout during {operation}: {str(exc)}{context_str}"
            logger.warning(error_msg)
            return True, error_msg

        elif isinstance(exc, OperationalError):
            error_msg = f"Database operational error during {operation}: {str(exc)}{context_str}"
            logger.error(error_msg)
            return True, error_msg

        elif isinstance(exc, StatementError):
            error_msg = f"Database statement error during {operation}: {str(exc)}{context_str}"
            logger.warning(error_msg)
            return False, error_msg

        else:
            error_msg = f"Unexpected database error during {operation}: {type(exc).__name__}: {str(exc)}{context_str}"
            logger.error(f"{error_msg}\nTraceback: {traceback.format_exc()}")
            return False, error_msg


def _is_async(func: Callable) -> bool:
    return inspect.iscoroutinefunction(func) or inspect.iscoroutinefunction(
        getattr(func, "__wrapped__", None)
    )


def handle_database_exceptions(
    operation_name: Optional[str] = None,
    reraise: bool = True,
    default_return: Any = None,
    log_level: str = "error"
) -> Callable:
    """
    Decorator to wrap async database operations with error handling.

    Args:
        operation_name: Name of the operation for logging (defaults to function name)
        reraise: Whether to re-raise the exception after logging
        default_return: Value to return if an error occurs and reraise=False
        log_level: Logging level for errors ('error', 'warning', 'info')

    Returns:
        Decorated function with error handling
    """
    def decorator(func: Callable) -> Callable:
        if not _is_async(func):
            raise TypeError(
                f"handle_database_exceptions requires a coroutine function, got {func!r}"
            )

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs) -> Any:
            operation = operation_name or getattr(func, '__name__', 'unknown')
            context = {
                "function": getattr(func, '__name__', 'unknown'),
                "args_count": len(args),
                "kwargs_keys": list(kwargs.keys()) if kwargs else []
            }

            try:
                result = await func(*args, **kwargs)
                logger.debug(f"Successfully completed {operation}")
                return result

            except DatabaseErrorHandler.DATABASE_EXCEPTIONS as exc:
                _, error_msg = DatabaseErrorHandler.handle_database_error(
                    exc, operation, context
                )

                getattr(logger, log_level, logger.error)(error_msg)

                if reraise:
                    raise
                logger.info(f"Operation {operation} failed but continuing with default return: {default_return}")
                return default_return

            except DatabaseErrorHandler.BUSINESS_EXCEPTIONS as exc:
                logger.info(f"Operation {operation} rejected: {type(exc).__name__}: {str(exc)}")
                raise

            except Exception as exc:
                error_msg = f"Unexpected error in {operation}: {type(exc).__name__}: {str(exc)}"
                logger.error(f"{error_msg}\nTraceback: {traceback.format_exc()}")

                if reraise:
                    raise
                return default_return

        return async_wrapper

    return decorator


def database_transaction(
    operation_name: Optional[str] = None,
    commit_on_success: bool = True,
    rollback_on_error: bool = True
) -> Callable:
    """
    Decorator to handle database transactions with proper commit/rollback.

    The AsyncSession is located among the positional or keyword arguments.

    Args:
        operation_name: Name of the operation for logging
        commit_on_success: Whether to commit on successful completion
        rollback_on_error: Whether to rollback on error

    Returns:
        Decorated function with transaction handling
    """
    def decorator(func: Callable) -> Callable:
        if not _is_async(func):
            logger.warning(f"database_transaction decorator used on sync function {func.__name__}")
            return func

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs) -> Any:
            operation = operation_name or getattr(func, '__name__', 'unknown')

            db_session: Optional[AsyncSession] = next(
                (arg for arg in (*args, *kwargs.values()) if isinstance(arg, AsyncSession)),
                None,
            )

            if not db_session:
                logger.warning(f"No AsyncSession found for transaction operation {operation}")
                return await func(*args, **kwargs)

            try:
                logger.debug(f"Starting database transaction for {operation}")
                result = await func(*args, **kwargs)

                if commit_on_success:
                    await db_session.commit()
                    logger.debug(f"Transaction committed for {operation}")

                return result

            except Exception:
                if rollback_on_error:
                    try:
                        await db_session.rollback()
                        logger.debug(f"Transaction rolled back for {operation} due to error")
                    except Exception as rollback_exc:
                        logger.error(f"Failed to rollback transaction for {operation}: {rollback_exc}")

                # Let the exception propagate to be handled by handle_database_exceptions
                raise

        return async_wrapper

    return decorator


def log_database_operation(
    operation: str,
    level: str = "debug"
) -> Callable:
    """
    Decorator to log database operations with context.

    Args:
        operation: Description of the operation
        level: Logging level ('debug', 'info', 'warning', 'error')

    Returns:
        Decorated function with operation logging
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs) -> Any:
            logger_method = getattr(logger, level)
            func_name = getattr(func, '__name__', 'unknown')
            logger_method(f"Starting {operation} via {func_name}")

            try:
                result = await func(*args, **kwargs)
                logger_method(f"Completed {operation} via {func_name}")
                return result
            except Exception as exc:
                logger_method(f"Failed {operation} via {func_name}: {str(exc)}")
                raise

        return async_wrapper

    return decorator


# Convenience decorators for common patterns
def safe_database_query(func=None, operation_name: Optional[str] = None, default_return: Any = None) -> Callable:
    """
    Safe database query decorator that never raises database exceptions.
    Use for read operations where you want to continue execution even on errors.

    Can be used with or without parentheses:
        @safe_database_query
        async def my_func(...): ...

        @safe_database_query("custom name", default_return=[])
        async def my_func(...): ...
    """
    def decorator(f: Callable) -> Callable:
        return handle_database_exceptions(
            operation_name=operation_name,
            reraise=False,
            default_return=default_return,
            log_level="warning"
        )(f)

    if func is None:
        return decorator
    elif callable(func):
        return decorator(func)
    else:
        # Called with string as first positional arg
        return safe_database_query(operation_name=func, default_return=default_return)


def critical_database_operation(func=None, operation_name: Optional[str] = None) -> Callable:
    """
    Critical database operation decorator that always logs errors and reraises.
    Use for write operations that must succeed.

    Can be used with or without parentheses:
        @critical_database_operation
        async def my_func(...): ...

        @critical_database_operation("custom name")
        async def my_func(...): ...
    """
    def decorator(f: Callable) -> Callable:
        return handle_database_exceptions(
            operation_name=operation_name,
            reraise=True,
            log_level="error"
        )(f)

    if func is None:
        return decorator
    elif callable(func):
        return decorator(func)
    else:
        return critical_database_operation(operation_name=func)


def transactional_database_operation(func=None, operation_name: Optional[str] = None) -> Callable:
    """
    Combined decorator for transactional database operations with error handling.

    Can be used with or without parentheses:
        @transactional_database_operation
        async def my_func(...): ...

        @transactional_database_operation("operation_name")
        async def my_func(...): ...
    """
    def decorator(f: Callable) -> Callable:
        transaction_decorated = database_transaction(operation_name=operation_name)(f)
        return handle_database_exceptions(operation_name=operation_name, reraise=True)(transaction_decorated)

    if func is None:
        return decorator
    elif callable(func):
        return decorator(func)
    else:
        return transactional_database_operation(operation_name=func)
