# src/album_ingest/core/error_handling.py

import functools
import logging

from botocore.exceptions import BotoCoreError, ClientError

from .exceptions import ObjectNotFoundError, StorageError

NOT_FOUND_ERROR_CODES = ("NoSuchKey", "404", "NotFound")


def storage_operation(func):
    """
    Decorator classifying botocore failures raised by an object-store call.

    Missing objects become ``ObjectNotFoundError`` (a content error: retrying
    will not bring the object back). Every other botocore failure becomes
    ``StorageError`` so the worker aborts and the queue redelivers.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger = logging.getLogger(func.__module__ + '.' + func.__name__)
        try:
            return func(*args, **kwargs)
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code')
            if error_code in NOT_FOUND_ERROR_CODES:
                logger.warning(f"Object missing in '{func.__name__}': {e}")
                raise ObjectNotFoundError(f"Object not found: {e}") from e
            logger.error(f"Object store call '{func.__name__}' failed: {e}", exc_info=True)
            raise StorageError(f"Object store operation failed in {func.__name__}: {e}") from e
        except BotoCoreError as e:
            logger.error(f"Object store unreachable in '{func.__name__}': {e}", exc_info=True)
            raise StorageError(f"Object store unreachable in {func.__name__}: {e}") from e
    return wrapper


class BatchOperationContextManager:
    """
    Context manager for one notification's records: collects per-record
    errors and summarizes them when the loop ends.
    """
    def __init__(self, operation_name="Batch Operation"):
        self.operation_name = operation_name
        self.errors = []
        self.logger = logging.getLogger(self.__class__.__module__ + '.' + self.__class__.__name__)

    def __enter__(self):
        self.logger.info(f"Starting {self.operation_name}.")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type:
            self.logger.error(
                f"{self.operation_name} aborted: {exc_val}",
                exc_info=(exc_type, exc_val, exc_tb)
            )
        elif self.errors:
            self.logger.warning(
                f"{self.operation_name} completed with {len(self.errors)} error(s)."
            )
            for i, error_detail in enumerate(self.errors):
                item_identifier = error_detail.get('item', 'Unknown item')
                error_message = error_detail.get('error', 'Unknown error')
                self.logger.error(
                    f"  Error {i+1}/{len(self.errors)} for item '{item_identifier}': {error_message}"
                )
        else:
            self.logger.info(f"{self.operation_name} completed successfully.")

        # Never suppress: transient errors must reach the queue consumer.
        return False

    def add_error(self, error_message: str, item_identifier: str = "Unknown item"):
        """
        Report an error for a specific record within the 'with' block.

        Args:
            error_message (str): The error message or exception string.
            item_identifier (str): The object key or content id that failed.
        """
        self.errors.append({"item": item_identifier, "error": str(error_message)})
        self.logger.debug(f"Error added for item '{item_identifier}' in {self.operation_name}: {error_message}")

    @property
    def error_count(self) -> int:
        return len(self.errors)
