"""Pipeline stages: content verification, content processing, completion aggregation."""

from .common import as_lambda_handler
from .completion import CompletionAggregator
from .processor import ContentProcessor
from .verifier import ContentVerifier

__all__ = [
    "as_lambda_handler",
    "CompletionAggregator",
    "ContentProcessor",
    "ContentVerifier",
]
