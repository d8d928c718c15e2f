"""Error handling for tokenbar."""

from tokenbar.errors.classify import classify_exception
from tokenbar.errors.http import check_response
from tokenbar.errors.http import error_for_status
from tokenbar.errors.http import extract_error_message
from tokenbar.errors.types import ErrorKind
from tokenbar.errors.types import ProviderError

__all__ = [
    "ErrorKind",
    "ProviderError",
    "classify_exception",
    "check_response",
    "error_for_status",
    "extract_error_message",
]
