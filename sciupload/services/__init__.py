"""Services for sciupload."""
from .transport import HTTPTransport, classify_response

__all__ = [
    "HTTPTransport",
    "classify_response",
]
