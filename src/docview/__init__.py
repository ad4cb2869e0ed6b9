"""Document view kernel: property types, endpoint routes and errors."""

from .endpoints import Endpoint, ModuleRoute, resolve
from .errors import DocViewError, EnvelopeError, HTTPError, NotFoundError, ValidationError
from .property_types import operators_for, to_server_type

__all__ = [
    "DocViewError",
    "Endpoint",
    "EnvelopeError",
    "HTTPError",
    "ModuleRoute",
    "NotFoundError",
    "ValidationError",
    "operators_for",
    "resolve",
    "to_server_type",
]
