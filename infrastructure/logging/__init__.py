"""
Módulo de logging estructurado.

JSON o texto legible, con correlation IDs por ejecución de descubrimiento.
"""

from .structured_logger import (
    HumanReadableFormatter,
    StructuredFormatter,
    clear_correlation_id,
    clear_request_context,
    configure_logging,
    get_correlation_id,
    set_correlation_id,
    set_request_context,
)

__all__ = [
    "configure_logging",
    "get_correlation_id",
    "set_correlation_id",
    "clear_correlation_id",
    "set_request_context",
    "clear_request_context",
    "StructuredFormatter",
    "HumanReadableFormatter",
]
