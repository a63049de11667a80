"""
Logging estructurado con correlation IDs para el motor de descubrimiento.

- Emite JSON (producción) o líneas legibles con color (desarrollo)
- Cada ejecución de descubrimiento lleva un correlation ID propio, así
  los logs de geolocalización, nearby, fallback y resultado se agrupan
- Compatible con el logging estándar: los módulos siguen usando
  logging.getLogger(__name__) y pasan metadata con extra=
"""

import json
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
request_context: ContextVar[Optional[Dict[str, Any]]] = ContextVar(
    "request_context", default=None
)

# Atributos propios de LogRecord; todo lo demás viene de extra=
_RESERVED_ATTRS = frozenset({
    "name", "msg", "args", "created", "filename", "funcName", "levelname",
    "levelno", "lineno", "module", "msecs", "pathname", "process",
    "processName", "relativeCreated", "stack_info", "exc_info", "exc_text",
    "thread", "threadName", "taskName", "message", "asctime",
})


def get_correlation_id() -> Optional[str]:
    """Obtiene el correlation ID del contexto actual."""
    return correlation_id.get()


def set_correlation_id(cid: Optional[str] = None) -> str:
    """
    Establece un correlation ID en el contexto.

    Args:
        cid: ID existente o None para generar uno nuevo

    Returns:
        El correlation ID establecido
    """
    cid = cid or uuid.uuid4().hex[:12]
    correlation_id.set(cid)
    return cid


def clear_correlation_id() -> None:
    correlation_id.set(None)


def set_request_context(**kwargs: Any) -> None:
    """Agrega metadata (p.ej. sequence, keyword) al contexto actual."""
    actual = dict(request_context.get() or {})
    actual.update(kwargs)
    request_context.set(actual)


def clear_request_context() -> None:
    request_context.set(None)


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        clave: valor
        for clave, valor in record.__dict__.items()
        if clave not in _RESERVED_ATTRS and not clave.startswith("_")
    }


class StructuredFormatter(logging.Formatter):
    """
    Formatter que produce una línea JSON por record.

    Incluye timestamp ISO 8601, correlation ID, contexto, ubicación
    y los campos extra pasados al log.
    """

    def __init__(self, service_name: str = "vicinity-discovery"):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
            "location": {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            },
        }

        cid = get_correlation_id()
        if cid:
            log_data["correlation_id"] = cid

        ctx = request_context.get()
        if ctx:
            log_data["context"] = ctx

        extra = _extra_fields(record)
        if extra:
            log_data["extra"] = extra

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


class HumanReadableFormatter(logging.Formatter):
    """Formatter para desarrollo: legible, con color y campos extra al final."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")

        if self.use_colors:
            color = self.COLORS.get(record.levelname, "")
            level = f"{color}{record.levelname:8}{self.RESET}"
        else:
            level = f"{record.levelname:8}"

        cid = get_correlation_id()
        cid_str = f"[{cid[:8]}] " if cid else ""

        linea = f"{timestamp} {level} {cid_str}{record.name}: {record.getMessage()}"

        campos = {**(request_context.get() or {}), **_extra_fields(record)}
        if campos:
            linea += " | " + " ".join(
                f"{k}={v}" for k, v in campos.items() if v is not None
            )

        if record.exc_info:
            linea += f"\n{self.formatException(record.exc_info)}"

        return linea


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
    service_name: str = "vicinity-discovery",
) -> None:
    """
    Configura el logging raíz con un único handler a stdout.

    Args:
        level: Nivel de logging (DEBUG, INFO, WARNING, ERROR)
        json_output: True para JSON, False para humano-legible
        service_name: Nombre del servicio para los logs JSON
    """
    if json_output:
        formatter: logging.Formatter = StructuredFormatter(service_name=service_name)
    else:
        formatter = HumanReadableFormatter(use_colors=sys.stdout.isatty())

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    for existente in root_logger.handlers[:]:
        root_logger.removeHandler(existente)
    root_logger.addHandler(handler)

    # Librerías de terceros demasiado verbosas
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
