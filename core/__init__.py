"""
Core del motor de descubrimiento.

- Excepciones del dominio (core.exceptions)
- Interfaces de las capacidades externas (core.interfaces)
"""

__version__ = "1.0.0"
