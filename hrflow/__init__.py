# hrflow/__init__.py
"""HR request approval workflow service. The ASGI app lives in ``hrflow.main:app``."""

__version__ = "0.3.0"
