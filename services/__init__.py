"""
CPoE Services
=============

Services:
- verification: threshold proof and event proof HTTP API
"""

__all__ = ["verification"]
