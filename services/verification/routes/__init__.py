"""
Verification Service Routes
===========================

API route handlers for the verification service.
"""

from services.verification.routes import events, proofs


__all__ = ["events", "proofs"]
