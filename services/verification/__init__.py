"""
Verification Service
====================

HTTP entry point of the CPoE engine.

This service provides:
- Threshold proof verification with nullifier recording
- Nullifier lookups and verifier statistics
- Event proof generation from a transaction hash
- Event proof verification

Version: 0.1.0
"""

__version__ = "0.1.0"
