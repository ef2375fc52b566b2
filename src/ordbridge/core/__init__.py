"""
ordbridge Core Module

Core functionality for the bridge including:
- Header, proof, claim and deposit state
- Configuration, errors and audit logging
- Inscription indexing collaborator
- Persistence and API interfaces
"""

__all__ = []
