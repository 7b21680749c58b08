"""
Governance Layer

RESPONSIBILITY: Authorization (permission chain) and repository metadata
OUTPUTS: AccessDecision records, validated RepositoryMetadata

WHAT THIS LAYER MUST NOT DO:
============================
- Mutate repository state
- Evaluate graph structure (validation layer does that)
"""

from .access import PermissionChain, enforce, has_permission, resolve_strictness
from .metadata import validate_metadata

__all__ = [
    "PermissionChain", "enforce", "has_permission", "resolve_strictness",
    "validate_metadata",
]
