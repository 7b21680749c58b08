"""
Core Change Engine

RESPONSIBILITY: Workspaces, diffing, commit orchestration, graph topology
ALLOWED INPUTS: Drafts staged by collaborators, the live repository handle
OUTPUTS: ChangeSets, CommitOutcomes, impact reports

WHAT THIS LAYER MUST NOT DO:
============================
- Mutate the live repository except through RepositoryHandle.swap
- Raise across its boundary; every failure is a typed Result or outcome

BOUNDARY ENFORCEMENT:
=====================
- Commits apply to a private clone; readers see pre- or post-commit only
- Validation findings are collected, never thrown
"""
