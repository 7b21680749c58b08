"""
Enterprise Architecture Graph Repository

A versioned, typed architecture graph plus the staged-change
validation and commit engine that guards it. Each layer communicates only
through explicit contracts.

LAYER STRUCTURE:
================

1. CONTRACTS (contracts/)
   - Immutable records, error taxonomy, meta-model tables
   - MUST NOT: Depend on any other layer

2. STORAGE (storage/)
   - Responsibility: Committed graph, copy-on-write clones, history,
     snapshot codec, batch import, baselines, the repository handle
   - MUST NOT: Validate governance rules or decide permissions

3. GOVERNANCE (governance/)
   - Responsibility: Permission chain, repository metadata
   - MUST NOT: Mutate repository state

4. VALIDATION (validation/)
   - Responsibility: Mandatory-field and cardinality checks over a
     proposed graph
   - Outputs: Ordered Findings (never raised)

5. CORE (core/)
   - Responsibility: Workspaces, diffing, commit orchestration, topology

6. OBSERVABILITY (observability/)
   - Responsibility: Hash-chained audit log, publish-subscribe bus
   - MUST NOT: Modify system behavior

7. TEMPORAL (temporal/)
   - Responsibility: Injectable clock, host-driven scheduled tasks

CONSTRAINTS ENFORCED:
=====================
- Copy-on-write: published repositories are replaced, never edited
- All-or-nothing: commits and batches apply fully or not at all
- Explicit errors: every failure is a typed Result, never an exception
  crossing a layer boundary
"""

__version__ = "1.0.0"
