"""hostprep: idempotent host provisioning (probe, converge, verify).

Core design goals:
- Every resource is probed before anything is changed
- Idempotent apply steps (a converged host is left untouched)
- At most one fallback tier per resource
- Fail fast on missing hardware prerequisites
- Centralized logging
"""

__all__ = []
