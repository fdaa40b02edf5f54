"""
Hearing Scheduler - Conflict Engine for Court Hearings
======================================================

Scheduling core of the legal-practice backend:
1. Resolving local hearing times into absolute instants
2. Detecting per-attorney scheduling conflicts (with audited overrides)
3. Keeping each case's derived "next hearing" up to date

Case/client CRUD, billing and documents live elsewhere.
"""

__version__ = "1.0.0"
