"""Workflow lifecycle.

This package holds first-class types for:
- Workflows, steps and negotiated requirements (models)
- The status state machine and the Readiness Gate guarding activation
- The Workflow Store, the single authoritative copy of every workflow
- The negotiation and edit chat loops that write into the store
"""

__all__: list[str] = []
