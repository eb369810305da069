"""Tool Adapters.

Available adapters:
- marqeta: Marqeta Core API (basic auth, rate limited)
"""

__all__ = ["marqeta"]
