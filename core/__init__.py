"""Core module - ERP-neutral inventory aggregation and ordering.

This module contains the canonical data models, the net-availability and
order-pulling aggregators, order submission, configuration and observability.
It is intentionally ERP-agnostic.

Distru-specific logic (endpoints, query filters, row shapes) belongs in /connectors/.
"""

__version__ = "1.0.0"
