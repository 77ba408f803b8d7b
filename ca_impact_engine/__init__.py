"""
Conditional Access Impact Engine
================================
Simulates Conditional Access policies against an already-fetched tenant
snapshot and derives assertable sign-in scenarios, a per-user impact matrix,
and a persona (group) coverage report with a resolved nesting graph.

The engine never contacts the tenant; it only reads the snapshot it is given.
"""

__version__ = "1.0.0"
__author__ = "Conditional Access Impact Engine"
