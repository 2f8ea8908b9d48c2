"""
Diagram Controller - REST remote control for a diagram modeling graph.

Turns small per-family configurations into complete CRUD surfaces over an
in-memory model graph, and keeps the graph consistent on every mutation:
- Referential integrity checks before delete
- Cascading cleanup of auto-created containers after diagram deletion
- Frame and edge geometry after views are added, moved or reconnected
"""

__version__ = "1.0.0"
