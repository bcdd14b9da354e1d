"""
Warden - Attribute-based access control for a project/document store.

Warden decides, per request, what a principal may do with projects and
documents. It provides:
- A per-request rule set built from role, department and the clock
- Per-instance decisions and field-level redaction
- Rule conditions compiled into SQLite predicates for list queries
- Authorization-aware resource services on top of SQLite storage

Example usage:
    $ warden init --seed
    $ warden rules --as author.eng@example.com
    $ warden check --as viewer.eng@example.com document read --id <id>
"""

__version__ = "0.1.0"
__author__ = "Warden Contributors"

__all__ = [
    "__version__",
    "__author__",
]
