"""
Natural language query dashboard backend.

Turns plain-language questions into SQL against registered SQL Server, MySQL
and Oracle databases, using the admin metadata stored for each database.
"""

__version__ = "0.1.0"
