"""
GEX: dependency auditing and documentation for Node.js and Bun projects.
"""

__version__ = "0.4.0"
