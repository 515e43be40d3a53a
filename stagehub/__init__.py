"""stagehub - stage library registry and lifecycle manager"""

__version__ = "0.1.0"
