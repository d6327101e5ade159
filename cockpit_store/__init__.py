"""
Cockpit Store backend

Configuration & pricing engine for modular cockpit products.
"""
__version__ = "1.0.0"
