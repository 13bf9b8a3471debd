"""
Operational helpers: logging setup and single-instance guard.
"""
