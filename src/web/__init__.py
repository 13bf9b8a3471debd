"""
Control/status HTTP API.
"""
