"""
Runtime wiring: monitoring session, operator commands and service context.
"""
