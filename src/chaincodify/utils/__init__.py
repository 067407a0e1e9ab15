"""
Shared utilities (console output).
"""
