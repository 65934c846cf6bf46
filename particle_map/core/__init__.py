"""Core utilities and shared infrastructure.

- config: Configuration loading and validation
- constants: Cell status enum, defaults, warning codes
- exceptions: Custom exception hierarchy
"""
