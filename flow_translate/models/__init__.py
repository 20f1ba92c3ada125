"""
Data models.

Modules:
- workflow: Platform-neutral nodes and connections, conversion results
"""
