"""
Utility functions and helpers.

Modules:
- files: JSON/YAML file reading and writing
- paths: Dotted-path access into nested parameter dicts
"""
