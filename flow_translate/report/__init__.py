"""
Review report generation.

Modules:
- review: Markdown report of a ConversionResult for human review
"""
