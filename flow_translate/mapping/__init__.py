"""
Node type mapping between platforms.

Modules:
- table: MappingEntry, MappingTable and the bidirectional resolver
- stubs: Category fallbacks and placeholder stubs for unmapped types
- loader: Mapping database loading and schema validation
"""

from flow_translate.mapping.loader import default_mapping_table, load_mapping_table
from flow_translate.mapping.table import MappingEntry, MappingResolver, MappingTable

__all__ = [
    "MappingEntry",
    "MappingResolver",
    "MappingTable",
    "default_mapping_table",
    "load_mapping_table",
]
