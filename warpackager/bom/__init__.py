"""Bill of materials module.

This module handles:
- BOM models and (de)serialization
- Generating the BOM of a patched WAR
"""

from warpackager.bom.models import BOM, BOMEntry, BOMMetadata, load_bom, write_bom

__all__ = ["BOM", "BOMEntry", "BOMMetadata", "load_bom", "write_bom"]

# emit_bom lives in warpackager.bom.emitter (imports the build modules)
