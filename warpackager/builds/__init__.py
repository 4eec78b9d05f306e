"""Build orchestration module.

This module handles:
- Source resolution (git, filesystem)
- Snapshot version assignment
- Build cache lookups against the local artifact store
- Running Maven
- Descriptor generation and WAR patching
- The end-to-end packager pipeline
"""

from warpackager.builds.overrides import VersionOverride, VersionOverrideMap

__all__ = ["VersionOverride", "VersionOverrideMap"]

# Lazy imports for submodules to avoid circular imports
# Access via warpackager.builds.pipeline, etc.
