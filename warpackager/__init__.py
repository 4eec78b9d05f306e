"""WAR Packager - assemble custom Jenkins WAR bundles.

This package builds a base WAR, plugins and library patches from pinned
releases, git checkouts or local directories, patches them into a single
WAR and records the resolved versions in a bill of materials.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
