"""filepilot: browse, search and share local files on the local network."""

__version__ = '0.1.0'
