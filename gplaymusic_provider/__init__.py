"""
A Google Play Music song provider: catalog search and lookup, cached song
downloads and radio-station based suggestions.
"""

__version__ = "0.3.0"
