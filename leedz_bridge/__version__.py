"""
Leedz Tool Bridge - Version and metadata
"""

__version__ = "2.0.0"
__author__ = "Leedz Contributors"
__license__ = "MIT"
__description__ = (
    "JSON-RPC tool servers bridging a local LLM host to the Leedz invoicing database and Gmail"
)
