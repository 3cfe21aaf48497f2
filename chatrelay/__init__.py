"""
chatrelay - reliability and identity-resolution layer for chat channels
"""

__version__ = "0.1.0"
