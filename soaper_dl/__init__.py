"""
soaper-dl: download movies and TV series from Soaper.
"""

__version__ = "1.0.0"
