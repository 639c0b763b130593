"""
Flight search service - normalized flight offers from interchangeable providers
"""
__version__ = "1.0.0"
