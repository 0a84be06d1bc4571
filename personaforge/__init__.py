"""
personaforge - persona-driven chat replies on a local model
"""

__version__ = "0.1.0"
__logo__ = "🎭"
