"""
Drum Tutor: conversational RAG over drum-instruction course material.
"""

__version__ = "0.1.0"
