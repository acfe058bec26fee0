"""
F&B back-office AI assistant: tool-calling agent over the business data store.
"""

__version__ = "1.0.0"
