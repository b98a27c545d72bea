"""
Ballot Node package initializer

Keep this module lightweight. Do not import FastAPI or uvicorn here, so the
runtime engine can be used on its own.
"""

__all__ = []
