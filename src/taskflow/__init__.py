"""
TaskFlow backend package.

Personal todos scoped per owner, with advisory category suggestions from a
language model. The FastAPI application lives in ``taskflow.main``.
"""

__version__ = "0.1.0"
