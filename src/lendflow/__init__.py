"""Lendflow account activation service.

Multi-step KYC profile wizard, identity document storage, and the batch
profile read used by the activation UI.
"""

__version__ = "0.1.0"
