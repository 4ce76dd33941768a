"""
contact_mirror - Mirror a unified contact set across address-book accounts.

Fetches raw contact records from several accounts, detects the records that
describe the same person across accounts, merges them additively into golden
records and writes the resulting set back to every selected account.
"""

__version__ = "0.3.0"

__all__ = ["__version__"]
