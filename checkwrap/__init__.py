"""
checkwrap - Report health-check output only when it changes.
"""

__version__ = "0.1.0"
