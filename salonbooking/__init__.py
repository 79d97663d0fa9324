"""
Appointment availability and booking engine for a salon.
"""

__version__ = "0.1.0"
