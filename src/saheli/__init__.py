"""
Saheli - personal-safety SOS core

Orchestrates an emergency activation: acquires the device location, loads
the user's trusted contacts, texts every contact a map link and offers a
voice call to each one in turn.
"""

__version__ = "1.0.0"
__author__ = "Saheli Development Team"
