"""
Pipeliner CRM to Asana webhook relay.
"""

__version__ = "0.1.0"
