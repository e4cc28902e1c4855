"""
setu-gateway: Voice-to-catalog gateway for farm produce offers.

Turns vernacular offer text into validated catalog items, stores them,
and simulates buyer-network responses to broadcast catalogs.
"""

__version__ = "0.1.0"
