"""
Cache Services Package

Author: Exam Delivery Development Team
Version: 1.0.0
"""

from .listing_cache import ListingCache

__all__ = ["ListingCache"]
