"""
Background tasks package for the retail scraper.
"""

from .scraping import *
