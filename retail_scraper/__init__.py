"""
Retail Price Scraper

Scrapes Australian retailer product pages and prices them in Sri Lankan rupees.
"""

__version__ = "1.0.0"
__author__ = "Retail Scraper Team"
__description__ = "Retail product scraping with AUD to LKR price conversion"
