"""
Competitive-intelligence scraping pipeline: job scheduler plus scraping engine.
"""

__version__ = "1.0.0"
