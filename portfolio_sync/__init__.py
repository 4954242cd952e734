"""
portfolio-sync: sincronización incremental Airtable -> Cloudinary -> datasets de portfolio.
"""

__version__ = "1.0.0"
