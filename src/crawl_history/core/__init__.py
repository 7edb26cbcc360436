"""
Core configuration and error types for crawl history.
"""
