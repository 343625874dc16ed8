"""Crawl and import jobs."""
