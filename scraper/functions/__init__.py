"""
Functions module for scraper package.
Contains the title parsers, the filter engine and the shared feed helpers.
"""
