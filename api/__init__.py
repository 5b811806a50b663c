"""
FastAPI RESTful API for the Reading Shelf backend.

This module provides a REST API for:
- Read and want-to-read bookshelves with tags
- Moving books from the wish list onto the read shelf
- External book catalog search
- Social login with JWT bearer tokens
"""
