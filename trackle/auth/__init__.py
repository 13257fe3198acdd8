"""
Authentication package for Trackle.

This package provides:
- User registration and login
- JWT identity tokens
- The request authentication dependency
"""
