"""
HTML to PDF Export Service package.

This module provides a FastAPI application that accepts a posted HTML
document and streams back the PDF rendered by wkhtmltopdf.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
