"""
google-search: Google search automation through a Playwright browser.

Keeps a stable browser identity and session between runs, escalates to a
visible browser when a human-verification page appears, and extracts
results with ordered selector fallbacks.
"""

__version__ = "1.0.0"
