"""
Top‑level package for the Domain Directory API.

This file makes ``domain_directory_api`` a Python package so that
modules within ``app`` can be imported using fully qualified names
like ``domain_directory_api.app.main``.

The package provides no public exports; all functionality lives in
submodules under ``app``.
"""

__all__ = []
