"""
Portal Routes
=============

API route handlers for the certificate portal.
"""

from services.portal.routes import admin, certificates, institutions


__all__ = ["admin", "certificates", "institutions"]
