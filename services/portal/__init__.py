"""
Certificate Portal Service
==========================

REST API through which verified institutions issue academic certificates
as ledger tokens backed by pinned metadata, and through which anyone can
verify them.
"""
