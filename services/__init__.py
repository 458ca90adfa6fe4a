"""
EduChain Services
=================

HTTP services of the academic certificate platform.

Services:
- portal: Institution-facing issuance, verification and revocation API
"""

__all__ = [
    "portal",
]
