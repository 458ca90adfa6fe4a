"""
EduChain Test Suite
===================

Test organization:
- tests/unit/             - Unit tests (clients, keystore, validation, auth)
- tests/services/portal/  - API tests against in-memory MongoDB and mock
                            ledger / pinning clients

Run tests:
    pytest                          # All tests
    pytest tests/unit               # Unit tests only
    pytest --cov=educhain           # With coverage
"""
