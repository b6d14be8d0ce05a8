"""
Test suite for tamper-evident bag storage.

Focus areas:
- Canonical encoding and digest determinism
- Chain manager invariants (idempotence, ordering, failure atomicity)
- Tamper detection by independent verification
- Bag adapter and CLI
"""
