"""
Booking Kernel

Keeps a musician's invitations, bookings, contract-signing state and
availability calendar consistent as records move through their lifecycle:

- Token-bound monthly and single-event contracts with compare-and-set
  responses
- An availability ledger that never releases a date still held elsewhere
- Side effects run as retryable saga steps with dead letters
- Monthly payout invoices aggregated from resolved assignments
"""

__version__ = "0.1.0"
