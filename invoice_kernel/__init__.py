"""
Invoice Kernel

Computation and integrity core of the NanoHash invoice builder:
- Validated line items
- Decimal totals with tax and currency conversion
- Timestamped SHA-256 fingerprints of invoice snapshots
- Bounded, persisted invoice history
"""

__version__ = "0.1.0"
