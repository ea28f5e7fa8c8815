"""shipproof - chain-of-custody proof for shipments.

An organization records a video proving delivery or condition of a shipment,
the upload seals the shipment record, and time-limited share links let third
parties view the sealed proof without an account.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
