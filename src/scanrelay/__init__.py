"""Scanner relay: pairs handheld barcode scanners with POS terminals.

A scanner and a POS connect over WebSocket with the same session id; the
relay forwards scanned barcodes to the POS, commands back to the scanner,
and keeps both sides informed about each other's presence.
"""

__version__ = "1.0.0"
