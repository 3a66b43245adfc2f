"""
Barcode / QR recognition package.

Exposes a long-lived, stateless scanner:

    scanner = BarcodeScanner()
    scanner.scan(image_bytes) -> DecodedCode
    scanner.scan_all(image_bytes) -> List[DecodedCode]

which:
- Decodes QR, Data Matrix, PDF417, Code 128/39, EAN and UPC codes
- Retries with a fixed list of preprocessing variants
- Re-scans image halves and a centre crop to find further codes
- Falls back to a confidence-capped structural guess when nothing decodes
"""

from .errors import ImageDecodeError, NoCodeDetectedError
from .models import DecodedCode
from .service import BarcodeScanner
