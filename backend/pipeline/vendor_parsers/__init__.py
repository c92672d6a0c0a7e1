"""
Vendor Parsers - Per-Vendor Order Email Parsers

One module per vendor email format:
- modern_optical.py: Modern Optical rep-portal receipts (HTML table)
- kenmark.py: Kenmark Eyewear receipts (HTML table, UPC in image URLs)
- luxottica.py: My Luxottica cart confirmations (<pre> text)
- ideal_optics.py: I-Deal Optics web orders (HTML tables)
- safilo.py: Safilo order PDFs (positional text)
- etnia.py: Etnia Barcelona sales order PDFs (positional text)
- europa.py: Europa customer receipts (header-marked layout tables)
- marchon.py: Marchon order confirmations (style rows, codes in product links)
- clearvision.py: ClearVision CVOGo rep orders (SKU/Model/Description table)
- lamy_america.py: L'Amy America EyeRep receipts (HTML table, UPC in image URLs)

Usage:
    from pipeline.vendor_parsers import get_parser

    parser = get_parser('modern_optical')
    if parser:
        result = parser(ParserInput(html=html_body, text=text_body))
"""

from .base import PARSERS, VendorParser, get_parser, register_parser

# Import vendor modules to trigger @register_parser decorators
from . import modern_optical
from . import kenmark
from . import luxottica
from . import ideal_optics
from . import safilo
from . import etnia
from . import europa
from . import marchon
from . import clearvision
from . import lamy_america

__all__ = [
    'PARSERS',
    'VendorParser',
    'get_parser',
    'register_parser',
]
