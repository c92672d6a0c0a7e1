"""Vendor order email pipeline.

This package contains:
- Email normalization (Zoho, Gmail, Outlook forwarding wrappers)
- Vendor detection (domain, signature and keyword tiers)
- Vendor-specific order parsers (HTML and PDF)
- Catalog reconciliation and external enrichment (Safilo API, Modern Optical web)
- The orchestrator that runs all stages for one email
"""
