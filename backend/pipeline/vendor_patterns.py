"""
Default vendor detection patterns.

Seeded into the vendors table by database.vendors.seed_vendor_patterns() and
used directly by the detector when no database rows exist yet.

Adding a vendor:
1. Add an entry here (code must be unique)
2. Register a parser with @register_parser(code) if its emails should be parsed
3. Pick an enrichment_strategy: 'api', 'web_scrape' or 'none'

Signatures must not overlap across vendors: an equal-tier tie is treated as a
configuration error and routed to manual review.
"""

DEFAULT_VENDOR_PATTERNS = [
    {
        "code": "safilo",
        "name": "Safilo",
        "domains": ["safilo.com", "mysafilo.com"],
        "signatures": ["safilo usa, inc", "safilo usa inc", "mysafilo.com"],
        "subject_keywords": ["safilo"],
        "body_keywords": ["safilo", "order has been received"],
        "required_matches": 2,
        "parser_code": "safilo",
        "enrichment_strategy": "api",
        "requires_pdf": True,
    },
    {
        "code": "luxottica",
        "name": "Luxottica",
        "domains": ["luxottica.com"],
        "signatures": ["my.luxottica.com", "luxottica group"],
        "subject_keywords": ["luxottica", "cart number"],
        "body_keywords": ["luxottica", "customer code", "agent reference"],
        "required_matches": 2,
        "parser_code": "luxottica",
        "enrichment_strategy": "none",
        "requires_pdf": False,
    },
    {
        "code": "ideal_optics",
        "name": "Ideal Optics",
        "domains": ["i-dealoptics.com", "idealoptics.com"],
        "signatures": ["i-deal optics", "i-dealoptics.com"],
        "subject_keywords": ["ideal optics", "i-deal"],
        "body_keywords": ["i-deal optics", "ideal optics", "web order #"],
        "required_matches": 2,
        "parser_code": "ideal_optics",
        "enrichment_strategy": "web_scrape",
        "requires_pdf": False,
    },
    {
        "code": "lamy_america",
        "name": "L'Amy America",
        "domains": ["lamyamerica.com", "lamy-america.com"],
        "signatures": ["l'amy america", "lamyamerica.com"],
        "subject_keywords": ["lamy", "l'amy"],
        "body_keywords": ["lamy america", "l'amy america"],
        "required_matches": 2,
        "parser_code": "lamy_america",
        "enrichment_strategy": "api",
        "requires_pdf": False,
    },
    {
        "code": "modern_optical",
        "name": "Modern Optical",
        "domains": ["modernoptical.com"],
        "signatures": ["custsvc@modernoptical.com", "modern optical"],
        "subject_keywords": ["modern optical", "receipt for order number"],
        "body_keywords": ["custsvc@modernoptical.com", "modern optical", "placed by rep"],
        "required_matches": 2,
        "parser_code": "modern_optical",
        "enrichment_strategy": "web_scrape",
        "requires_pdf": False,
    },
    {
        "code": "etnia_barcelona",
        "name": "Etnia Barcelona",
        "domains": ["etniabarcelona.com", "etnia.es"],
        "signatures": [
            "etnia barcelona llc",
            "etnia eyewear culture",
            "extranet-etniabarcelona.com",
        ],
        "subject_keywords": ["etnia"],
        "body_keywords": ["etnia barcelona", "etnia eyewear", "trusting in etnia"],
        "required_matches": 2,
        "parser_code": "etnia_barcelona",
        "enrichment_strategy": "none",
        "requires_pdf": True,
    },
    {
        "code": "europa",
        "name": "Europa",
        "domains": ["europaeye.com"],
        "signatures": ["europaeye.com", "europa sales representative"],
        "subject_keywords": ["europa", "customer receipt"],
        "body_keywords": ["europaeye.com", "order placed by rep"],
        "required_matches": 2,
        "parser_code": "europa",
        "enrichment_strategy": "web_scrape",
        "requires_pdf": False,
    },
    {
        "code": "kenmark",
        "name": "Kenmark",
        "domains": ["kenmarkeyewear.com"],
        "signatures": [
            "kenmark eyewear",
            "kenmarkeyewear.com",
            "imageserver.jiecosystem.net/image/kenmark/",
        ],
        "subject_keywords": ["kenmark"],
        "body_keywords": ["kenmark", "placed by rep"],
        "required_matches": 2,
        "parser_code": "kenmark",
        "enrichment_strategy": "none",
        "requires_pdf": False,
    },
    {
        "code": "marchon",
        "name": "Marchon",
        "domains": ["marchon.com", "marchoneyewear.com", "altaireyewear.com"],
        "signatures": ["marchon order confirmation", "marchon eyewear", "1-800-645-1300"],
        "subject_keywords": ["marchon"],
        "body_keywords": ["marchon", "rep stock order", "sales rep:"],
        "required_matches": 2,
        "parser_code": "marchon",
        "enrichment_strategy": "api",
        "requires_pdf": False,
    },
    {
        "code": "clearvision",
        "name": "ClearVision",
        "domains": ["cvoptical.com"],
        "signatures": ["clearvision optical", "cvoptical.com"],
        "subject_keywords": ["new cvogo order"],
        "body_keywords": ["clearvision", "cvogo", "customer id:"],
        "required_matches": 2,
        "parser_code": "clearvision",
        "enrichment_strategy": "none",
        "requires_pdf": False,
    },
]

# Mailbox providers that never identify a vendor on their own
PERSONAL_EMAIL_DOMAINS = {
    "gmail.com",
    "googlemail.com",
    "yahoo.com",
    "hotmail.com",
    "outlook.com",
    "live.com",
    "icloud.com",
    "me.com",
    "aol.com",
    "zoho.com",
    "zohomail.com",
    "protonmail.com",
}
