"""
Pipeline Configuration Management
Handles environment variables, validation, and enrichment settings
"""

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from dotenv import load_dotenv

# Load from .env in the backend directory
env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path, override=False)


class EnrichmentStrategy(str, Enum):
    """How a vendor's cache-miss items are enriched"""
    API = "api"
    WEB_SCRAPE = "web_scrape"
    NONE = "none"


class DetectionTier(str, Enum):
    """Vendor detection tiers, strongest first"""
    DOMAIN = "domain"
    SIGNATURE = "signature"
    KEYWORD = "keyword"


# Confidence weight per detection tier
TIER_WEIGHTS = {
    DetectionTier.DOMAIN: 95,
    DetectionTier.SIGNATURE: 90,
    DetectionTier.KEYWORD: 75,
}


@dataclass
class PipelineConfig:
    """Pipeline configuration object"""
    enrichment_enabled: bool = True
    batch_size: int = 5
    batch_delay: float = 0.5  # Seconds between enrichment batches
    request_timeout: float = 12.0  # Per upstream request
    max_retries: int = 3
    retry_delay: float = 1.0  # Base delay for exponential backoff
    min_confidence: int = 50
    keyword_required_matches: int = 2
    safilo_api_base: str = "https://www.mysafilo.com"
    modern_optical_base: str = "https://www.modernoptical.com"
    marchon_api_base: str = "https://www.mymarchon.com"
    europa_base: str = "https://europaeye.com"
    lamy_api_base: str = "https://www.lamyamerica.com"
    ideal_optics_base: str = "https://www.i-dealoptics.com"

    def __post_init__(self):
        """Validate configuration after initialization"""
        self.validate()

    def validate(self):
        """Validate pipeline configuration"""
        if self.batch_size <= 0:
            raise ValueError("ENRICHMENT_BATCH_SIZE must be greater than 0")

        if self.batch_delay < 0:
            raise ValueError("ENRICHMENT_BATCH_DELAY must be non-negative")

        # Upstream calls must never block a batch indefinitely
        if self.request_timeout <= 0 or self.request_timeout > 60:
            raise ValueError("ENRICHMENT_TIMEOUT must be between 0 and 60 seconds")

        if self.max_retries < 1:
            raise ValueError("ENRICHMENT_MAX_RETRIES must be at least 1")

        if not 0 <= self.min_confidence <= 100:
            raise ValueError("ENRICHMENT_MIN_CONFIDENCE must be between 0 and 100")

        if self.keyword_required_matches < 2:
            raise ValueError("KEYWORD_REQUIRED_MATCHES must be at least 2")


def load_pipeline_config() -> PipelineConfig:
    """
    Load pipeline configuration from environment variables.

    Environment Variables:
    - ENRICHMENT_ENABLED: Call external enrichment sources (default: true)
    - ENRICHMENT_BATCH_SIZE: Items enriched concurrently (default: 5)
    - ENRICHMENT_BATCH_DELAY: Pause between batches in seconds (default: 0.5)
    - ENRICHMENT_TIMEOUT: Upstream request timeout in seconds (default: 12)
    - ENRICHMENT_MAX_RETRIES: Attempts per upstream request (default: 3)
    - ENRICHMENT_RETRY_DELAY: Base backoff delay in seconds (default: 1)
    - ENRICHMENT_MIN_CONFIDENCE: Minimum variant score to accept (default: 50)
    - KEYWORD_REQUIRED_MATCHES: Keyword hits needed for tier 3 detection (default: 2)
    - SAFILO_API_BASE: Safilo catalog API host
    - MODERN_OPTICAL_BASE: Modern Optical catalog site
    - MARCHON_API_BASE: Marchon SKU API host
    - EUROPA_BASE: Europa product page site
    - LAMY_API_BASE: L'Amy America catalog API host
    - IDEAL_OPTICS_BASE: I-Deal Optics catalog site

    Returns:
        PipelineConfig object
    """
    return PipelineConfig(
        enrichment_enabled=os.getenv("ENRICHMENT_ENABLED", "true").lower() == "true",
        batch_size=int(os.getenv("ENRICHMENT_BATCH_SIZE", "5")),
        batch_delay=float(os.getenv("ENRICHMENT_BATCH_DELAY", "0.5")),
        request_timeout=float(os.getenv("ENRICHMENT_TIMEOUT", "12")),
        max_retries=int(os.getenv("ENRICHMENT_MAX_RETRIES", "3")),
        retry_delay=float(os.getenv("ENRICHMENT_RETRY_DELAY", "1")),
        min_confidence=int(os.getenv("ENRICHMENT_MIN_CONFIDENCE", "50")),
        keyword_required_matches=int(os.getenv("KEYWORD_REQUIRED_MATCHES", "2")),
        safilo_api_base=os.getenv("SAFILO_API_BASE", "https://www.mysafilo.com").rstrip("/"),
        modern_optical_base=os.getenv(
            "MODERN_OPTICAL_BASE", "https://www.modernoptical.com"
        ).rstrip("/"),
        marchon_api_base=os.getenv(
            "MARCHON_API_BASE", "https://www.mymarchon.com"
        ).rstrip("/"),
        europa_base=os.getenv("EUROPA_BASE", "https://europaeye.com").rstrip("/"),
        lamy_api_base=os.getenv("LAMY_API_BASE", "https://www.lamyamerica.com").rstrip("/"),
        ideal_optics_base=os.getenv(
            "IDEAL_OPTICS_BASE", "https://www.i-dealoptics.com"
        ).rstrip("/"),
    )
