"""Tests for tiered vendor detection."""

import pytest

from pipeline.detector import (
    AMBIGUOUS_VENDOR,
    UNKNOWN_VENDOR,
    VendorDetector,
    VendorIdentity,
    extract_domain,
    extract_forwarded_domains,
    keyword_hits,
)


@pytest.fixture
def detector():
    return VendorDetector()


def test_extract_domain_handles_display_names():
    assert extract_domain("Customer Service <custsvc@ModernOptical.com>") == "modernoptical.com"
    assert extract_domain("not an address") == ""


def test_domain_match(detector):
    result = detector.detect("custsvc@modernoptical.com", "Receipt", "<p>anything</p>")

    assert result.vendor_code == "modern_optical"
    assert result.tier == "domain"
    assert result.confidence == 95
    assert not result.needs_review


def test_subdomain_matches_vendor_domain(detector):
    result = detector.detect("orders@mail.luxottica.com", "", "")

    assert result.vendor_code == "luxottica"


def test_domain_wins_over_another_vendors_signature(detector):
    # Kenmark domain with Modern Optical text in the body
    result = detector.detect(
        "orders@kenmarkeyewear.com",
        "Receipt for Order Number 1",
        "Thank you for ordering with Modern Optical",
    )

    assert result.vendor_code == "kenmark"
    assert result.tier == "domain"


def test_forwarded_sender_domain(detector):
    body = (
        "---------- Forwarded message ---------\n"
        "From: I-Deal Optics &lt;orders@i-dealoptics.com&gt;\n"
    )

    result = detector.detect("owner@gmail.com", "Fwd: Web Order", body)

    assert result.vendor_code == "ideal_optics"
    assert result.tier == "domain"


def test_forwarding_mailbox_domain_ignored():
    assert extract_forwarded_domains("From: someone@gmail.com") == []


def test_signature_match(detector):
    result = detector.detect(
        "owner@gmail.com",
        "Fwd: order",
        "Please visit my.luxottica.com to review your cart",
    )

    assert result.vendor_code == "luxottica"
    assert result.tier == "signature"
    assert result.confidence == 90


def test_keyword_match_requires_two_hits(detector):
    result = detector.detect("owner@gmail.com", "Etnia order", "trusting in etnia and more")

    assert result.vendor_code == "etnia_barcelona"
    assert result.tier == "keyword"
    assert result.confidence == 75


def test_single_keyword_never_classifies(detector):
    result = detector.detect("owner@gmail.com", "Marchon", "hello")

    assert result.vendor_code == UNKNOWN_VENDOR
    assert result.needs_review
    assert result.confidence == 0


@pytest.mark.parametrize(
    "subject", ["mysafilo", "Kenmark Eyewear", "Marchon Order Confirmation"]
)
def test_one_keyword_mention_never_classifies(detector, subject):
    result = detector.detect("someone@unknown-shop.com", subject, "hello, see order below")

    assert result.vendor_code == UNKNOWN_VENDOR
    assert result.needs_review


def test_keyword_inside_longer_keyword_is_one_hit():
    assert keyword_hits(["kenmark", "kenmark eyewear"], "kenmark eyewear") == {
        "kenmark eyewear"
    }
    assert keyword_hits(["kenmark", "kenmark eyewear"], "kenmark eyewear by kenmark") == {
        "kenmark",
        "kenmark eyewear",
    }


def test_nested_keywords_from_stored_patterns_need_a_second_mention():
    identities = [
        VendorIdentity(
            code="kenmark",
            name="Kenmark",
            subject_keywords=["kenmark eyewear", "kenmark"],
            body_keywords=["placed by rep"],
        )
    ]
    detector = VendorDetector(identities)

    assert detector.detect("x@example.com", "Kenmark Eyewear", "").needs_review
    assert (
        detector.detect("x@example.com", "Kenmark Eyewear", "placed by rep").vendor_code
        == "kenmark"
    )


def test_equal_tier_tie_is_ambiguous():
    identities = [
        VendorIdentity(code="a", name="A", signatures=["shared footer"]),
        VendorIdentity(code="b", name="B", signatures=["shared footer"]),
    ]

    result = VendorDetector(identities).detect("x@example.com", "", "... shared footer ...")

    assert result.vendor_code == AMBIGUOUS_VENDOR
    assert result.needs_review
    assert result.candidates == ["a", "b"]


def test_no_match_routes_to_manual_review(detector):
    result = detector.detect("someone@example.org", "Hello", "Nothing vendor related")

    assert result.vendor_code == UNKNOWN_VENDOR
    assert result.needs_review
    assert result.to_dict()["needsManualReview"] is True
