import pytest

from enclaver.policy.domain_filter import Domain, DomainFilter, Pattern

CASES = [
    (
        "example.com",
        ["example.com", "Example.COM"],
        ["example.net", ".example.com", "foo.com", "", "abc.example.com", "example."],
    ),
    (
        "*.com",
        ["example.com", "cnn.CoM"],
        ["example.net", "", "news.ycombinator.com", "beta.client1.saas.com", "example."],
    ),
    (
        "foo.*.com",
        ["foo.example.com"],
        ["example.net", "", "example.", "foo.bar.example.com", ".com"],
    ),
    (
        "**.amazonaws.com",
        ["kms.us-east-1.amazonaws.com", "s3.amazonaws.com"],
        ["amazonaws.com", "", "example.com"],
    ),
]


@pytest.mark.parametrize("pattern, positives, negatives", CASES)
def test_pattern_matching(pattern, positives, negatives):
    pat = Pattern(pattern)
    for domain in positives:
        assert pat.matches(Domain(domain)), domain
    for domain in negatives:
        assert not pat.matches(Domain(domain)), domain


def test_domain_filter():
    df = DomainFilter()
    df.add("example.com")
    df.add("*.net")
    df.add("foo.*.com")
    df.add("**.amazonaws.com")

    assert df.matches("example.com")
    assert not df.matches("cnn.com")
    assert df.matches("example.net")
    assert not df.matches("foo.bar.org")
    assert df.matches("kms.amazonaws.com")
    assert df.matches("kms.us-east-1.amazonaws.com")


def test_empty_filter_matches_nothing():
    assert not DomainFilter().matches("example.com")


def test_allow_all_matches_any_domain():
    df = DomainFilter.allow_all()
    assert df.matches("example.com")
    assert df.matches("a.b.c.d.example.org")


def test_pattern_is_case_insensitive():
    assert Pattern("EXAMPLE.Com").matches(Domain("example.COM"))