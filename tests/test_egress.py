from enclaver.manifest import Egress
from enclaver.policy.egress import EgressPolicy, load_filters


def _policy():
    return EgressPolicy(
        Egress(
            allow=["example.com", "10.0.0.0/8", "**.amazonaws.com", "fc00::/7"],
            deny=["bad.amazonaws.com", "10.1.0.0/16"],
        )
    )


def test_allowed_domains():
    policy = _policy()
    assert policy.is_host_allowed("example.com")
    assert policy.is_host_allowed("kms.us-east-1.amazonaws.com")
    assert not policy.is_host_allowed("example.net")


def test_denied_domain_overrides_allow():
    assert not _policy().is_host_allowed("bad.amazonaws.com")


def test_ip_allow_and_deny():
    policy = _policy()
    assert policy.is_host_allowed("10.2.3.4")
    assert not policy.is_host_allowed("10.1.3.4")
    assert not policy.is_host_allowed("192.168.1.1")


def test_bracketed_ipv6():
    policy = _policy()
    assert policy.is_host_allowed("[fc00::1234]")
    assert policy.is_host_allowed("fc00::1234")
    assert not policy.is_host_allowed("[::1]")


def test_empty_spec_denies_everything():
    policy = EgressPolicy(Egress())
    assert not policy.is_host_allowed("example.com")
    assert not policy.is_host_allowed("1.2.3.4")


def test_allow_all():
    policy = EgressPolicy.allow_all()
    assert policy.is_host_allowed("example.com")
    assert policy.is_host_allowed("1.2.3.4")
    assert policy.is_host_allowed("[::1]")


def test_load_filters_splits_patterns():
    domains, ips = load_filters(["example.com", "10.0.0.0/8"])
    assert domains.matches("example.com")
    assert not domains.matches("10.0.0.1")
    assert ips.matches("10.0.0.1")


def test_load_filters_none():
    domains, ips = load_filters(None)
    assert not domains.matches("example.com")
    assert not ips.matches("10.0.0.1")