import dns.exception
import dns.resolver
import pytest

from nonebot_plugin_slping.exceptions import NoAddressFound, ResolutionFailed
from nonebot_plugin_slping.resolver import DEFAULT_PORT, AddressResolver


@pytest.mark.asyncio
async def test_srv_record_overrides_host_and_port(fake_dns, records):
    dns_ = fake_dns(
        {
            ("_minecraft._tcp.example.com", "SRV"): records.srv("mc.example.net.", 25570),
            ("mc.example.net", "A"): records.a("203.0.113.7"),
            ("example.com", "A"): records.a("198.51.100.1"),
        }
    )

    assert await AddressResolver(dns_).resolve("example.com", 25566) == (
        "203.0.113.7",
        25570,
    )
    assert ("example.com", "A") not in dns_.queries


@pytest.mark.asyncio
async def test_no_srv_uses_default_port(fake_dns, records):
    dns_ = fake_dns({("play.example.com", "A"): records.a("198.51.100.1")})

    assert await AddressResolver(dns_).resolve("play.example.com") == (
        "198.51.100.1",
        DEFAULT_PORT,
    )
    assert dns_.queries[0] == ("_minecraft._tcp.play.example.com", "SRV")


@pytest.mark.asyncio
async def test_no_srv_uses_explicit_port(fake_dns, records):
    dns_ = fake_dns({("play.example.com", "A"): records.a("198.51.100.1")})

    assert await AddressResolver(dns_).resolve("play.example.com", 25566) == (
        "198.51.100.1",
        25566,
    )


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "srv_answer",
    [dns.exception.Timeout(), dns.resolver.NoAnswer(), dns.resolver.NoNameservers()],
)
async def test_srv_failure_falls_back(fake_dns, records, srv_answer):
    dns_ = fake_dns(
        {
            ("_minecraft._tcp.example.com", "SRV"): srv_answer,
            ("example.com", "A"): records.a("198.51.100.1"),
        }
    )

    assert await AddressResolver(dns_).resolve("example.com") == ("198.51.100.1", 25565)


@pytest.mark.asyncio
async def test_srv_root_target_falls_back(fake_dns, records):
    dns_ = fake_dns(
        {
            ("_minecraft._tcp.example.com", "SRV"): records.srv(".", 25570),
            ("example.com", "A"): records.a("198.51.100.1"),
        }
    )

    assert await AddressResolver(dns_).resolve("example.com") == ("198.51.100.1", 25565)


@pytest.mark.asyncio
async def test_srv_target_ip_literal(fake_dns, records):
    dns_ = fake_dns(
        {("_minecraft._tcp.example.com", "SRV"): records.srv("203.0.113.9.", 25570)}
    )

    assert await AddressResolver(dns_).resolve("example.com") == ("203.0.113.9", 25570)


@pytest.mark.asyncio
@pytest.mark.parametrize("address", ["127.0.0.1", "2001:db8::1"])
async def test_ip_literal_skips_dns(fake_dns, address):
    dns_ = fake_dns()

    assert await AddressResolver(dns_).resolve(address) == (address, 25565)
    assert dns_.queries == []


@pytest.mark.asyncio
async def test_ipv6_when_no_ipv4(fake_dns, records):
    dns_ = fake_dns(
        {
            ("v6.example.com", "A"): dns.resolver.NoAnswer(),
            ("v6.example.com", "AAAA"): records.a("2001:db8::2"),
        }
    )

    assert await AddressResolver(dns_).resolve("v6.example.com") == ("2001:db8::2", 25565)


@pytest.mark.asyncio
async def test_no_address_found(fake_dns):
    dns_ = fake_dns(
        {
            ("empty.example.com", "A"): dns.resolver.NoAnswer(),
            ("empty.example.com", "AAAA"): dns.resolver.NoAnswer(),
        }
    )

    with pytest.raises(NoAddressFound):
        await AddressResolver(dns_).resolve("empty.example.com")


@pytest.mark.asyncio
async def test_empty_answer_is_no_address(fake_dns):
    dns_ = fake_dns(
        {
            ("empty.example.com", "A"): [],
            ("empty.example.com", "AAAA"): [],
        }
    )

    with pytest.raises(NoAddressFound):
        await AddressResolver(dns_).resolve("empty.example.com")


@pytest.mark.asyncio
async def test_nxdomain(fake_dns):
    with pytest.raises(ResolutionFailed):
        await AddressResolver(fake_dns()).resolve("nope.example.com")


@pytest.mark.asyncio
async def test_timeout_on_address_lookup(fake_dns):
    dns_ = fake_dns({("slow.example.com", "A"): dns.exception.Timeout()})

    with pytest.raises(ResolutionFailed):
        await AddressResolver(dns_).resolve("slow.example.com")


@pytest.mark.asyncio
async def test_srv_target_unresolvable(fake_dns, records):
    dns_ = fake_dns(
        {
            ("_minecraft._tcp.example.com", "SRV"): records.srv("gone.example.net.", 25570),
            ("example.com", "A"): records.a("198.51.100.1"),
        }
    )

    with pytest.raises(ResolutionFailed):
        await AddressResolver(dns_).resolve("example.com")
