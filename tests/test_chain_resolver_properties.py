"""
Property-based tests for the chain resolver.

Each test builds a small provider network, resolves one track and checks
the returned record, the providers that were asked and the redirects that
were seeded into the cache.
"""

import asyncio
import io
import string
from typing import Optional

from hypothesis import given, settings
from hypothesis import strategies as st

from discovery_resolver.audit_logger import AuditLogger
from discovery_resolver.cache import CacheSnapshot, InMemoryCache
from discovery_resolver.chain_resolver import ChainResolver
from discovery_resolver.config import TTLConfig
from discovery_resolver.enums import LogLevel, Track
from discovery_resolver.keys import candidate_keys
from discovery_resolver.ttl_policy import TTLPolicy

from fakes import (
    FakeClock,
    ProviderNetwork,
    official_document,
    redirect_document,
    voluntary_document,
)

ROOT1 = "https://root1.example"
ROOT2 = "https://root2.example"
ROOTS = [ROOT1, ROOT2]
IDENTIFIER = "DK12345678"


def run_chain(
    network: ProviderNetwork,
    track: Track,
    providers: list[str],
    identifier: str = IDENTIFIER,
    cache: Optional[InMemoryCache] = None,
    snapshot: Optional[CacheSnapshot] = None,
    clock: Optional[FakeClock] = None,
    logger: Optional[AuditLogger] = None,
    **options,
):
    clock = clock or FakeClock()
    cache = cache if cache is not None else InMemoryCache(clock=clock)
    snapshot = snapshot or CacheSnapshot({key: None for key in candidate_keys(identifier)})

    async def run():
        async with network.client() as client:
            resolver = ChainResolver(
                client=client,
                cache=cache,
                ttl_policy=TTLPolicy(TTLConfig(minimum=60, maximum=3600, default=300), clock=clock),
                logger=logger,
                **options,
            )
            return await resolver.resolve(track, providers, identifier, snapshot)

    return asyncio.run(run()), cache, snapshot


def identifier_strategy() -> st.SearchStrategy[str]:
    return st.builds(
        lambda head, tail: head + tail,
        st.text(alphabet=string.ascii_uppercase, min_size=2, max_size=2),
        st.text(alphabet=string.ascii_uppercase + string.digits, min_size=3, max_size=14),
    )


class TestTerminalRecordProperty:
    """A record of the track's terminal type ends the chain."""

    @given(identifier=identifier_strategy(), track=st.sampled_from(list(Track)))
    @settings(max_examples=50)
    def test_terminal_record_is_returned_verbatim(self, identifier: str, track: Track) -> None:
        network = ProviderNetwork()
        document = (
            official_document(identifier) if track is Track.OFFICIAL
            else voluntary_document(identifier)
        )
        network.serve(ROOT1, identifier, document)

        record, cache, _ = run_chain(network, track, ROOTS, identifier=identifier)

        assert record.to_dict() == document
        assert not record.synthetic
        assert network.hits == {ROOT1: 1}
        assert len(cache) == 0

    def test_provider_error_document_is_terminal(self) -> None:
        network = ProviderNetwork()
        network.serve(ROOT1, IDENTIFIER, {"type": "official", "error": "not_found"}, status=404)

        record, _, _ = run_chain(network, Track.OFFICIAL, ROOTS)

        assert record.error == "not_found"
        assert not record.synthetic


class TestProviderFallbackProperty:
    """The second provider is asked only when the first fails."""

    def test_fallback_to_second_provider(self) -> None:
        network = ProviderNetwork()
        network.take_down(ROOT1)
        network.serve(ROOT2, IDENTIFIER, official_document(IDENTIFIER))

        record, _, _ = run_chain(network, Track.OFFICIAL, ROOTS)

        assert record.type == "official"
        assert record.error is None
        assert network.hits == {ROOT1: 1, ROOT2: 1}

    def test_protocol_failure_also_falls_back(self) -> None:
        network = ProviderNetwork()
        network.serve(ROOT1, IDENTIFIER, {"type": "official", "id": "SE1"})
        network.serve(ROOT2, IDENTIFIER, official_document(IDENTIFIER))

        record, _, _ = run_chain(network, Track.OFFICIAL, ROOTS)

        assert record.id == IDENTIFIER

    def test_undecodable_body_falls_back(self) -> None:
        network = ProviderNetwork()
        network.serve(ROOT1, IDENTIFIER, b"[" * 200_000 + b"]" * 200_000)
        network.serve(ROOT2, IDENTIFIER, official_document(IDENTIFIER))

        record, _, _ = run_chain(network, Track.OFFICIAL, ROOTS)

        assert record.id == IDENTIFIER
        assert not record.synthetic
        assert network.hits == {ROOT1: 1, ROOT2: 1}

    @given(track=st.sampled_from(list(Track)))
    @settings(max_examples=10)
    def test_both_providers_down(self, track: Track) -> None:
        network = ProviderNetwork()
        network.take_down(ROOT1)
        network.take_down(ROOT2)

        record, _, _ = run_chain(network, track, ROOTS)

        assert record.synthetic
        assert record.type == track.value
        assert record.error == "upstream_down"
        assert record.document["error_detailed"].startswith(
            f"{track.value.capitalize()} providers down: "
        )

    def test_no_providers(self) -> None:
        record, _, _ = run_chain(ProviderNetwork(), Track.VOLUNTARY, [])

        assert record.to_dict() == {
            "type": "voluntary",
            "error": "upstream_down",
            "error_detailed": "Voluntary providers down: no providers",
        }

    def test_only_two_providers_are_attempted(self) -> None:
        third = "https://third.example"
        network = ProviderNetwork()
        network.take_down(ROOT1)
        network.take_down(ROOT2)
        network.serve(third, IDENTIFIER, official_document(IDENTIFIER))

        record, _, _ = run_chain(network, Track.OFFICIAL, ROOTS + [third])

        assert record.error == "upstream_down"
        assert network.hits[third] == 0

    def test_fallback_is_logged(self) -> None:
        network = ProviderNetwork()
        network.take_down(ROOT1)
        network.serve(ROOT2, IDENTIFIER, official_document(IDENTIFIER))
        logger = AuditLogger(output_format="json", output_stream=io.StringIO())

        run_chain(network, Track.OFFICIAL, ROOTS, logger=logger)

        warnings = [e for e in logger.entries if e.level == LogLevel.WARN]
        assert len(warnings) == 1
        assert warnings[0].data["provider"] == ROOT2

    def test_parallel_fallback_uses_the_surviving_provider(self) -> None:
        network = ProviderNetwork()
        network.take_down(ROOT1)
        network.serve(ROOT2, IDENTIFIER, official_document(IDENTIFIER))

        record, _, _ = run_chain(network, Track.OFFICIAL, ROOTS, parallel_fallback=True)

        assert record.id == IDENTIFIER
        assert network.hits[ROOT2] == 1

    def test_parallel_fallback_both_down(self) -> None:
        network = ProviderNetwork()
        network.take_down(ROOT1)
        network.take_down(ROOT2)

        record, _, _ = run_chain(network, Track.OFFICIAL, ROOTS, parallel_fallback=True)

        assert record.error == "upstream_down"
        assert record.synthetic

    @given(slow=st.sampled_from(ROOTS))
    @settings(max_examples=4, deadline=None)
    def test_parallel_fallback_first_valid_answer_wins(self, slow: str) -> None:
        fast = ROOT2 if slow == ROOT1 else ROOT1
        network = ProviderNetwork()
        network.serve(slow, IDENTIFIER, official_document(IDENTIFIER, name="Slow answer"))
        network.serve(fast, IDENTIFIER, official_document(IDENTIFIER, name="Fast answer"))
        network.slow_down(slow, 1.0)

        record, _, _ = run_chain(network, Track.OFFICIAL, ROOTS, parallel_fallback=True)

        assert record.document["name"] == "Fast answer"
        assert network.hits == {ROOT1: 1, ROOT2: 1}
        assert network.cancelled == {slow: 1}

    def test_parallel_fallback_fast_failure_does_not_win(self) -> None:
        network = ProviderNetwork()
        network.serve(ROOT1, IDENTIFIER, {"type": "official", "id": "SE1"})
        network.serve(ROOT2, IDENTIFIER, official_document(IDENTIFIER, name="Slow answer"))
        network.slow_down(ROOT2, 0.05)

        record, _, _ = run_chain(network, Track.OFFICIAL, ROOTS, parallel_fallback=True)

        assert record.document["name"] == "Slow answer"
        assert not record.synthetic
        assert not network.cancelled


class TestStructuralFailuresProperty:
    """Unexpected record types and empty redirects abort the chain."""

    def test_unsupported_type(self) -> None:
        network = ProviderNetwork()
        network.serve(ROOT1, IDENTIFIER, voluntary_document(IDENTIFIER))

        record, _, _ = run_chain(network, Track.OFFICIAL, ROOTS)

        assert record.to_dict() == {
            "type": "official",
            "error": "upstream_down",
            "error_detailed": "Got unsupported type from official providers",
        }
        # A structurally valid answer does not trigger the fallback.
        assert network.hits[ROOT2] == 0

    def test_redirect_without_providers(self) -> None:
        network = ProviderNetwork()
        network.serve(ROOT1, IDENTIFIER, redirect_document("DK", []))

        record, _, _ = run_chain(network, Track.OFFICIAL, ROOTS)

        assert record.error == "upstream_down"
        assert record.document["error_detailed"] == "No providers in redirect from official provider"

    def test_distinct_protocol_errors(self) -> None:
        network = ProviderNetwork()
        network.serve(ROOT1, IDENTIFIER, redirect_document("DK", []))

        record, _, _ = run_chain(network, Track.OFFICIAL, ROOTS, distinct_protocol_errors=True)

        assert record.error == "protocol_error"

    def test_hop_exhaustion(self) -> None:
        network = ProviderNetwork()
        chain = [ROOT1] + [f"https://hop{n}.example" for n in range(1, 6)]
        for current, following in zip(chain, chain[1:]):
            network.serve(current, IDENTIFIER, redirect_document("DK", [following]))
        network.serve(chain[-1], IDENTIFIER, official_document(IDENTIFIER))

        record, _, _ = run_chain(network, Track.OFFICIAL, [ROOT1])

        assert record.error == "upstream_down"
        assert record.document["error_detailed"] == "Too many redirects from official providers"
        assert network.total_hits() == 5
        assert network.hits[chain[-1]] == 0

    def test_redirect_loop_terminates(self) -> None:
        network = ProviderNetwork()
        network.serve(ROOT1, IDENTIFIER, redirect_document("DK", [ROOT1]))

        record, _, _ = run_chain(network, Track.VOLUNTARY, [ROOT1])

        assert record.error == "upstream_down"
        assert network.hits[ROOT1] == 5


class TestRedirectSeedingProperty:
    """Official redirects for strict prefixes are cached as they are seen."""

    @given(identifier=identifier_strategy(), data=st.data())
    @settings(max_examples=50)
    def test_redirect_is_seeded_with_clamped_ttl(self, identifier: str, data) -> None:
        length = data.draw(st.integers(min_value=2, max_value=len(identifier) - 1))
        declared_ttl = data.draw(st.integers(min_value=-10, max_value=10_000))
        prefix = identifier[:length]
        network = ProviderNetwork()
        network.serve(ROOT1, identifier, redirect_document(prefix.lower(), ["https://a.example"], ttl=declared_ttl))
        network.serve("https://a.example", identifier, official_document(identifier))
        clock = FakeClock()

        record, cache, snapshot = run_chain(
            network, Track.OFFICIAL, ROOTS, identifier=identifier, clock=clock
        )

        assert record.type == "official"
        entry = cache.entry(f"{prefix}_redirect")
        assert entry is not None
        assert entry.value["providers"] == ["https://a.example"]
        expected_ttl = 300 if declared_ttl < 1 else max(min(declared_ttl, 3600), 60)
        assert entry.expires_at == clock() + expected_ttl
        assert snapshot.contains(f"{prefix}_redirect")

    def test_full_identifier_redirect_is_not_seeded(self) -> None:
        network = ProviderNetwork()
        network.serve(ROOT1, IDENTIFIER, redirect_document(IDENTIFIER, ["https://a.example"]))
        network.serve("https://a.example", IDENTIFIER, official_document(IDENTIFIER))

        record, cache, _ = run_chain(network, Track.OFFICIAL, ROOTS)

        assert record.type == "official"
        assert len(cache) == 0

    def test_voluntary_redirects_are_not_seeded(self) -> None:
        network = ProviderNetwork()
        network.serve(ROOT1, IDENTIFIER, redirect_document("DK12", ["https://a.example"]))
        network.serve("https://a.example", IDENTIFIER, voluntary_document(IDENTIFIER))

        record, cache, _ = run_chain(network, Track.VOLUNTARY, [ROOT1])

        assert record.type == "voluntary"
        assert len(cache) == 0

    def test_longer_prefix_seen_first_is_kept(self) -> None:
        network = ProviderNetwork()
        network.serve(ROOT1, IDENTIFIER, redirect_document("DK1234", ["https://a.example"]))
        network.serve("https://a.example", IDENTIFIER, redirect_document("DK12", ["https://b.example"]))
        network.serve("https://b.example", IDENTIFIER, official_document(IDENTIFIER))

        _, cache, _ = run_chain(network, Track.OFFICIAL, ROOTS)

        assert cache.entry("DK1234_redirect").value["providers"] == ["https://a.example"]
        assert cache.entry("DK12_redirect").value["providers"] == ["https://b.example"]

    def test_key_present_in_snapshot_is_not_overwritten(self) -> None:
        network = ProviderNetwork()
        network.serve(ROOT1, IDENTIFIER, redirect_document("DK", ["https://a.example"]))
        network.serve("https://a.example", IDENTIFIER, official_document(IDENTIFIER))
        snapshot = CacheSnapshot({"DK_redirect": {"type": "redirect", "providers": ["https://old.example"]}})

        _, cache, _ = run_chain(network, Track.OFFICIAL, ROOTS, snapshot=snapshot)

        assert cache.entry("DK_redirect") is None
