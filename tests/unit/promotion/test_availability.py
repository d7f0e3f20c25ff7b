"""Unit tests for Freight availability rules and the listing query."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from freightline.promotion.availability import (
    AvailabilityResolver,
    is_admissible,
    is_available,
)
from freightline.promotion.errors import NotFoundError, StoreError


class TestIsAvailable:
    """Tests for the point decision used before fan-out."""

    def test_direct_request(self, make_stage, make_freight) -> None:
        """Test Freight from a directly requested origin is available."""
        assert is_available(make_stage("dev", direct=True), make_freight())

    def test_verified_in_stage(self, make_stage, make_freight) -> None:
        """Test Freight verified in the Stage itself is available."""
        stage = make_stage("test", stages=["dev"])
        assert is_available(stage, make_freight(verified_in={"test": None}))

    def test_approval_is_not_enough(self, make_stage, make_freight) -> None:
        """Test approval for the Stage does not make Freight available."""
        stage = make_stage("prod", stages=["uat"])
        assert not is_available(stage, make_freight(approved_for=["prod"]))

    def test_upstream_verification_is_not_enough(self, make_stage, make_freight) -> None:
        """Test verification upstream does not count for the point decision."""
        stage = make_stage("uat", stages=["test"])
        assert not is_available(stage, make_freight(verified_in={"test": None}))

    def test_direct_for_other_origin(self, make_stage, make_freight) -> None:
        """Test direct sourcing of a different origin does not apply."""
        stage = make_stage("dev", direct=True, origin_name="api")
        assert not is_available(stage, make_freight())

    @pytest.mark.parametrize("missing", ["stage", "freight"])
    def test_missing_inputs(self, make_stage, make_freight, missing: str) -> None:
        """Test a missing Stage or Freight is never available."""
        stage = None if missing == "stage" else make_stage("dev", direct=True)
        freight = None if missing == "freight" else make_freight()
        assert not is_available(stage, freight)

    def test_cross_project(self, make_stage, make_freight) -> None:
        """Test Freight never crosses Projects."""
        stage = make_stage("dev", direct=True)
        assert not is_available(stage, make_freight(namespace="other"))


class TestIsAdmissible:
    """Tests for the listing rule applied to one Freight."""

    def test_any_single_upstream(self, make_stage, make_freight, now) -> None:
        """Test ANY admits Freight verified in one listed upstream."""
        stage = make_stage("prod", stages=["a", "b"])
        assert is_admissible(stage, make_freight(verified_in={"a": now}), now)

    def test_all_requires_every_upstream(self, make_stage, make_freight, now) -> None:
        """Test ALL rejects Freight verified in only some upstreams."""
        stage = make_stage("prod", stages=["a", "b"], strategy="All")
        assert not is_admissible(stage, make_freight(verified_in={"a": now}), now)
        assert is_admissible(stage, make_freight(verified_in={"a": now, "b": now}), now)

    def test_verification_elsewhere_ignored(self, make_stage, make_freight, now) -> None:
        """Test verification in an unlisted Stage does not count."""
        stage = make_stage("prod", stages=["a", "b"], strategy="All")
        freight = make_freight(verified_in={"a": now, "b": now, "c": now})
        assert is_admissible(stage, freight, now)
        assert not is_admissible(
            make_stage("prod", stages=["a"]), make_freight(verified_in={"c": now}), now
        )

    def test_empty_upstream_list_admits_nothing(self, make_stage, make_freight, now) -> None:
        """Test a request without upstreams or direct admits only approvals."""
        from freightline.schemas import FreightOrigin, FreightRequest

        stage = make_stage("prod", requests=[FreightRequest(origin=FreightOrigin(name="web"))])
        assert not is_admissible(stage, make_freight(verified_in={"a": now}), now)
        assert is_admissible(stage, make_freight(approved_for=["prod"]), now)

    def test_approval_admits(self, make_stage, make_freight, now) -> None:
        """Test approval for this Stage admits regardless of upstreams."""
        stage = make_stage("prod", stages=["uat"], soak=timedelta(hours=4))
        assert is_admissible(stage, make_freight(approved_for=["prod"]), now)

    def test_approval_for_other_stage(self, make_stage, make_freight, now) -> None:
        """Test approval for a different Stage does not admit."""
        stage = make_stage("prod", stages=["uat"])
        assert not is_admissible(stage, make_freight(approved_for=["uat"]), now)

    def test_unrequested_origin(self, make_stage, make_freight, now) -> None:
        """Test Freight of an origin the Stage does not request is rejected."""
        stage = make_stage("prod", direct=True, origin_name="api")
        assert not is_admissible(stage, make_freight(), now)

    def test_soak_monotonic(self, make_stage, make_freight, now) -> None:
        """Test Freight admitted at t stays admitted later, and not before soak."""
        stage = make_stage("prod", stages=["uat"], soak=timedelta(hours=1))
        freight = make_freight(verified_in={"uat": now})
        assert not is_admissible(stage, freight, now + timedelta(minutes=59))
        for later in (timedelta(hours=1), timedelta(hours=2), timedelta(days=30)):
            assert is_admissible(stage, freight, now + later)

    def test_soak_without_timestamp(self, make_stage, make_freight, now) -> None:
        """Test a soak requirement cannot be met without a verification time."""
        stage = make_stage("prod", stages=["uat"], soak=timedelta(minutes=1))
        assert not is_admissible(stage, make_freight(verified_in={"uat": None}), now)


class TestAvailabilityResolver:
    """Tests for list_available_to_stage."""

    def test_direct_lists_all_from_origin(self, store, make_stage, make_freight, clock) -> None:
        """Test direct sourcing lists every Freight of the origin, sorted."""
        store.add(make_freight("ffff"), make_freight("aaaa"), make_freight("zzzz", origin_name="api"))
        resolver = AvailabilityResolver(store, store, clock)
        names = [f.name for f in resolver.list_available_to_stage(make_stage("dev", direct=True))]
        assert names == ["aaaa", "ffff"]

    def test_any_vs_all(self, store, make_stage, make_freight, now, clock) -> None:
        """Test ANY lists partially verified Freight and ALL does not."""
        store.add(
            make_freight("one", verified_in={"a": now}),
            make_freight("both", verified_in={"a": now, "b": now}),
            make_freight("none"),
        )
        resolver = AvailabilityResolver(store, store, clock)

        any_stage = make_stage("prod", stages=["a", "b"])
        all_stage = make_stage("prod", stages=["a", "b"], strategy="All")
        assert [f.name for f in resolver.list_available_to_stage(any_stage)] == ["both", "one"]
        assert [f.name for f in resolver.list_available_to_stage(all_stage)] == ["both"]

    def test_deduplicates_across_requests(self, store, make_stage, make_freight, now, clock) -> None:
        """Test Freight matching two requests is listed once."""
        from freightline.schemas import FreightOrigin, FreightRequest, FreightSources

        origin = FreightOrigin(name="web")
        stage = make_stage(
            "prod",
            requests=[
                FreightRequest(origin=origin, sources=FreightSources(stages=["a"])),
                FreightRequest(origin=origin, sources=FreightSources(direct=True)),
            ],
        )
        store.add(make_freight("f1", verified_in={"a": now}))
        resolver = AvailabilityResolver(store, store, clock)
        assert [f.name for f in resolver.list_available_to_stage(stage)] == ["f1"]

    def test_missing_warehouse(self, store, make_stage, clock) -> None:
        """Test a request for an unknown Warehouse raises NotFoundError."""
        resolver = AvailabilityResolver(store, store, clock)
        with pytest.raises(NotFoundError, match='Warehouse "api"'):
            resolver.list_available_to_stage(make_stage("dev", direct=True, origin_name="api"))

    def test_store_failure_is_wrapped(self, make_stage, clock) -> None:
        """Test a failed Freight listing surfaces as StoreError with context."""
        warehouses = MagicMock()
        freight = MagicMock()
        freight.list_freight.side_effect = StoreError("list freights", "connection refused")
        resolver = AvailabilityResolver(warehouses, freight, clock)

        with pytest.raises(StoreError, match="list freight from Warehouse/web"):
            resolver.list_available_to_stage(make_stage("dev", direct=True))

    def test_agrees_with_is_admissible(self, store, make_stage, make_freight, now, clock) -> None:
        """Test every listed Freight is admissible and every admissible one is listed."""
        candidates = [
            make_freight("a1", verified_in={"uat": now - timedelta(hours=2)}),
            make_freight("a2", verified_in={"uat": now}),
            make_freight("a3", approved_for=["prod"]),
            make_freight("a4"),
        ]
        store.add(*candidates)
        stage = make_stage("prod", stages=["uat"], soak=timedelta(hours=1))
        listed = {f.name for f in AvailabilityResolver(store, store, clock).list_available_to_stage(stage)}
        expected = {f.name for f in candidates if is_admissible(stage, f, now)}
        assert listed == expected == {"a1", "a3"}
