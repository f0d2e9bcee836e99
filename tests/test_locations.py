from review_sync.models import LocationScope, Provider
from review_sync.sync.locations import LocationResolver


def test_explicit_location(store):
    store.add_location(Provider.GOOGLE_BUSINESS, "accounts/1/locations/1")
    wanted = store.add_location(Provider.GOOGLE_BUSINESS, "accounts/1/locations/2")

    resolved = LocationResolver(store).resolve(
        "tenant-1", Provider.GOOGLE_BUSINESS, " accounts/1/locations/2 ", LocationScope.MULTI
    )

    assert resolved == [wanted]


def test_unknown_explicit_location_is_empty(store):
    store.add_location(Provider.GOOGLE_PLACES, "ChIJ1")

    assert LocationResolver(store).resolve("tenant-1", Provider.GOOGLE_PLACES, "ChIJ-missing") == []


def test_single_scope_picks_most_recent(store):
    store.add_location(Provider.GOOGLE_PLACES, "ChIJ-old")
    newest = store.add_location(Provider.GOOGLE_PLACES, "ChIJ-new")

    assert LocationResolver(store).resolve("tenant-1", Provider.GOOGLE_PLACES) == [newest]


def test_multi_scope_returns_all_tenant_locations(store):
    store.add_location(Provider.GOOGLE_BUSINESS, "accounts/1/locations/1")
    store.add_location(Provider.GOOGLE_BUSINESS, "accounts/1/locations/2")
    store.add_location(Provider.GOOGLE_BUSINESS, "accounts/9/locations/9", tenant_id="tenant-2")

    resolved = LocationResolver(store).resolve("tenant-1", Provider.GOOGLE_BUSINESS, scope=LocationScope.MULTI)

    assert [loc.provider_location_id for loc in resolved] == ["accounts/1/locations/1", "accounts/1/locations/2"]
