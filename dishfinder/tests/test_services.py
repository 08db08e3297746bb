"""
Unit tests for the service layer: availability read model, rate limiting,
invites, delivery-app lookup and input helpers.
"""
from unittest.mock import AsyncMock

import pytest

from dishfinder.models.dish import ChannelType
from dishfinder.models.user import InviteCode
from dishfinder.services.availability import AvailabilityLabel, classify, classify_many, derive_label
from dishfinder.services.delivery_apps import extract_country_from_city, get_delivery_apps_for_city
from dishfinder.services.invites import (
    CODE_ALPHABET, CODE_LENGTH, InviteError, check_invite_code, consume_invite_code,
    generate_code, mint_invite_codes,
)
from dishfinder.services.rate_limiter import InMemoryRateLimiter, RedisRateLimiter, format_reset_time
from dishfinder.services.storage import BlobStorageClient
from dishfinder.utils.helpers import distance_to, haversine_km
from dishfinder.utils.validators import validate_delivery_apps, validate_phone


class FakeClock:
    def __init__(self, now=1_000.0):
        self.now = now

    def __call__(self):
        return self.now


# ===================== AVAILABILITY =====================


def test_derive_label():
    assert derive_label(True, True) == AvailabilityLabel.BOTH
    assert derive_label(True, False) == AvailabilityLabel.IN_STORE
    assert derive_label(False, True) == AvailabilityLabel.ONLINE
    assert derive_label(False, False) == AvailabilityLabel.UNKNOWN
    assert derive_label(False, False, ChannelType.ONLINE) == AvailabilityLabel.ONLINE
    # Channel rows win over the legacy value
    assert derive_label(True, False, ChannelType.ONLINE) == AvailabilityLabel.IN_STORE


async def test_classify_reads_current_rows(db_session, seed_data, make_dish):
    both = await make_dish(seed_data["hub"], delivery_apps=["Zomato", "Swiggy"], in_store=True)
    empty_online = await make_dish(seed_data["hub"], online=True)
    nothing = await make_dish(seed_data["hub"])

    result = await classify_many(db_session, [both, empty_online, nothing, 9999])

    assert set(result) == {both, empty_online, nothing}
    assert result[both].label == AvailabilityLabel.BOTH
    assert result[both].delivery_apps == ["Swiggy", "Zomato"]
    assert result[empty_online].has_online
    assert result[empty_online].label == AvailabilityLabel.ONLINE
    assert result[nothing].label == AvailabilityLabel.UNKNOWN
    assert await classify(db_session, 9999) is None


async def test_classify_many_empty(db_session):
    assert await classify_many(db_session, []) == {}


async def test_availability_to_dict(db_session, seed_data, make_dish):
    dish_id = await make_dish(seed_data["cloud"], delivery_apps=["Swiggy"])
    availability = await classify(db_session, dish_id)
    assert availability.to_dict() == {
        "has_in_store": False,
        "has_online": True,
        "delivery_apps": ["Swiggy"],
        "label": "Online",
    }


# ===================== RATE LIMITING =====================


async def test_in_memory_limiter_window():
    clock = FakeClock()
    limiter = InMemoryRateLimiter(clock=clock)

    results = [await limiter.check("otp:+91", 3, 900) for _ in range(4)]
    assert [r.allowed for r in results] == [True, True, True, False]
    assert [r.remaining for r in results] == [2, 1, 0, 0]
    assert results[-1].reset_at == 1_900.0

    clock.now = 1_900.0
    assert (await limiter.check("otp:+91", 3, 900)).allowed


async def test_in_memory_limiter_keys_and_clear():
    limiter = InMemoryRateLimiter(clock=FakeClock())
    assert (await limiter.check("a", 1, 60)).allowed
    assert not (await limiter.check("a", 1, 60)).allowed
    assert (await limiter.check("b", 1, 60)).allowed

    await limiter.clear("a")
    assert (await limiter.check("a", 1, 60)).allowed


async def test_redis_limiter_sets_expiry_on_first_hit():
    client = AsyncMock()
    client.incr.return_value = 1
    client.ttl.return_value = 900
    limiter = RedisRateLimiter(client, clock=FakeClock())

    result = await limiter.check("otp:+91", 3, 900)

    assert result.allowed
    assert result.remaining == 2
    assert result.reset_at == 1_900.0
    client.incr.assert_awaited_once_with("ratelimit:otp:+91")
    client.expire.assert_awaited_once_with("ratelimit:otp:+91", 900)


async def test_redis_limiter_blocks_over_limit():
    client = AsyncMock()
    client.incr.return_value = 4
    client.ttl.return_value = 120
    limiter = RedisRateLimiter(client, clock=FakeClock())

    result = await limiter.check("otp:+91", 3, 900)

    assert not result.allowed
    assert result.reset_at == 1_120.0
    client.expire.assert_not_awaited()


async def test_redis_limiter_repairs_missing_ttl():
    client = AsyncMock()
    client.incr.return_value = 2
    client.ttl.return_value = -1
    limiter = RedisRateLimiter(client, clock=FakeClock())

    result = await limiter.check("k", 3, 60)

    assert result.allowed
    client.expire.assert_awaited_once_with("ratelimit:k", 60)

    await limiter.clear("k")
    client.delete.assert_awaited_once_with("ratelimit:k")


def test_format_reset_time():
    assert format_reset_time(100.0, now=100.0) == "now"
    assert format_reset_time(130.0, now=100.0) == "1 minute"
    assert format_reset_time(100.0 + 14 * 60 + 1, now=100.0) == "15 minutes"


# ===================== INVITES =====================


def test_generate_code_alphabet():
    code = generate_code()
    assert len(code) == CODE_LENGTH
    assert set(code) <= set(CODE_ALPHABET)


async def test_consume_invite_once(db_session, seed_data, invite_code):
    await consume_invite_code(db_session, invite_code, seed_data["carol"].id)
    await db_session.commit()

    with pytest.raises(InviteError) as exc:
        await consume_invite_code(db_session, invite_code, seed_data["bob"].id)
    assert exc.value.status_code == 400

    with pytest.raises(InviteError) as exc:
        await check_invite_code(db_session, "MISSING1")
    assert exc.value.status_code == 404


async def test_mint_invite_codes_unique(db_session, seed_data):
    codes = await mint_invite_codes(db_session, seed_data["alice"].id, 5)
    await db_session.commit()

    assert len({c.code for c in codes}) == 5
    assert all(c.owner_user_id == seed_data["alice"].id and not c.is_used for c in codes)
    checked = await check_invite_code(db_session, codes[0].code)
    assert isinstance(checked, InviteCode)


# ===================== DELIVERY APPS =====================


@pytest.mark.parametrize("city,country", [
    ("Mumbai, India", "India"),
    ("Bengaluru, Karnataka, India", "India"),
    ("London - UK", "UK"),
    ("Toronto Canada", "Canada"),
    ("Atlantis", None),
    ("", None),
])
def test_extract_country_from_city(city, country):
    assert extract_country_from_city(city) == country


def test_get_delivery_apps_for_city():
    assert get_delivery_apps_for_city("Delhi, India") == {
        "country": "India",
        "available_apps": ["Swiggy", "Zomato"],
        "has_apps": True,
    }
    assert get_delivery_apps_for_city("Atlantis")["has_apps"] is False


# ===================== HELPERS =====================


def test_validate_delivery_apps():
    assert validate_delivery_apps([" Swiggy", "Zomato", "Swiggy ", ""]) == ["Swiggy", "Zomato"]
    with pytest.raises(ValueError):
        validate_delivery_apps(["  "])


def test_validate_phone():
    assert validate_phone("91 98000-00001") == "+919800000001"
    with pytest.raises(ValueError):
        validate_phone("12345")


def test_distance():
    # Mumbai to Pune is roughly 120 km
    assert 110 < haversine_km(19.076, 72.8777, 18.5204, 73.8567) < 130
    assert distance_to(19.076, 72.8777, None, 73.8) is None
    assert distance_to(19.076, 72.8777, 19.076, 72.8777) == 0.0


def test_storage_path_from_url():
    storage = BlobStorageClient("https://storage.test/", "dish-photos")
    url = storage.public_url("7/abc.jpg")
    assert url == "https://storage.test/storage/v1/object/public/dish-photos/7/abc.jpg"
    assert storage.path_from_url(url) == "7/abc.jpg"
    assert storage.path_from_url("https://elsewhere.test/x.jpg") is None
