"""
Test fixtures - file-backed SQLite database + authenticated HTTP clients.

Moderation opens its own sessions per delivery app, so the database lives in a
temp file that every session can see rather than in memory.
"""
from contextlib import asynccontextmanager
from typing import Optional, Sequence

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from dishfinder.database import Base, enable_sqlite_foreign_keys, get_db, get_session_factory
from dishfinder.main import app
from dishfinder.api.auth import create_access_token
from dishfinder.models.user import User, InviteCode
from dishfinder.models.restaurant import Restaurant, RestaurantSource
from dishfinder.models.dish import (
    Dish, DishAvailabilityChannel, DishDeliveryApp, ChannelType, ProteinSource
)
from dishfinder.services.auth_provider import AuthProviderError, ProviderUser, get_auth_provider
from dishfinder.services.rate_limiter import InMemoryRateLimiter, get_rate_limiter
from dishfinder.services.storage import BlobStorageClient, StorageError, ALLOWED_IMAGE_TYPES, get_storage

VALID_OTP = "123456"


class FakeAuthProvider:
    """Stands in for the identity provider; accepts VALID_OTP for anyone"""

    def __init__(self):
        self.sent = []

    async def send_otp(self, phone=None, email=None):
        self.sent.append(phone or email)

    async def verify_otp(self, token, phone=None, email=None):
        if token != VALID_OTP:
            raise AuthProviderError("Token has expired or is invalid", 401)
        identity = phone or email
        return ProviderUser(id=f"prov-{identity}", phone=phone, email=email)

    def oauth_url(self, provider, redirect_to):
        return f"https://auth.test/authorize?provider={provider}&redirect_to={redirect_to}"

    async def exchange_code(self, code):
        if code == "bad":
            raise AuthProviderError("invalid flow state", 400)
        return ProviderUser(id=f"google-{code}", email=f"{code}@gmail.test")


class FakeStorage(BlobStorageClient):
    """Keeps uploads in a dict instead of talking to the storage service"""

    def __init__(self):
        super().__init__("https://storage.test", "dish-photos")
        self.objects = {}
        self.deleted = []

    async def upload(self, owner_id, content, content_type):
        ext = ALLOWED_IMAGE_TYPES.get(content_type)
        if ext is None:
            raise StorageError(f"Unsupported image type '{content_type}'")
        path = f"{owner_id}/photo{len(self.objects) + 1}{ext}"
        self.objects[path] = content
        return self.public_url(path)

    async def delete(self, url):
        path = self.path_from_url(url)
        if path is None:
            return False
        self.objects.pop(path, None)
        self.deleted.append(url)
        return True


@pytest_asyncio.fixture()
async def session_factory(tmp_path):
    """A fresh SQLite file per test, shared by every session in it"""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    enable_sqlite_foreign_keys(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture()
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture()
async def seed_data(db_session):
    """Insert baseline test data: three users, a regular restaurant and a cloud kitchen"""
    alice = User(auth_provider_id="prov-alice", phone="+919800000001", name="Alice", city="Mumbai, India")
    bob = User(auth_provider_id="prov-bob", phone="+919800000002", name="Bob", city="Mumbai, India")
    carol = User(auth_provider_id="prov-carol", phone="+919800000003")
    hub = Restaurant(
        name="Protein Hub",
        city="Mumbai, India",
        source_type=RestaurantSource.GOOGLE_MAPS,
        place_id="place-hub",
        google_maps_address="Bandra West, Mumbai",
        latitude=19.0596,
        longitude=72.8295,
    )
    cloud = Restaurant(
        name="CloudBites",
        city="Mumbai, India",
        source_type=RestaurantSource.MANUAL,
        is_cloud_kitchen=True,
    )
    db_session.add_all([alice, bob, carol, hub, cloud])
    await db_session.commit()
    for obj in (alice, bob, carol, hub, cloud):
        await db_session.refresh(obj)

    return {"alice": alice, "bob": bob, "carol": carol, "hub": hub, "cloud": cloud}


@pytest_asyncio.fixture()
async def make_dish(db_session, seed_data):
    """Factory inserting a dish with its channel rows directly"""

    async def _make(
        restaurant: Restaurant,
        delivery_apps: Sequence[str] = (),
        in_store: bool = False,
        online: Optional[bool] = None,
        owner: Optional[User] = None,
        dish_name: str = "Grilled Chicken Bowl",
        price: float = 320,
        protein_source: ProteinSource = ProteinSource.CHICKEN,
        legacy_availability: Optional[ChannelType] = None,
    ) -> int:
        owner = owner or seed_data["alice"]
        dish = Dish(
            user_id=owner.id,
            restaurant_id=restaurant.id,
            dish_name=dish_name,
            price=price,
            protein_source=protein_source,
            legacy_availability=legacy_availability,
        )
        db_session.add(dish)
        await db_session.flush()

        if in_store:
            db_session.add(DishAvailabilityChannel(dish_id=dish.id, channel=ChannelType.IN_STORE))
        if online or (online is None and delivery_apps):
            channel = DishAvailabilityChannel(dish_id=dish.id, channel=ChannelType.ONLINE)
            db_session.add(channel)
            await db_session.flush()
            for name in delivery_apps:
                db_session.add(DishDeliveryApp(
                    dish_id=dish.id, availability_channel_id=channel.id, delivery_app=name
                ))
        await db_session.commit()
        return dish.id

    return _make


@pytest_asyncio.fixture()
async def invite_code(db_session):
    code = InviteCode(code="WELCOME1", is_used=False)
    db_session.add(code)
    await db_session.commit()
    return code.code


@pytest.fixture()
def auth_provider():
    return FakeAuthProvider()


@pytest.fixture()
def storage():
    return FakeStorage()


@pytest_asyncio.fixture()
async def override_deps(db_session, session_factory, auth_provider, storage):
    """Point every external dependency of the app at the test doubles"""

    async def override_get_db():
        yield db_session

    limiter = InMemoryRateLimiter()
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_auth_provider] = lambda: auth_provider
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    yield
    app.dependency_overrides.clear()


@asynccontextmanager
async def _client_for(user: Optional[User]):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", follow_redirects=True) as ac:
        if user is not None:
            token = create_access_token(data={"sub": str(user.id)})
            ac.headers["Authorization"] = f"Bearer {token}"
        yield ac


@pytest_asyncio.fixture()
async def client(override_deps, seed_data):
    """Authenticated as Alice"""
    async with _client_for(seed_data["alice"]) as ac:
        yield ac


@pytest_asyncio.fixture()
async def second_client(override_deps, seed_data):
    """Authenticated as Bob"""
    async with _client_for(seed_data["bob"]) as ac:
        yield ac


@pytest_asyncio.fixture()
async def new_user_client(override_deps, seed_data):
    """Authenticated as Carol, who has no profile yet"""
    async with _client_for(seed_data["carol"]) as ac:
        yield ac


@pytest_asyncio.fixture()
async def unauth_client(override_deps):
    async with _client_for(None) as ac:
        yield ac
