import os

# settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from types import SimpleNamespace

import pytest
from sqlalchemy import func, select

from settlement import repo
from settlement.db import models  # noqa: F401
from settlement.db.base import Base
from settlement.db.session import create_engine, make_sessionmaker
from settlement.engine import SettlementEngine
from settlement.services.coupons.registry import coupon_registry


@pytest.fixture
async def db_engine(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'settlement.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def sessionmaker(db_engine):
    return make_sessionmaker(db_engine)


@pytest.fixture
async def session(sessionmaker):
    async with sessionmaker() as s:
        yield s


@pytest.fixture
def engine(sessionmaker):
    return SettlementEngine(sessionmaker)


@pytest.fixture
async def seed(sessionmaker):
    """Partner Paula with penguin10off, two customers, two services."""
    async with sessionmaker() as s:
        partner = await repo.create_user(s, email="paula@example.com", first_name="Paula", last_name="Park", role="partner")
        other_partner = await repo.create_user(s, email="sam@example.com", first_name="Sam", role="partner")
        customer = await repo.create_user(s, email="carl@example.com", first_name="Carl", role="customer")
        customer2 = await repo.create_user(s, email="dana@example.com", first_name="Dana", role="customer")
        admin = await repo.create_user(s, email="admin@example.com", first_name="Ada", role="admin")
        deep_clean = await repo.create_service(s, name="Deep clean", price=35000)
        standard = await repo.create_service(s, name="Standard clean", price=15000)
        coupon = (await coupon_registry.create_coupon(s, partner_id=partner.id, discount_percentage=10)).unwrap()
        seal = (await coupon_registry.create_coupon(s, partner_id=other_partner.id, discount_percentage=15)).unwrap()
        await s.commit()

    return SimpleNamespace(
        partner_id=partner.id,
        other_partner_id=other_partner.id,
        customer_id=customer.id,
        customer2_id=customer2.id,
        admin_id=admin.id,
        deep_clean_id=deep_clean.id,
        standard_id=standard.id,
        coupon_id=coupon.id,
        coupon_code=coupon.code,
        seal_coupon_id=seal.id,
        seal_coupon_code=seal.code,
    )


@pytest.fixture
def count_rows(sessionmaker):
    async def _count(model, *where) -> int:
        async with sessionmaker() as s:
            q = select(func.count()).select_from(model)
            if where:
                q = q.where(*where)
            return int(await s.scalar(q))

    return _count


@pytest.fixture
def has_used_coupon(sessionmaker):
    async def _get(user_id: int) -> bool:
        async with sessionmaker() as s:
            return bool(await s.scalar(select(models.User.has_used_coupon).where(models.User.id == user_id)))

    return _get
