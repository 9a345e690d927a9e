"""Shared fixtures: a throwaway SQLite database per test and in-memory workflow ports."""
import pytest
import pytest_asyncio

from bodega.api.deps import CurrentUser
from bodega.db.init_db import init_db
from bodega.db.session import build_engine, build_sessionmaker
from bodega.schemas.external import ProductInfo
from fakes import FakeCatalog, make_invoice


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'warehouse.db'}")
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_maker(engine):
    maker = build_sessionmaker(engine)
    await init_db(engine, maker)
    return maker


@pytest_asyncio.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def operator():
    return CurrentUser(id="u-op", name="Ana Operadora", role="OPERATOR")


@pytest.fixture
def supervisor():
    return CurrentUser(id="u-sup", name="Sergio Supervisor", role="SUPERVISOR")


@pytest.fixture
def fac_1001():
    return make_invoice("FAC-1001", [(1, "A-100", 5), (2, "B-200", 3)])


@pytest.fixture
def catalog():
    return FakeCatalog(
        [
            ProductInfo(id="A-100", description="Tornillo galvanizado 1/4", barcode="7701001"),
            ProductInfo(id="B-200", description="Tuerca hexagonal 1/4", barcode="7702002"),
        ]
    )
