import pytest

from compass_api.backend import get_nearest_place
from compass_api.config import Settings


class _FakeResult:
    def __init__(self, rows):
        self._rows = rows

    def mappings(self):
        return self

    def all(self):
        return self._rows


class _FakeSession:
    def __init__(self, rows, error=None):
        self._rows = rows
        self._error = error
        self.executed = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def execute(self, statement, params=None):
        self.executed.append((str(statement), params))
        if self._error is not None:
            raise self._error
        return _FakeResult(self._rows)


class _FakeSessionFactory:
    def __init__(self, session):
        self.session = session

    def __call__(self):
        return self.session


_ROW = {
    "ref": "cape-point",
    "name": "Cape Point",
    "country": "South Africa",
    "continent": "Africa",
    "knownFor": "historic lighthouse",
    "tags": ["landmark"],
    "imageUrl": None,
}


@pytest.mark.asyncio
async def test_nearest_place_wraps_rows_in_query_envelope():
    session = _FakeSession([_ROW])
    result = await get_nearest_place(_FakeSessionFactory(session), {"placeDescription": "lighthouse"}, settings=Settings())

    assert result == {"data": {"places_embedding_similarity": [_ROW]}}
    assert result["data"]["places_embedding_similarity"][0] is not _ROW


@pytest.mark.asyncio
async def test_nearest_place_defaults_limit_and_model_from_settings():
    session = _FakeSession([])
    settings = Settings(places_default_limit=5, places_similarity_within=1.5, places_embedding_model="text-embedding-005")
    await get_nearest_place(_FakeSessionFactory(session), {"placeDescription": "desert"}, settings=settings)

    sql, params = session.executed[0]
    assert params == {
        "model": "text-embedding-005",
        "place_description": "desert",
        "within": 1.5,
        "limit": 5,
    }
    assert "embedding(:model, :place_description)" in sql
    assert 'known_for AS "knownFor"' in sql
    assert "ORDER BY distance ASC" in sql


@pytest.mark.asyncio
async def test_nearest_place_explicit_limit_wins():
    session = _FakeSession([])
    await get_nearest_place(_FakeSessionFactory(session), {"placeDescription": "x"}, limit=10, settings=Settings())
    assert session.executed[0][1]["limit"] == 10


@pytest.mark.asyncio
async def test_nearest_place_database_error_propagates():
    error = RuntimeError("connection refused")
    session = _FakeSession([], error=error)
    with pytest.raises(RuntimeError) as exc_info:
        await get_nearest_place(_FakeSessionFactory(session), {"placeDescription": "x"}, settings=Settings())
    assert exc_info.value is error
