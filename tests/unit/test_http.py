"""Tests for the HTTP surface."""

import pytest
from fastapi.testclient import TestClient

from pg_graphql.authz import StaticPrivilegeOracle
from pg_graphql.catalog.store import CatalogStore
from pg_graphql.engine import ResolutionEngine
from pg_graphql.http import create_app


@pytest.fixture
def client(metadata_factory, fake_executor):
    fake_executor.result = {"totalCount": 2}
    engine = ResolutionEngine(
        CatalogStore(metadata_factory), fake_executor, lambda: StaticPrivilegeOracle(allow_all=True)
    )
    return TestClient(create_app(lambda: engine))


class TestGraphQLEndpoint:
    def test_query(self, client):
        response = client.post("/graphql", json={"query": "{ allAccounts { totalCount } }"})

        assert response.status_code == 200
        assert response.json() == {"data": {"allAccounts": {"totalCount": 2}}, "errors": []}

    def test_variables_and_operation_name(self, client, fake_executor):
        response = client.post(
            "/graphql",
            json={
                "query": "query Page($first: Int) { allAccounts(first: $first) { totalCount } }",
                "variables": {"first": 1},
                "operationName": "Page",
            },
        )

        assert response.status_code == 200
        assert fake_executor.executed[0][1] == ["1"]

    def test_errors_are_returned_with_200(self, client):
        response = client.post("/graphql", json={"query": "{ allAccounts { nope } }"})

        assert response.status_code == 200
        assert response.json() == {
            "data": None,
            "errors": ["Unknown field 'nope' on type 'AccountConnection'"],
        }

    def test_missing_query_is_rejected(self, client):
        response = client.post("/graphql", json={"variables": {}})

        assert response.status_code == 422


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}
