from __future__ import annotations

from collections.abc import Callable
from typing import Any

import httpx
import pytest

SAMPLE_USERS: list[dict[str, Any]] = [
    {
        "id": 1,
        "firstName": "Emily",
        "lastName": "Johnson",
        "maidenName": "Smith",
        "age": 28,
        "gender": "female",
        "email": "emily.johnson@x.dummyjson.com",
        "phone": "+81 965-431-3024",
        "image": "https://dummyjson.com/icon/emilys/128",
        "height": 193.24,
        "weight": 63.16,
        "address": {
            "address": "626 Main Street",
            "city": "Phoenix",
            "state": "Mississippi",
            "postalCode": "29112",
            "country": "United States",
        },
    },
    {
        "id": 2,
        "firstName": "Michael",
        "lastName": "Williams",
        "maidenName": "",
        "age": 35,
        "gender": "male",
        "email": "michael.williams@x.dummyjson.com",
        "phone": "+49 258-627-6644",
        "height": 186.22,
        "weight": 76.32,
        "address": {
            "address": "385 Fifth Street",
            "city": "Houston",
            "state": "Alabama",
            "postalCode": "38807",
            "country": "United States",
        },
    },
    {
        "id": 3,
        "firstName": "Sophia",
        "lastName": "Brown",
        "maidenName": "",
        "age": 42,
        "gender": "female",
        "email": "sophia.brown@x.dummyjson.com",
        "phone": "+81 210-652-2785",
        "address": {"city": "Washington", "country": "United States"},
    },
    {
        "id": 4,
        "firstName": "James",
        "lastName": "Davis",
        "maidenName": "",
        "age": 45,
        "gender": "male",
        "email": "james.davis@x.dummyjson.com",
        "phone": "+49 614-958-9364",
        "address": {"city": "Jacksonville", "country": "Canada"},
    },
    {
        "id": 5,
        "firstName": "Emma",
        "lastName": "Miller",
        "maidenName": "Johnson",
        "age": 30,
        "gender": "female",
        "email": "emma.miller@x.dummyjson.com",
        "phone": "+91 759-776-1614",
        "address": {"city": "Fort Worth", "country": "United States"},
    },
    {
        "id": 6,
        "firstName": "Olivia",
        "lastName": "Wilson",
        "maidenName": "",
        "age": 22,
        "gender": "female",
        "email": "olivia.wilson@x.dummyjson.com",
        "phone": "+91 607-295-6448",
        "address": {"city": "Indianapolis", "country": "United States"},
    },
    {
        "id": 7,
        "firstName": "Alexander",
        "lastName": "Jones",
        "maidenName": "",
        "age": 38,
        "gender": "male",
        "email": "alexander.jones@x.dummyjson.com",
        "phone": "+61 260-824-4986",
        "address": {"city": "Fort Worth", "country": "United States"},
    },
]


def _lookup(user: dict[str, Any], path: str) -> Any:
    value: Any = user
    for part in path.split("."):
        value = value.get(part) if isinstance(value, dict) else None
    return value


def fake_user_endpoint(
    users: list[dict[str, Any]],
    requests: list[httpx.Request] | None = None,
    *,
    bare_list: bool = False,
) -> Callable[[httpx.Request], httpx.Response]:
    """A MockTransport handler that behaves like a ``limit``/``skip`` list API.

    Supports ``sortBy``/``order`` and the ``/filter`` route with repeated
    ``key``/``value`` pairs (exact match on dotted paths).  ``limit=0``
    returns everything.  With *bare_list* the page is returned as a plain
    JSON array, without a total.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        params = request.url.params
        items = list(users)

        if request.url.path.endswith("/filter"):
            for key, value in zip(params.get_list("key"), params.get_list("value")):
                items = [u for u in items if str(_lookup(u, key)) == value]

        sort_by = params.get("sortBy")
        if sort_by:
            items.sort(key=lambda u: _lookup(u, sort_by), reverse=params.get("order") == "desc")

        total = len(items)
        limit = int(params.get("limit", "30"))
        skip = int(params.get("skip", "0"))
        items = items[skip:] if limit == 0 else items[skip:skip + limit]
        if bare_list:
            return httpx.Response(200, json=items)
        return httpx.Response(200, json={"users": items, "total": total, "skip": skip, "limit": limit})

    return handler


@pytest.fixture
def sample_users() -> list[dict[str, Any]]:
    return [dict(u) for u in SAMPLE_USERS]


@pytest.fixture
def request_log() -> list[httpx.Request]:
    return []


@pytest.fixture
def user_client(sample_users, request_log) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(fake_user_endpoint(sample_users, request_log)))


@pytest.fixture
def make_user_client() -> Callable[..., httpx.AsyncClient]:
    """Build a client over :func:`fake_user_endpoint` for an arbitrary user list."""

    def factory(users: list[dict[str, Any]], requests: list[httpx.Request] | None = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(fake_user_endpoint(users, requests)))

    return factory


@pytest.fixture
def user_endpoint(sample_users) -> Callable[[httpx.Request], httpx.Response]:
    return fake_user_endpoint(sample_users)


@pytest.fixture
def bare_list_client(sample_users, request_log) -> httpx.AsyncClient:
    handler = fake_user_endpoint(sample_users, request_log, bare_list=True)
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))
