import pytest
from fastapi import status
from shortener.codes import RESERVED_CODES
from shortener.main import app
from shortener.utils import is_valid_short_code

def test_create_short_url(client):
    # Test creating a URL with an auto-generated short code
    response = client.post(
        "/urls",
        json={"original_url": "https://example.com"}
    )
    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert len(data["short_code"]) == 7
    assert data["original_url"] == "https://example.com"
    assert data["short_url"] == f"http://testserver/{data['short_code']}"
    assert data["click_count"] == 0
    assert data["last_accessed_at"] is None
    assert "id" in data
    assert "created_at" in data

    # Test creating a URL with a custom code
    response = client.post(
        "/urls",
        json={
            "original_url": "https://example.org",
            "custom_code": "My-Code_1"
        }
    )
    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["short_code"] == "My-Code_1"

    # Test duplicate custom code
    response = client.post(
        "/urls",
        json={
            "original_url": "https://example.net",
            "custom_code": "My-Code_1"
        }
    )
    assert response.status_code == status.HTTP_409_CONFLICT

def test_create_normalizes_url(client):
    response = client.post("/urls", json={"original_url": "example.com/page"})

    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["original_url"] == "https://example.com/page"

def test_create_invalid_url(client):
    response = client.post("/urls", json={"original_url": "not a valid url"})
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

def test_create_invalid_custom_code(client):
    response = client.post(
        "/urls",
        json={"original_url": "https://example.com", "custom_code": "ab"}
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    response = client.post(
        "/urls",
        json={"original_url": "https://example.com", "custom_code": "bad code!"}
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

def test_identical_submission_returns_existing(client):
    first = client.post("/urls", json={"original_url": "example.com/same"}).json()
    second = client.post("/urls", json={"original_url": "https://example.com/same"}).json()

    assert second["id"] == first["id"]
    assert second["short_code"] == first["short_code"]

def test_authenticated_create_sets_owner(client, auth_headers):
    anonymous = client.post("/urls", json={"original_url": "https://example.com/owned"}).json()
    owned = client.post(
        "/urls",
        json={"original_url": "https://example.com/owned"},
        headers=auth_headers(1)
    ).json()

    assert owned["id"] != anonymous["id"]

    response = client.get("/urls/mine", headers=auth_headers(1))
    assert [item["id"] for item in response.json()] == [owned["id"]]

def test_invalid_token_rejected(client):
    response = client.post(
        "/urls",
        json={"original_url": "https://example.com"},
        headers={"Authorization": "Bearer not-a-jwt"}
    )
    assert response.status_code == status.HTTP_401_UNAUTHORIZED

def test_list_my_urls(client, auth_headers):
    first = client.post("/urls", json={"original_url": "https://example.com/1"}, headers=auth_headers(1)).json()
    second = client.post("/urls", json={"original_url": "https://example.com/2"}, headers=auth_headers(1)).json()
    client.post("/urls", json={"original_url": "https://example.com/3"}, headers=auth_headers(2))

    response = client.get("/urls/mine", headers=auth_headers(1))

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert [item["short_code"] for item in data] == [second["short_code"], first["short_code"]]
    assert all("short_url" in item for item in data)

def test_list_my_urls_requires_identity(client):
    response = client.get("/urls/mine")
    assert response.status_code == status.HTTP_401_UNAUTHORIZED

def test_delete_url(client, auth_headers):
    short_code = client.post(
        "/urls",
        json={"original_url": "https://example.com/delete-me"},
        headers=auth_headers(1)
    ).json()["short_code"]

    response = client.delete(f"/urls/{short_code}", headers=auth_headers(1))
    assert response.status_code == status.HTTP_204_NO_CONTENT

    # Verify deletion
    response = client.get(f"/urls/{short_code}/stats")
    assert response.status_code == status.HTTP_404_NOT_FOUND

def test_delete_by_non_owner(client, auth_headers):
    short_code = client.post(
        "/urls",
        json={"original_url": "https://example.com/keep-me"},
        headers=auth_headers(1)
    ).json()["short_code"]

    response = client.delete(f"/urls/{short_code}", headers=auth_headers(2))
    assert response.status_code == status.HTTP_404_NOT_FOUND

    response = client.get(f"/urls/{short_code}/stats")
    assert response.status_code == status.HTTP_200_OK

def test_delete_anonymous(client):
    short_code = client.post("/urls", json={"original_url": "https://example.com/anon"}).json()["short_code"]

    response = client.delete(f"/urls/{short_code}")
    assert response.status_code == status.HTTP_401_UNAUTHORIZED

    response = client.get(f"/{short_code}", follow_redirects=False)
    assert response.status_code == status.HTTP_302_FOUND

def test_delete_missing(client, auth_headers):
    response = client.delete("/urls/missing", headers=auth_headers(1))
    assert response.status_code == status.HTTP_404_NOT_FOUND

@pytest.mark.parametrize("custom_code", ["docs", "redoc", "urls"])
def test_reserved_custom_code(client, custom_code):
    response = client.post(
        "/urls",
        json={"original_url": "https://example.com/hijack", "custom_code": custom_code}
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    # Documentation stays reachable
    response = client.get("/docs", follow_redirects=False)
    assert response.status_code == status.HTTP_200_OK
    assert "text/html" in response.headers["content-type"]

def test_app_paths_cannot_be_claimed(client):
    # Every single-segment path the app serves must be unreachable as a short code
    for route in app.routes:
        segments = route.path.strip("/").split("/")
        segment = segments[0]
        if not segment or "{" in segment:
            continue
        assert segment in RESERVED_CODES or not is_valid_short_code(segment), route.path
