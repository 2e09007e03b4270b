import pytest
from django.conf import settings

from ovr_core.iam.roles import ROLE_QI

pytestmark = pytest.mark.django_db


def test_me_returns_canonical_roles(make_user, client_for):
    user = make_user("quality", ROLE_QI)

    res = client_for(user).get("/api/v1/me/")
    assert res.status_code == 200, res.data
    assert res.data["user"]["username"] == "quality"
    assert res.data["roles"] == [ROLE_QI]


def test_me_requires_authentication(anon_client):
    res = anon_client.get("/api/v1/me/")
    assert res.status_code == 401
    assert res.data["error"]["code"] == "not_authenticated"


def test_login_sets_cookies_and_cookie_authenticates(make_user, anon_client):
    make_user("nurse")

    res = anon_client.post("/api/v1/auth/login/", {"username": "nurse", "password": "testpass"}, format="json")
    assert res.status_code == 200, res.data

    access_cookie = settings.SIMPLE_JWT["AUTH_COOKIE"]
    assert access_cookie in res.cookies
    assert settings.SIMPLE_JWT["AUTH_COOKIE_REFRESH"] in res.cookies

    anon_client.cookies[access_cookie] = res.cookies[access_cookie].value
    res = anon_client.get("/api/v1/me/")
    assert res.status_code == 200, res.data
    assert res.data["user"]["username"] == "nurse"


def test_login_with_bad_password(make_user, anon_client):
    make_user("nurse")

    res = anon_client.post("/api/v1/auth/login/", {"username": "nurse", "password": "wrong"}, format="json")
    assert res.status_code == 401
    assert "error" in res.data


def test_logout_clears_cookies(make_user, client_for):
    res = client_for(make_user("nurse")).post("/api/v1/auth/logout/")
    assert res.status_code == 200, res.data
    assert res.cookies[settings.SIMPLE_JWT["AUTH_COOKIE"]].value == ""
