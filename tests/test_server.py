"""End-to-end tests for the gateway HTTP surface"""

import base64
import urllib.parse

import pytest
from fastapi.testclient import TestClient

from igv_gateway.exceptions import CatalogUnavailableError, NotFoundError
from igv_gateway.server import create_app


@pytest.fixture
def app(config, mock_catalog, session_manager):
    return create_app(config, catalog=mock_catalog, session_manager=session_manager)


@pytest.fixture
def client(app):
    return TestClient(app, follow_redirects=False)


@pytest.fixture
def logged_in_client(client, session_manager, fresh_credential):
    """Client carrying a valid credential cookie"""
    client.cookies.set("token", session_manager.encode_credential(fresh_credential))
    return client


def cookie_value(response, name):
    """Raw value of a cookie set on a response, without cookie quoting"""
    return response.cookies[name].strip('"')


class TestAuthorization:
    """Test the authorization middleware"""

    @pytest.mark.parametrize(
        "path",
        [
            "/",
            "/index",
            "/browser/",
            "/data/default",
            "/data/bigWigsTrack/g-bw",
            "/data/bamTrack/g-bam",
        ],
    )
    def test_unauthenticated_redirects_to_login(self, client, mock_catalog, path):
        response = client.get(path)

        assert response.status_code == 307
        assert response.headers["location"] == "/login"
        mock_catalog.current_version.assert_not_called()
        mock_catalog.download_links_for.assert_not_called()

    @pytest.mark.parametrize(
        "cookie",
        [
            "not-a-credential",
            base64.b64encode(
                b'{"access_token": "a", "refresh_token": "r", '
                b'"expiry": "2020-01-01T00:00:00"}'
            ).decode(),
        ],
    )
    def test_malformed_cookie_redirects_to_login(self, client, cookie):
        client.cookies.set("token", cookie)

        response = client.get("/data/default")

        assert response.status_code == 307
        assert response.headers["location"] == "/login"

    def test_unrefreshable_cookie_redirects_to_login(
        self, client, session_manager, token_endpoint, expired_credential
    ):
        token_endpoint.status_code = 401
        client.cookies.set("token", session_manager.encode_credential(expired_credential))

        response = client.get("/data/default")

        assert response.status_code == 307
        assert response.headers["location"] == "/login"

    def test_static_files_are_public(self, client):
        response = client.get("/static/js/initIGV.js")

        assert response.status_code == 200
        assert "addBamTrack" in response.text

    def test_cors_preflight(self, client):
        response = client.options(
            "/data/default",
            headers={
                "Origin": "https://viewer.example",
                "Access-Control-Request-Method": "GET",
            },
        )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"

    def test_expired_cookie_refreshed_and_reissued(
        self, client, session_manager, mock_catalog, token_endpoint, expired_credential
    ):
        """Test the refreshed credential is used and written back"""
        client.cookies.set("token", session_manager.encode_credential(expired_credential))

        response = client.get("/data/bamTrack/g-bam")

        assert response.status_code == 200
        assert len(token_endpoint.requests) == 1
        mock_catalog.download_links_for.assert_awaited_once()
        assert mock_catalog.download_links_for.await_args.args[2] == {
            "UserAPIToken": "access-new"
        }
        reissued = session_manager.decode_credential(cookie_value(response, "token"))
        assert reissued.access_token == "access-new"

    def test_fresh_cookie_not_reissued(self, logged_in_client, token_endpoint):
        response = logged_in_client.get("/data/bamTrack/g-bam")

        assert response.status_code == 200
        assert "token" not in response.cookies
        assert token_endpoint.requests == []


class TestLogin:
    """Test the login redirect and provider callback"""

    def test_login_redirects_to_provider(self, client, session_manager):
        response = client.get("/login")

        assert response.status_code == 307
        location = response.headers["location"]
        assert location.startswith("https://idp.test/authorize?")
        params = dict(urllib.parse.parse_qsl(urllib.parse.urlsplit(location).query))
        assert params["client_id"] == "igv-client"
        assert params["access_type"] == "offline"
        flow_id = response.cookies["login_flow"]
        assert session_manager._flows[flow_id][0] == params["state"]

    def test_callback_sets_credential(self, client, session_manager, token_endpoint):
        """Test a full login: redirect, callback, cookie, browser page"""
        login = client.get("/login")
        params = dict(
            urllib.parse.parse_qsl(urllib.parse.urlsplit(login.headers["location"]).query)
        )

        response = client.get(
            "/auth/callback", params={"state": params["state"], "code": "code-1"}
        )

        assert response.status_code == 303
        assert response.headers["location"] == "/index"
        credential = session_manager.decode_credential(cookie_value(response, "token"))
        assert credential.access_token == "access-new"
        assert token_endpoint.requests[0]["code"] == "code-1"

        assert client.get("/data/default").status_code == 200

    def test_callback_wrong_state(self, client, token_endpoint):
        client.get("/login")

        response = client.get(
            "/auth/callback", params={"state": "forged", "code": "code-1"}
        )

        assert response.status_code == 400
        assert response.json()["status"] == "error"
        assert "token" not in response.cookies
        assert token_endpoint.requests == []

    def test_callback_non_ascii_state(self, client, token_endpoint):
        client.get("/login")

        response = client.get("/auth/callback", params={"state": "é", "code": "code-1"})

        assert response.status_code == 400
        assert response.json()["metadata"]["exception_type"] == "StateMismatchError"
        assert token_endpoint.requests == []

    def test_callback_without_flow_cookie(self, client):
        response = client.get("/auth/callback", params={"state": "s", "code": "c"})

        assert response.status_code == 400
        assert response.json()["metadata"]["exception_type"] == "StateMismatchError"

    def test_callback_provider_rejects_code(self, client, token_endpoint):
        token_endpoint.status_code = 400
        login = client.get("/login")
        params = dict(
            urllib.parse.parse_qsl(urllib.parse.urlsplit(login.headers["location"]).query)
        )

        response = client.get(
            "/auth/callback", params={"state": params["state"], "code": "bad"}
        )

        assert response.status_code == 400
        assert response.json()["metadata"]["exception_type"] == "ExchangeFailedError"


class TestPages:
    """Test navigation and the browser page"""

    @pytest.mark.parametrize("path", ["/", "/index"])
    def test_index_redirects_to_browser(self, logged_in_client, path):
        response = logged_in_client.get(path)

        assert response.status_code == 307
        assert response.headers["location"] == "/browser/"

    def test_browser_page_lists_groups(self, logged_in_client):
        response = logged_in_client.get("/browser/")

        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]
        assert "addBigWigsTrack('g-bw')" in response.text
        assert "sampleA" in response.text
        assert "addBamTrack('g-bam')" in response.text
        assert "run1.bam" in response.text
        assert "g-empty" not in response.text
        assert "/static/js/initIGV.js" in response.text


class TestDataRoutes:
    """Test the JSON endpoints igv.js calls"""

    def test_default_track_config(self, logged_in_client):
        response = logged_in_client.get("/data/default")

        assert response.status_code == 200
        data = response.json()
        reference = data["reference"]
        assert reference["fastaURL"]
        assert reference["indexURL"]
        assert reference["tracks"][0]["format"] == "gff3"
        assert data["tracks"] == []

    def test_bigwigs_tracks(self, logged_in_client):
        response = logged_in_client.get("/data/bigWigsTrack/g-bw")

        assert response.status_code == 200
        assert [track["name"] for track in response.json()] == [
            "sampleA_fwd",
            "sampleA_rev",
        ]
        assert all(track["type"] == "wig" for track in response.json())

    def test_bam_tracks(self, logged_in_client):
        response = logged_in_client.get("/data/bamTrack/g-bam")

        assert response.status_code == 200
        (track,) = response.json()
        assert track["url"].endswith("run1.bam?sig=x")
        assert track["indexURL"].endswith("run1.bam.bai?sig=x")
        assert "guidelines" not in track

    @pytest.mark.parametrize(
        "error", [NotFoundError("missing"), CatalogUnavailableError("down")]
    )
    def test_catalog_errors_are_bad_requests(self, logged_in_client, mock_catalog, error):
        mock_catalog.download_links_for.side_effect = error

        response = logged_in_client.get("/data/bamTrack/g-bam")

        assert response.status_code == 400
        body = response.json()
        assert body["status"] == "error"
        assert body["metadata"]["exception_type"] == type(error).__name__
