import zipfile
from unittest.mock import Mock

import pytest
import requests

from manifestor import utils

pytestmark = pytest.mark.unit


def _response(status=200, payload=None, headers=None):
    response = Mock(spec=requests.Response)
    response.status_code = status
    response.headers = headers or {}
    response.json.return_value = payload
    if status >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(
            f"{status} error", response=response
        )
    else:
        response.raise_for_status.return_value = None
    return response


class TestMakeGithubApiRequest:
    def test_sends_bearer_token(self, mocker):
        get = mocker.patch("manifestor.utils.requests.get", return_value=_response())

        utils.make_github_api_request("https://api/x", github_token=" tok ")

        headers = get.call_args.kwargs["headers"]
        assert headers["Authorization"] == "Bearer tok"
        assert headers["User-Agent"].startswith("manifestor/")

    def test_uses_environment_token(self, mocker, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", "envtok")
        get = mocker.patch("manifestor.utils.requests.get", return_value=_response())

        utils.make_github_api_request("https://api/x")

        assert get.call_args.kwargs["headers"]["Authorization"] == "Bearer envtok"

    def test_retries_without_token_on_401(self, mocker):
        get = mocker.patch(
            "manifestor.utils.requests.get",
            side_effect=[_response(401), _response(200, {"ok": True})],
        )

        response = utils.make_github_api_request("https://api/x", github_token="bad")

        assert response.json() == {"ok": True}
        assert get.call_count == 2
        assert "Authorization" not in get.call_args_list[1].kwargs["headers"]

    def test_rate_limit_exhaustion_raises_descriptive_error(self, mocker):
        mocker.patch(
            "manifestor.utils.requests.get",
            return_value=_response(
                403, headers={"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "0"}
            ),
        )

        with pytest.raises(requests.HTTPError, match="rate limit exceeded"):
            utils.make_github_api_request("https://api/x")

    def test_sleeps_between_calls(self, mocker):
        mocker.patch("manifestor.utils.requests.get", return_value=_response())
        sleep = mocker.patch("manifestor.utils.time.sleep")

        utils.make_github_api_request("https://api/x")

        sleep.assert_called_once_with(utils.API_CALL_DELAY)


class TestFetchJsonWithRetry:
    def test_returns_payload(self, mocker):
        mocker.patch(
            "manifestor.utils.make_github_api_request",
            return_value=_response(payload={"a": 1}),
        )

        assert utils.fetch_json_with_retry("https://api/x") == {"a": 1}

    def test_not_found_is_not_retried(self, mocker):
        request = mocker.patch(
            "manifestor.utils.make_github_api_request",
            side_effect=requests.HTTPError("404", response=_response(404)),
        )

        assert utils.fetch_json_with_retry("https://api/x") is None
        request.assert_called_once()

    def test_retries_with_linear_delay_then_succeeds(self, mocker):
        sleep = mocker.patch("manifestor.utils.time.sleep")
        mocker.patch(
            "manifestor.utils.make_github_api_request",
            side_effect=[
                requests.ConnectionError("reset"),
                requests.HTTPError("500", response=_response(500)),
                _response(payload=[1]),
            ],
        )

        assert utils.fetch_json_with_retry("https://api/x", retry_delay=2.0) == [1]
        assert [c.args[0] for c in sleep.call_args_list] == [2.0, 4.0]

    def test_gives_up_after_max_attempts(self, mocker):
        sleep = mocker.patch("manifestor.utils.time.sleep")
        bad_body = _response()
        bad_body.json.side_effect = ValueError("no json")
        request = mocker.patch(
            "manifestor.utils.make_github_api_request", return_value=bad_body
        )

        assert utils.fetch_json_with_retry("https://api/x", max_attempts=3) is None
        assert request.call_count == 3
        assert sleep.call_count == 2


class TestDownloadFileWithRetry:
    def _session(self, mocker, chunks=None, error=None):
        session = Mock()
        if error is not None:
            session.get.side_effect = error
        else:
            response = Mock()
            response.raise_for_status.return_value = None
            response.iter_content.return_value = chunks or []
            session.get.return_value = response
        mocker.patch("manifestor.utils.requests.Session", return_value=session)
        return session

    def test_writes_file_atomically(self, mocker, tmp_path):
        self._session(mocker, chunks=[b"ab", b"", b"cd"])
        target = tmp_path / "sub" / "core.tar.gz"

        assert utils.download_file_with_retry("https://x/core.tar.gz", str(target))

        assert target.read_bytes() == b"abcd"
        assert [p.name for p in target.parent.iterdir()] == ["core.tar.gz"]

    def test_valid_zip_is_accepted(self, mocker, tmp_path):
        archive = tmp_path / "source.zip"
        with zipfile.ZipFile(archive, "w") as zf:
            zf.writestr("sing-box.exe", b"exe")
        self._session(mocker, chunks=[archive.read_bytes()])

        assert utils.download_file_with_retry("https://x/a.zip", str(tmp_path / "a.zip"))

    def test_corrupt_zip_is_rejected(self, mocker, tmp_path):
        self._session(mocker, chunks=[b"not a zip"])
        target = tmp_path / "a.zip"

        assert not utils.download_file_with_retry("https://x/a.zip", str(target))
        assert not target.exists()
        assert list(tmp_path.iterdir()) == []

    def test_network_error_returns_false(self, mocker, tmp_path):
        session = self._session(mocker, error=requests.ConnectionError("down"))

        assert not utils.download_file_with_retry("https://x/a", str(tmp_path / "a"))
        session.close.assert_called_once()
