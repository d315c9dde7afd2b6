import logging
import uuid

from tubely.database import User
from tubely.responses import Response, error_response, json_response, no_cache


def test_json_response_sets_status_and_content_type():
    response = json_response(201, {"a": 1, "b": [1, 2]})
    assert response.status == 201
    assert response.headers["Content-Type"] == "application/json"
    assert response.json() == {"a": 1, "b": [1, 2]}


def test_json_response_is_compact():
    response = json_response(200, {"a": 1})
    assert response.body == b'{"a":1}'


def test_json_response_escapes_html_characters():
    response = json_response(200, {"text": "<b>&</b>"})
    assert b"<" not in response.body
    assert b"\\u003c" in response.body
    assert response.json() == {"text": "<b>&</b>"}


def test_json_response_uses_to_dict():
    user = User(id=uuid.uuid4(), email="user@example.com")
    response = json_response(200, [user])
    decoded = response.json()
    assert decoded[0]["id"] == str(user.id)
    assert decoded[0]["email"] == "user@example.com"


def test_json_response_unencodable_payload_gives_500(caplog):
    caplog.set_level(logging.ERROR, logger="tubely.responses")
    response = json_response(200, object())
    assert response.status == 500
    assert response.body == b""
    assert "Error marshalling JSON" in caplog.text


def test_error_response_body():
    response = error_response(400, "Invalid ID", None)
    assert response.status == 400
    assert response.json() == {"error": "Invalid ID"}


def test_error_response_logs_server_errors(caplog):
    caplog.set_level(logging.INFO, logger="tubely.responses")
    response = error_response(500, "Couldn't reset database", ValueError("boom"))
    assert response.status == 500
    assert "boom" in caplog.text
    assert "Responding with 5XX error: Couldn't reset database" in caplog.text


def test_error_response_client_error_not_logged_as_5xx(caplog):
    caplog.set_level(logging.INFO, logger="tubely.responses")
    error_response(404, "Couldn't get video", None)
    assert "5XX" not in caplog.text


def test_no_cache_sets_header_and_keeps_response():
    def handler(name):
        return Response(200, {"Content-Type": "text/plain"}, name.encode())

    wrapped = no_cache(handler)
    response = wrapped("hello")
    assert response.headers["Cache-Control"] == "no-store"
    assert response.headers["Content-Type"] == "text/plain"
    assert response.body == b"hello"
    assert response.status == 200


def test_status_line_has_phrase():
    assert Response(404).status_line == "404 Not Found"
    assert Response(204).status_line == "204 No Content"