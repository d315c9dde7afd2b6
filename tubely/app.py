"""HTTP application: configuration, routing and request handlers."""

from __future__ import annotations

import argparse
import functools
import html
import logging
import mimetypes
import os
import posixpath
import re
import sqlite3
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping, Optional
from wsgiref.simple_server import make_server

from .database import Client
from .responses import Response, error_response, json_response, no_cache

logger = logging.getLogger(__name__)

_TEXT = "text/plain; charset=utf-8"

_REQUIRED_SETTINGS = (
    ("JWT_SECRET", "jwt_secret"),
    ("PLATFORM", "platform"),
    ("FILEPATH_ROOT", "filepath_root"),
    ("ASSETS_ROOT", "assets_root"),
    ("S3_BUCKET", "s3_bucket"),
    ("S3_REGION", "s3_region"),
    ("S3_CF_DISTRO", "s3_cf_distribution"),
    ("PORT", "port"),
)


class ConfigError(Exception):
    """Raised when the server cannot be configured."""


@dataclass
class ApiConfig:
    """Server settings and the handlers that depend on them."""

    db: Client
    jwt_secret: str
    platform: str
    filepath_root: str
    assets_root: str
    s3_bucket: str
    s3_region: str
    s3_cf_distribution: str
    port: str

    def ensure_assets_dir(self) -> None:
        """Create the assets directory if it does not exist."""
        if not os.path.exists(self.assets_root):
            os.mkdir(self.assets_root, 0o755)

    def handle_reset(self) -> Response:
        """Empty the database; only allowed on the dev platform."""
        if self.platform != "dev":
            return Response(
                403,
                {"Content-Type": _TEXT},
                b"Reset is only allowed in dev environment.",
            )
        try:
            self.db.reset()
        except sqlite3.Error as exc:
            return error_response(500, "Couldn't reset database", exc)
        return Response(200, {"Content-Type": _TEXT}, b"Database reset to initial state")

    def handle_video_get(self, video_id: Any) -> Response:
        """Return one video's metadata as JSON."""
        try:
            parsed = uuid.UUID(str(video_id))
        except ValueError as exc:
            return error_response(400, "Invalid video ID", exc)
        try:
            video = self.db.get_video(parsed)
        except sqlite3.Error as exc:
            return error_response(404, "Couldn't get video", exc)
        if video is None:
            return error_response(404, "Couldn't get video", None)
        return json_response(200, video)


def load_config(environ: Mapping[str, str]) -> ApiConfig:
    """Build the configuration from environment variables and open the database."""
    db_path = environ.get("DB_PATH", "")
    if not db_path:
        raise ConfigError("DB_URL must be set")
    settings = {}
    for variable, name in _REQUIRED_SETTINGS:
        value = environ.get(variable, "")
        if not value:
            raise ConfigError(f"{variable} environment variable is not set")
        settings[name] = value
    try:
        db = Client(db_path)
    except sqlite3.Error as exc:
        raise ConfigError(f"Couldn't connect to database: {exc}") from exc
    return ApiConfig(db=db, **settings)


def _not_found() -> Response:
    return Response(404, {"Content-Type": _TEXT}, b"404 page not found\n")


def _redirect(location: str) -> Response:
    body = f'<a href="{html.escape(location)}">Moved Permanently</a>.\n\n'
    return Response(
        301,
        {"Location": location, "Content-Type": "text/html; charset=utf-8"},
        body.encode("utf-8"),
    )


def _directory_listing(directory: Path) -> Response:
    lines = ["<!doctype html>", '<meta name="viewport" content="width=device-width">', "<pre>"]
    for entry in sorted(directory.iterdir(), key=lambda p: p.name):
        name = entry.name + ("/" if entry.is_dir() else "")
        lines.append(f'<a href="{html.escape(name)}">{html.escape(name)}</a>')
    lines.append("</pre>")
    return Response(
        200,
        {"Content-Type": "text/html; charset=utf-8"},
        ("\n".join(lines) + "\n").encode("utf-8"),
    )


def _file_response(path: Path) -> Response:
    try:
        data = path.read_bytes()
    except OSError:
        return _not_found()
    content_type, _ = mimetypes.guess_type(path.name)
    if content_type is None:
        content_type = "application/octet-stream"
    elif content_type.startswith("text/"):
        content_type += "; charset=utf-8"
    return Response(200, {"Content-Type": content_type}, data)


def _serve_directory(root: str, relative: str, request_path: str) -> Response:
    """Serve a file below ``root``; requests cannot climb out of it."""
    cleaned = posixpath.normpath("/" + relative)
    parts = [part for part in cleaned.split("/") if part]
    target = Path(root).joinpath(*parts)
    if target.is_dir():
        if not relative.endswith("/"):
            return _redirect(request_path + "/")
        index = target / "index.html"
        if index.is_file():
            return _file_response(index)
        return _directory_listing(target)
    if target.is_file():
        return _file_response(target)
    return _not_found()


class _Application:
    """WSGI application routing requests to the configured handlers."""

    def __init__(self, config: ApiConfig) -> None:
        self.config = config
        self._static = (
            ("/app", functools.partial(_serve_directory, config.filepath_root)),
            (
                "/assets",
                no_cache(functools.partial(_serve_directory, config.assets_root)),
            ),
        )
        self._routes: tuple[tuple[str, re.Pattern[str], Callable[..., Response]], ...] = (
            ("GET", re.compile(r"/api/videos/([^/]+)"), config.handle_video_get),
            ("POST", re.compile(r"/admin/reset"), config.handle_reset),
        )

    def dispatch(self, method: str, path: str) -> Response:
        """Route a request to its handler and return the response."""
        for prefix, serve in self._static:
            if path == prefix:
                return _redirect(prefix + "/")
            if path.startswith(prefix + "/"):
                return serve(path[len(prefix):], path)

        allowed: list[str] = []
        for route_method, pattern, handler in self._routes:
            match = pattern.fullmatch(path)
            if match is None:
                continue
            if method == route_method or (route_method == "GET" and method == "HEAD"):
                return handler(*match.groups())
            allowed.append(route_method)
            if route_method == "GET":
                allowed.append("HEAD")
        if allowed:
            return Response(
                405,
                {"Allow": ", ".join(sorted(set(allowed))), "Content-Type": _TEXT},
                b"Method Not Allowed\n",
            )
        return _not_found()

    def __call__(
        self, environ: dict[str, Any], start_response: Callable[..., Any]
    ) -> Iterable[bytes]:
        method = environ.get("REQUEST_METHOD", "GET").upper()
        raw_path = environ.get("PATH_INFO", "") or "/"
        path = raw_path.encode("latin-1").decode("utf-8", "replace")
        response = self.dispatch(method, path)
        body = b"" if method == "HEAD" else response.body
        headers = dict(response.headers)
        headers["Content-Length"] = str(len(response.body))
        start_response(response.status_line, list(headers.items()))
        return [body]


def make_app(config: ApiConfig) -> _Application:
    """Return the WSGI application for ``config``."""
    return _Application(config)


def _read_env_file(path: str) -> dict[str, str]:
    """Read KEY=VALUE lines from an env file; a missing file gives nothing."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError:
        return {}
    values: dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
            value = value[1:-1]
        else:
            value = value.split(" #", 1)[0].rstrip()
        if key:
            values[key] = value
    return values


def main(argv: Optional[list[str]] = None) -> int:
    """Configure and run the HTTP server; return the exit status."""
    parser = argparse.ArgumentParser(prog="tubely", description="Serve the video API.")
    parser.add_argument("--env-file", default=".env", help="file of KEY=VALUE settings")
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")

    environ = _read_env_file(args.env_file)
    environ.update(os.environ)
    try:
        config = load_config(environ)
    except ConfigError as exc:
        logger.error("%s", exc)
        return 1

    try:
        try:
            config.ensure_assets_dir()
        except OSError as exc:
            logger.error("Couldn't create assets directory: %s", exc)
            return 1
        app = make_app(config)
        with make_server("", int(config.port), app) as server:
            logger.info("Serving on: http://localhost:%s/app/", config.port)
            server.serve_forever()
    except KeyboardInterrupt:
        return 0
    except (OSError, ValueError) as exc:
        logger.error("%s", exc)
        return 1
    finally:
        config.db.close()
    return 0