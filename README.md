# tubely

A small HTTP server for video metadata. It keeps users, refresh tokens and
video records in a SQLite database, serves a static front-end under `/app/`
and asset files under `/assets/` (always with `Cache-Control: no-store`), and
returns a video's metadata as JSON. Separate helpers use `ffmpeg` and
`ffprobe` to prepare MP4 files for streaming and to classify them as
landscape (16:9), portrait (9:16) or other.

## Installation

```
pip install .
```

The helpers in `tubely.media` that run external tools need `ffmpeg` and
`ffprobe` on the `PATH`. The server itself does not call them.

## Configuration

`tubely` reads its settings from the environment, and from an env file
(`.env` in the working directory by default) of `KEY=VALUE` lines. Values in
the real environment take precedence over the file. Every one of these must
be set to a non-empty value, or the command logs the missing name and exits
with status 1:

| Variable        | Meaning                                                    |
|-----------------|------------------------------------------------------------|
| `DB_PATH`       | Path of the SQLite database file (created if missing)      |
| `JWT_SECRET`    | Required, but not used by any route the server has         |
| `PLATFORM`      | `dev` enables `POST /admin/reset`                          |
| `FILEPATH_ROOT` | Directory served under `/app/`                             |
| `ASSETS_ROOT`   | Directory served under `/assets/` (created if missing)     |
| `S3_BUCKET`     | Required, but not used by any route the server has         |
| `S3_REGION`     | Required, but not used by any route the server has         |
| `S3_CF_DISTRO`  | Required, but not used by any route the server has         |
| `PORT`          | Port to listen on                                          |

Example `.env`:

```
DB_PATH=tubely.db
JWT_SECRET=secret
PLATFORM=dev
FILEPATH_ROOT=./app
ASSETS_ROOT=./assets
S3_BUCKET=tubely-videos
S3_REGION=us-east-1
S3_CF_DISTRO=https://cdn.example.com
PORT=8091
```

## Running

```
tubely
tubely --env-file path/to/settings.env
```

The server logs `Serving on: http://localhost:<PORT>/app/` and runs until
interrupted.

## Routes

| Method         | Path                 | What it does                                              |
|----------------|----------------------|-----------------------------------------------------------|
| any            | `/app/...`           | Files from `FILEPATH_ROOT`; `index.html` or a listing for directories |
| any            | `/assets/...`        | Files from `ASSETS_ROOT`, with `Cache-Control: no-store`  |
| `GET`, `HEAD`  | `/api/videos/{id}`   | The video's metadata as JSON; 400 for a malformed id, 404 if unknown |
| `POST`         | `/admin/reset`       | Deletes every row; 403 unless `PLATFORM` is `dev`         |

`/app` and `/assets` without a trailing slash redirect to the slashed path.
A known path with the wrong method answers 405 with an `Allow` header; any
other path answers 404. Error bodies from the API routes have the form
`{"error": "<message>"}`.

The WSGI application can be used without the built-in server:

```python
from tubely.app import load_config, make_app

config = load_config({"DB_PATH": "tubely.db", "JWT_SECRET": "secret", ...})
config.ensure_assets_dir()
application = make_app(config)
```

`load_config` raises `ConfigError` when a setting is missing or the database
cannot be opened.

## Using the database directly

```python
from tubely.database import Client

password = "password"
with Client("tubely.db") as db:
    user = db.create_user("alice@example.com", password)
    video = db.create_video("My clip", "A short clip", user.id)
    video.thumbnail_url = "https://cdn.example.com/thumb.png"
    db.update_video(video)
    print([v.to_dict() for v in db.get_videos(user.id)])
```

`Client` stores passwords exactly as given; hash them before calling
`create_user`. Lookups (`get_user`, `get_user_by_email`,
`get_user_by_refresh_token`, `get_video`, `get_refresh_token`) return `None`
when nothing matches. Refresh tokens are managed with `create_refresh_token`,
`revoke_refresh_token` and `delete_refresh_token`.

## Video helpers

```python
from tubely.media import aspect_ratio_from_dimensions, orientation_prefix

ratio = aspect_ratio_from_dimensions(1920, 1080)   # "16:9"
orientation_prefix(ratio)                          # "landscape"
```

- `get_video_aspect_ratio(path)` runs `ffprobe` and classifies the first
  stream's dimensions, within a tolerance of 0.01.
- `parse_ffprobe_output(data)` extracts `(width, height)` from `ffprobe` JSON.
- `process_video_for_fast_start(path)` re-encodes the file with
  `-movflags +faststart` to `<path>.processing.mp4` and returns that path.

All of them raise `MediaError` on failure.

## What it does not do

The server has no routes for signing up, logging in, refreshing or revoking
tokens, creating, listing or deleting videos, or uploading thumbnails and
videos. It issues and checks no access tokens, and it uploads nothing to
remote storage: the `JWT_SECRET` and `S3_*` settings are required at start-up
but nothing uses them. The database and media helpers above can be used to
build such features.

## Tests

```
pip install .[test]
pytest
```