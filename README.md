# rayrelay

rayrelay is a small ASGI server that presents an OpenAI-compatible API and
relays chat requests to the Raycast AI chat backend. Any client that can talk to
the OpenAI chat completions API can use the models your Raycast account offers
through it.

## Installation

```
pip install rayrelay
```

For running the test suite:

```
pip install "rayrelay[test]"
pytest
```

## Running

Configuration is read from environment variables:

| Variable               | Required | Meaning                                                |
|------------------------|----------|--------------------------------------------------------|
| `RAYCAST_BEARER_TOKEN` | yes      | Bearer token sent to the Raycast backend               |
| `API_KEY`              | no       | Comma-separated list of keys that clients must present |
| `PORT`                 | no       | Port to listen on, `8080` by default                   |

Start the server:

```
RAYCAST_BEARER_TOKEN=token API_KEY=placeholder rayrelay
```

The `rayrelay` command takes no options besides `--help`. It listens on all
interfaces (`0.0.0.0`) through uvicorn. It logs an error and exits with status 1
if `RAYCAST_BEARER_TOKEN` is missing or `PORT` is not a number.

If `API_KEY` is unset or empty, every request is accepted. Otherwise clients must
send `Authorization: Bearer <key>`, where `<key>` matches one of the listed keys.
Spaces around the listed keys are ignored. Requests without a valid key get a 401
with an `authentication_error`.

## Endpoints

- `POST /v1/chat/completions`: OpenAI chat completions.
  - If `model` is omitted it defaults to `claude-3-7-sonnet-latest`.
  - An omitted or zero `temperature` becomes `0.5`.
  - A `system` message in first position becomes the system instruction, which is
    `markdown` otherwise. Later system messages and roles other than `user` and
    `assistant` are dropped. Content may be a string or a list of parts; only
    `text` parts are kept.
  - A model that is not in the upstream model list is sent as
    `claude-3-7-sonnet-latest` from provider `anthropic`.
  - With `"stream": true` the reply is a server-sent event stream of
    `chat.completion.chunk` objects, ending with `data: [DONE]`. Otherwise a single
    `chat.completion` object is returned.
  - A body that cannot be read, or an empty `messages` list, gives a 400. An upstream
    status other than 200 is passed back with the upstream body in the error
    message.
- `GET /v1/models`: the upstream models in OpenAI list format, sorted by id. The
  list is cached for six hours. If a refresh fails, the expired list is served
  instead. If nothing was ever fetched, the request fails with a 500.
- `GET /v1/refresh-models`: expires the model cache and fetches the list again.
  It always answers `{"status": "success", "message": "Model cache refreshed"}`.
- `GET /health`: returns `{"status": "ok"}`.

CORS headers (`Access-Control-Allow-Origin: *`) are added to every response.
`OPTIONS` requests are answered with an empty 200 before the key check.

## Example

```
curl http://localhost:8080/v1/chat/completions \
  -H "Authorization: Bearer placeholder" \
  -H "Content-Type: application/json" \
  -d '{"model": "claude-3-7-sonnet-latest", "messages": [{"role": "user", "content": "Hello"}]}'
```

## Embedding

`rayrelay.app.create_app(config, client=None)` returns a Starlette application that
any ASGI server can run. It takes an optional `httpx.AsyncClient`; without one, the
application opens a client for its own lifetime.

```python
from rayrelay.app import create_app
from rayrelay.config import load_config

app = create_app(load_config())
```

`rayrelay.config.load_config()` reads the environment, or a mapping passed to it,
and raises `ConfigError` when the token is missing. `rayrelay.messages` holds the
payload conversions: `convert_messages`, `parse_sse_response`,
`build_raycast_request`, `build_chat_completion`, `build_stream_chunk` and
`StreamTranslator`. `rayrelay.models` holds `ModelCache`, `fetch_models` and
`provider_info`.

## Limitations

- Token usage in non-streaming replies is not measured. It is always reported as
  10 prompt and 10 completion tokens, and `finish_reason` is always `length`.
- Tools and function calling are not passed upstream; the tool list sent is always
  empty.
- Request options other than `messages`, `model`, `temperature` and `stream` are
  ignored.