from __future__ import annotations

import base64
import logging
from dataclasses import replace

from meeting_backdrop.common.config import Settings
from meeting_backdrop.server.imagen import PLACEHOLDER_JPEG_B64

from conftest import FakeGenerator, make_client


def test_health_ok(settings: Settings) -> None:
    client = make_client(settings)
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"ok": True}


def test_mock_mode_returns_placeholder(mock_settings: Settings) -> None:
    client = make_client(mock_settings)
    r = client.post("/api/generate-image", json={"prompt": "a minimalist home office with a plant"})
    assert r.status_code == 200
    assert r.json() == {"imageBytes": PLACEHOLDER_JPEG_B64}
    image = r.json()["imageBytes"]
    assert len(image) == 484
    assert len(image) % 4 == 0
    assert base64.b64decode(image, validate=True).startswith(b"\xff\xd8")


def test_mock_mode_ignores_credential(mock_settings: Settings) -> None:
    gen = FakeGenerator()
    client = make_client(replace(mock_settings, api_key="real-key"), gen)
    r = client.post("/api/generate-image", json={"prompt": "a beach at dusk"})
    assert r.status_code == 200
    assert r.json()["imageBytes"] == PLACEHOLDER_JPEG_B64
    assert gen.prompts == []


def test_empty_prompt_rejected_without_upstream_call(settings: Settings) -> None:
    gen = FakeGenerator()
    client = make_client(settings, gen)
    for body in ({"prompt": ""}, {"prompt": "   \n\t"}, {}, {"prompt": None}, {"prompt": 42}, ["a list"]):
        r = client.post("/api/generate-image", json=body)
        assert r.status_code == 400
        assert r.json() == {"error": "Prompt is required"}
    assert gen.prompts == []


def test_malformed_json_counts_as_missing_prompt(settings: Settings) -> None:
    client = make_client(settings, FakeGenerator())
    r = client.post(
        "/api/generate-image",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )
    assert r.status_code == 400
    assert r.json() == {"error": "Prompt is required"}


def test_too_long_prompt_rejected_before_mock(mock_settings: Settings) -> None:
    client = make_client(mock_settings)
    r = client.post("/api/generate-image", json={"prompt": "a" * 2001})
    assert r.status_code == 400
    assert r.json() == {"error": "Prompt must be 2000 characters or fewer"}


def test_length_limit_is_measured_after_trimming(mock_settings: Settings) -> None:
    client = make_client(mock_settings)
    r = client.post("/api/generate-image", json={"prompt": "  " + "a" * 2000 + "  "})
    assert r.status_code == 200


def test_configured_max_reflected_in_message(mock_settings: Settings) -> None:
    client = make_client(replace(mock_settings, max_prompt_length=50))
    r = client.post("/api/generate-image", json={"prompt": "b" * 51})
    assert r.status_code == 400
    assert r.json()["error"] == "Prompt must be 50 characters or fewer"


def test_no_credential_returns_503(settings: Settings) -> None:
    client = make_client(settings)
    r = client.post("/api/generate-image", json={"prompt": "mountain lodge"})
    assert r.status_code == 503
    assert r.json() == {"error": "Image generation service is temporarily unavailable"}


def test_success_relays_base64_and_wraps_prompt(settings: Settings) -> None:
    gen = FakeGenerator(b"\xff\xd8\xffreal-jpeg")
    client = make_client(settings, gen)
    r = client.post("/api/generate-image", json={"prompt": "  a library with tall shelves  "})
    assert r.status_code == 200
    assert base64.b64decode(r.json()["imageBytes"]) == b"\xff\xd8\xffreal-jpeg"
    assert len(gen.prompts) == 1
    sent = gen.prompts[0]
    assert "The scene is: a library with tall shelves." in sent
    assert "16:9" in sent
    assert "Avoid text and logos." in sent


def test_empty_upstream_result_returns_502(settings: Settings) -> None:
    for result in (None, b""):
        client = make_client(settings, FakeGenerator(result))
        r = client.post("/api/generate-image", json={"prompt": "city skyline"})
        assert r.status_code == 502
        assert r.json() == {"error": "Image generation failed. Please try again."}


def test_upstream_exception_detail_in_development(settings: Settings) -> None:
    client = make_client(settings, FakeGenerator(RuntimeError("quota exceeded")))
    r = client.post("/api/generate-image", json={"prompt": "forest cabin"})
    assert r.status_code == 500
    assert r.json() == {"error": "quota exceeded"}


def test_upstream_exception_generic_in_production() -> None:
    prod = Settings(production=True, allowed_origins=("https://app.example",), static_dir=None)
    client = make_client(prod, FakeGenerator(RuntimeError("quota exceeded")))
    r = client.post("/api/generate-image", json={"prompt": "forest cabin"})
    assert r.status_code == 500
    assert r.json() == {"error": "Image generation failed. Please try again."}


def test_rate_limit_allows_ten_then_429(mock_settings: Settings) -> None:
    client = make_client(mock_settings)
    for i in range(10):
        r = client.post("/api/generate-image", json={"prompt": f"scene {i}"})
        assert r.status_code == 200
        assert r.headers["RateLimit-Remaining"] == str(9 - i)
    r = client.post("/api/generate-image", json={"prompt": "one too many"})
    assert r.status_code == 429
    assert r.json() == {"error": "Too many requests. Please try again later."}
    assert int(r.headers["Retry-After"]) >= 1

    health = client.get("/health")
    assert health.status_code == 200
    assert health.json() == {"ok": True}


def test_rate_limit_precedes_validation(settings: Settings) -> None:
    client = make_client(replace(settings, rate_limit_max=1), FakeGenerator())
    assert client.post("/api/generate-image", json={"prompt": ""}).status_code == 400
    r = client.post("/api/generate-image", json={"prompt": ""})
    assert r.status_code == 429


def test_oversized_body_returns_413(mock_settings: Settings) -> None:
    client = make_client(replace(mock_settings, max_body_bytes=1024))
    r = client.post(
        "/api/generate-image",
        content=b'{"prompt": "' + b"a" * 2048 + b'"}',
        headers={"Content-Type": "application/json"},
    )
    assert r.status_code == 413
    assert r.json() == {"error": "Request body too large"}


def test_default_body_cap_is_two_megabytes(mock_settings: Settings) -> None:
    client = make_client(mock_settings)
    r = client.post(
        "/api/generate-image",
        content=b"x" * (2 * 1024 * 1024 + 1),
        headers={"Content-Type": "application/json"},
    )
    assert r.status_code == 413


def test_development_cors_reflects_any_origin(mock_settings: Settings) -> None:
    client = make_client(mock_settings)
    r = client.get("/health", headers={"Origin": "http://localhost:5173"})
    assert r.headers["access-control-allow-origin"] == "http://localhost:5173"


def test_production_cors_uses_allow_list() -> None:
    prod = Settings(production=True, mock_ai=True, allowed_origins=("https://app.example",), static_dir=None)
    client = make_client(prod)

    ok = client.post("/api/generate-image", json={"prompt": "loft"}, headers={"Origin": "https://app.example"})
    assert ok.headers["access-control-allow-origin"] == "https://app.example"

    foreign = client.get("/health", headers={"Origin": "https://evil.example"})
    assert foreign.status_code == 403
    assert foreign.json() == {"error": "Not allowed by CORS"}
    assert "access-control-allow-origin" not in foreign.headers

    no_origin = client.get("/health")
    assert no_origin.json() == {"ok": True}

    preflight = client.options(
        "/api/generate-image",
        headers={"Origin": "https://evil.example", "Access-Control-Request-Method": "POST"},
    )
    assert preflight.status_code == 403


def test_security_headers_per_mode(mock_settings: Settings) -> None:
    dev = make_client(mock_settings).get("/health")
    assert dev.headers["x-content-type-options"] == "nosniff"
    assert dev.headers["x-frame-options"] == "SAMEORIGIN"
    assert "content-security-policy" not in dev.headers
    assert "cross-origin-embedder-policy" not in dev.headers

    prod_settings = Settings(production=True, allowed_origins=("https://app.example",), static_dir=None)
    prod = make_client(prod_settings).get("/health")
    csp = prod.headers["content-security-policy"]
    assert "default-src 'self'" in csp
    assert "img-src 'self' data: https:" in csp
    assert "strict-transport-security" in prod.headers


def test_bracket_query_keys_are_not_nested(mock_settings: Settings) -> None:
    client = make_client(mock_settings)
    r = client.post(
        "/api/generate-image?__proto__[polluted]=1&prompt[x]=y",
        json={"prompt": "harbor view"},
    )
    assert r.status_code == 200
    assert r.json()["imageBytes"] == PLACEHOLDER_JPEG_B64


def test_static_files_with_spa_fallback(tmp_path, mock_settings: Settings) -> None:
    (tmp_path / "index.html").write_text("<html>backdrop</html>", encoding="utf-8")
    (tmp_path / "app.js").write_text("console.log('hi')", encoding="utf-8")
    client = make_client(replace(mock_settings, static_dir=str(tmp_path)))

    assert client.get("/").text == "<html>backdrop</html>"
    assert client.get("/app.js").text == "console.log('hi')"
    assert client.get("/some/client/route").text == "<html>backdrop</html>"
    assert client.get("/api/unknown").status_code == 404
    assert client.get("/health").json() == {"ok": True}


def test_production_rejects_foreign_origin_before_upstream() -> None:
    gen = FakeGenerator()
    prod = Settings(production=True, api_key="k", allowed_origins=("https://app.example",), static_dir=None)
    client = make_client(prod, gen)

    r = client.post(
        "/api/generate-image",
        content=b'{"prompt": "x"}',
        headers={"Origin": "https://evil.example", "Content-Type": "text/plain"},
    )
    assert r.status_code == 403
    assert r.json() == {"error": "Not allowed by CORS"}
    assert "access-control-allow-origin" not in r.headers
    assert gen.prompts == []


def test_non_json_content_type_reads_as_empty(settings: Settings) -> None:
    gen = FakeGenerator()
    client = make_client(settings, gen)
    for content_type in ("text/plain", "application/x-www-form-urlencoded", None):
        headers = {"Content-Type": content_type} if content_type else {}
        r = client.post("/api/generate-image", content=b'{"prompt": "x"}', headers=headers)
        assert r.status_code == 400
        assert r.json() == {"error": "Prompt is required"}
    r = client.post(
        "/api/generate-image",
        content=b'{"prompt": "x"}',
        headers={"Content-Type": "application/json; charset=utf-8"},
    )
    assert r.status_code == 200
    assert gen.prompts and gen.prompts[0].count("The scene is: x.") == 1


def test_streamed_oversized_body_returns_413(mock_settings: Settings) -> None:
    client = make_client(replace(mock_settings, max_body_bytes=1024))

    def chunks():
        for _ in range(4):
            yield b"a" * 1000

    r = client.post("/api/generate-image", content=chunks(), headers={"Content-Type": "application/json"})
    assert "content-length" not in {k.lower() for k in r.request.headers}
    assert r.status_code == 413
    assert r.json() == {"error": "Request body too large"}


def test_streamed_body_under_cap_is_accepted(mock_settings: Settings) -> None:
    client = make_client(replace(mock_settings, max_body_bytes=1024))

    def chunks():
        yield b'{"prompt": '
        yield b'"a streamed scene"}'

    r = client.post("/api/generate-image", content=chunks(), headers={"Content-Type": "application/json"})
    assert r.status_code == 200
    assert r.json()["imageBytes"] == PLACEHOLDER_JPEG_B64


def test_one_log_line_per_failure(caplog, settings: Settings) -> None:
    client = make_client(replace(settings, rate_limit_max=2), FakeGenerator(RuntimeError("boom")))
    caplog.set_level(logging.INFO, logger="meeting_backdrop.server.app")

    def app_records() -> list[logging.LogRecord]:
        return [rec for rec in caplog.records if rec.name == "meeting_backdrop.server.app"]

    for prompt, status in (("", 400), ("desk", 500), ("desk", 429)):
        caplog.clear()
        r = client.post("/api/generate-image", json={"prompt": prompt})
        assert r.status_code == status
        records = app_records()
        assert len(records) == 1
        expected = logging.ERROR if status >= 500 else logging.WARNING
        assert records[0].levelno == expected
