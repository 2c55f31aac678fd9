from onenote_repository.logging.graph_logging import (
    REDACTED,
    mask_form,
    mask_headers,
    mask_url,
    summarize_request_kwargs,
    truncate_text,
)


def test_mask_headers():
    masked = mask_headers({"Authorization": "Bearer x", "Accept": "text/html"})

    assert masked == {"Authorization": REDACTED, "Accept": "text/html"}


def test_mask_form_and_url():
    assert mask_form({"client_secret": "s", "grant_type": "code"}) == {
        "client_secret": REDACTED,
        "grant_type": "code",
    }
    assert "secret" not in mask_url("https://x.test/cb?code=secret&state=1")
    assert mask_url("https://x.test/a") == "https://x.test/a"


def test_truncate_text():
    assert truncate_text(None) == ""
    assert truncate_text("abcdef", limit=3) == "abc...(truncated 3 chars)"


def test_summarize_multipart_without_content():
    summary = summarize_request_kwargs(
        {"files": {"Presentation": ("p.html", b"<html/>", "text/html")}, "params": None}
    )

    assert summary == {
        "multipart_parts": [
            {"part": "Presentation", "filename": "p.html", "content_type": "text/html", "size": 7}
        ]
    }
