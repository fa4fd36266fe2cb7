from callpipe.services.insights import InsightExtractor


def test_extract_is_deterministic_projection():
    text = "  " + "word " * 100
    out = InsightExtractor().extract(text, "English")
    assert out == InsightExtractor().extract(text, "English")
    assert out["summary"] == text.strip()[:200]
    assert out["intent"] == "unknown"
    assert out["action_items"] == []
    assert out["confidence"] == 0
    assert out["language"] == "English"


def test_extract_empty_text():
    out = InsightExtractor().extract(None)
    assert out["summary"] == ""
    assert out["language"] == "unknown"
