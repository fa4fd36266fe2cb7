SUMMARY_CHARS = 200


class InsightExtractor:
    """Placeholder structured projection of a transcript.

    Stands in for a classification model; anything with the same
    ``extract(text, language)`` signature can be handed to the pipeline.
    """

    def extract(self, text, language=None):
        text = (text or "").strip()
        return {
            "intent": "unknown",
            "summary": text[:SUMMARY_CHARS],
            "action_items": [],
            "confidence": 0,
            "language": language or "unknown",
        }
