"""
Tests for the rule-based library assistant.
"""

import pytest

from api.chatbot import RESPONSES, detect_intent, generate_response


class TestDetectIntent:
    """Test cases for keyword routing."""

    @pytest.mark.parametrize("message,intent", [
        ("How do I register?", "register"),
        ("I forgot how to Sign In", "login"),
        ("How can I find a book?", "book_search"),
        ("Can I borrow this book", "book_borrow"),
        ("I want to add a book", "book_upload"),
        ("Tell me about your books", "book_general"),
        ("What upcoming events are there?", "event_upcoming"),
        ("How do I join an event?", "event_register"),
        ("What events do you have", "event_general"),
        ("When are you open?", "hours"),
        ("I need support", "help"),
        ("Hello there", "hello"),
        ("Quantum chromodynamics", "default"),
    ])
    def test_english_intents(self, message, intent):
        assert detect_intent(message) == intent

    def test_register_wins_over_book(self):
        """Registration is checked before book topics."""
        assert detect_intent("register to read a book") == "register"

    def test_register_wins_over_event_register(self):
        assert detect_intent("register for the event") == "register"

    def test_case_insensitive(self):
        assert detect_intent("HELLO") == "hello"

    def test_localized_keywords_need_matching_language(self):
        assert detect_intent("kitob qidirish", "uz") == "book_search"
        assert detect_intent("kitob qidirish", "en") == "default"

    def test_russian_keywords(self):
        assert detect_intent("привет", "ru") == "hello"
        assert detect_intent("где найти книга", "ru") == "book_search"


class TestGenerateResponse:
    """Test cases for reply selection."""

    def test_english_reply(self):
        assert generate_response("hello") == RESPONSES["en"]["hello"]

    def test_uzbek_reply(self):
        assert generate_response("salom", "uz") == RESPONSES["uz"]["hello"]

    def test_unknown_language_falls_back_to_english(self):
        assert generate_response("hello", "fr") == RESPONSES["en"]["hello"]

    def test_every_language_has_every_reply(self):
        keys = set(RESPONSES["en"])
        for language, templates in RESPONSES.items():
            assert set(templates) == keys, language
