"""Tests for answer-language detection."""

import pytest


class TestDetectLanguage:
    def test_french_question(self):
        from formateur.common.language import detect_language
        info = detect_language("Quelle est la surface minimum pour un logement de trois personnes ?")
        assert info.code == "fr"
        assert info.detected

    def test_english_question(self):
        from formateur.common.language import detect_language
        info = detect_language("What is the minimum surface area required for a family of three people?")
        assert info.code == "en"
        assert info.detected

    def test_short_text_uses_default(self):
        from formateur.common.language import detect_language
        info = detect_language("APL ?", default="en")
        assert info.code == "en"
        assert not info.detected
        assert info.confidence == 0.0

    def test_empty_text_uses_default(self):
        from formateur.common.language import detect_language
        assert detect_language("").code == "fr"

    def test_unsupported_language_uses_default(self):
        from formateur.common.language import detect_language
        info = detect_language("Wie groß muss die Wohnung für drei Personen mindestens sein?", default="fr")
        assert info.code == "fr"
        assert not info.detected

    def test_undetectable_text_uses_default(self):
        from formateur.common.language import detect_language
        info = detect_language("1234 5678 9012 ???", default="fr")
        assert info.code == "fr"
        assert not info.detected


class TestResolveLanguage:
    def test_fixed_setting_wins(self):
        from formateur.common.language import resolve_language
        assert resolve_language("What is the APL housing benefit exactly?", "fr") == "fr"

    def test_auto_detects(self):
        from formateur.common.language import resolve_language
        assert resolve_language("What is the APL housing benefit exactly?", "auto") == "en"

    def test_unknown_setting_detects(self):
        from formateur.common.language import resolve_language
        assert resolve_language("Ok", "klingon", default="fr") == "fr"
