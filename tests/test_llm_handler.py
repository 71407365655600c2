"""Tests for the LLM analysis and article generation client."""
import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from conftest import make_page
from utils.llm_handler import (
    LLMConfigurationError,
    LLMHandler,
    MalformedModelOutputError,
    parse_generation_result,
)

ARTICLE_JSON = json.dumps({
    'title': "Gardening Tips",
    'metaDescription': "Start your garden today.",
    'content': "<h2>Intro</h2><div class=\"image-prompt\">[Image: a sunny garden]</div>",
    'tags': ["gardening", "tips", "plants", "soil", "compost"],
})


def _completion(text):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


def _handler(text, **kwargs):
    client = MagicMock()
    client.chat.completions.create.return_value = _completion(text)
    return LLMHandler(api_key="test", client=client, **kwargs), client


def _prompt(client):
    return client.chat.completions.create.call_args.kwargs['messages'][0]['content']


class TestParseGenerationResult:

    def test_parses_fenced_json(self):
        result = parse_generation_result(f"```json\n{ARTICLE_JSON}\n```")

        assert result['title'] == "Gardening Tips"
        assert result['meta_description'] == "Start your garden today."
        assert result['tags'] == ["gardening", "tips", "plants", "soil", "compost"]

    def test_parses_plain_fence(self):
        assert parse_generation_result(f"```\n{ARTICLE_JSON}\n```")['title'] == "Gardening Tips"

    def test_parses_bare_json(self):
        assert parse_generation_result(ARTICLE_JSON)['title'] == "Gardening Tips"

    def test_parses_json_surrounded_by_prose(self):
        text = f"Here is your article:\n{ARTICLE_JSON}\nHope it helps!"

        assert parse_generation_result(text)['content'].startswith("<h2>Intro</h2>")

    @pytest.mark.parametrize("text", [
        "",
        "Sorry, I can't help with that.",
        "```json\n{\"title\": \"unterminated\n```",
        "[1, 2, 3]",
    ])
    def test_invalid_payload_is_malformed(self, text):
        with pytest.raises(MalformedModelOutputError):
            parse_generation_result(text)

    def test_missing_fields_are_named(self):
        payload = json.dumps({'title': "t", 'content': "c"})

        with pytest.raises(MalformedModelOutputError, match="metaDescription, tags"):
            parse_generation_result(payload)

    def test_tags_must_be_strings(self):
        payload = json.dumps({'title': "t", 'metaDescription': "m", 'content': "c", 'tags': "a,b"})

        with pytest.raises(MalformedModelOutputError, match="tags"):
            parse_generation_result(payload)


class TestAnalyzeCompetitors:

    def test_prompt_limits_pages_and_body_length(self):
        handler, client = _handler("They all use listicles.")
        pages = [make_page(i) for i in range(1, 8)]
        pages[0]['body_text'] = 'x' * 2000

        analysis = handler.analyze_competitors({'keyword': "gardening tips", 'results': pages})

        prompt = _prompt(client)
        assert analysis == "They all use listicles."
        assert "'gardening tips'" in prompt
        assert "--- Article 5 ---" in prompt
        assert "--- Article 6 ---" not in prompt
        assert 'x' * 1500 in prompt
        assert 'x' * 1501 not in prompt
        assert "H1: Heading 1" in prompt
        assert 'response_format' not in client.chat.completions.create.call_args.kwargs

    def test_empty_analysis_is_malformed(self):
        handler, _ = _handler("")

        with pytest.raises(MalformedModelOutputError):
            handler.analyze_competitors({'keyword': "k", 'results': [make_page(1)]})


class TestGenerateSEOContent:

    def test_returns_parsed_article(self):
        handler, client = _handler(f"```json\n{ARTICLE_JSON}\n```", model="gpt-4o-mini")

        article = handler.generate_seo_content("gardening tips", "Competitors use H2 lists.")

        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs['model'] == "gpt-4o-mini"
        assert kwargs['response_format'] == {"type": "json_object"}
        assert "Competitors use H2 lists." in _prompt(client)
        assert article['title'] == "Gardening Tips"

    def test_language_is_part_of_prompt(self):
        handler, client = _handler(ARTICLE_JSON, language="Korean")

        handler.generate_seo_content("gardening tips", "analysis")

        assert "in Korean" in _prompt(client)

    def test_service_block_only_when_configured(self):
        handler, client = _handler(ARTICLE_JSON)
        handler.generate_seo_content("gardening tips", "analysis")
        assert "Service to promote" not in _prompt(client)

        service = {'name': "GrowBox", 'description': "Smart planters", 'url': "https://growbox.example"}
        handler, client = _handler(ARTICLE_JSON, service=service)
        handler.generate_seo_content("gardening tips", "analysis")

        prompt = _prompt(client)
        assert "## Service to promote" in prompt
        assert "https://growbox.example" in prompt
        assert "Mention the service (GrowBox)" in prompt

    def test_transport_errors_propagate_unchanged(self):
        client = MagicMock()
        client.chat.completions.create.side_effect = ConnectionError("network down")
        handler = LLMHandler(api_key="test", client=client)

        with pytest.raises(ConnectionError):
            handler.generate_seo_content("gardening tips", "analysis")

    def test_missing_api_key_fails_on_first_call(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        handler = LLMHandler()

        with pytest.raises(LLMConfigurationError):
            handler.generate_seo_content("gardening tips", "analysis")


class TestRegenerateWithFeedback:

    def test_history_lists_every_version(self):
        handler, client = _handler(ARTICLE_JSON)
        generations = [
            SimpleNamespace(version=1, title="First", rating='bad', feedback="too short", content='a' * 800),
            SimpleNamespace(version=2, title="Second", rating='good', feedback=None, content="short body"),
            SimpleNamespace(version=3, title="Third", rating=None, feedback='', content="third body"),
        ]

        article = handler.regenerate_with_feedback("gardening tips", "analysis", generations)

        prompt = _prompt(client)
        assert article['title'] == "Gardening Tips"
        assert "--- Version 1 ---\nTitle: First\nRating: Needs improvement\nFeedback: too short" in prompt
        assert "Content excerpt: " + 'a' * 500 + "..." in prompt
        assert 'a' * 501 not in prompt
        assert "--- Version 2 ---\nTitle: Second\nRating: Liked\nFeedback: none" in prompt
        assert "--- Version 3 ---\nTitle: Third\nRating: Not rated\nFeedback: none" in prompt
        assert 'rated "Needs improvement"' in prompt

    def test_malformed_output_is_reported(self):
        handler, _ = _handler("I rewrote the article for you.")

        with pytest.raises(MalformedModelOutputError):
            handler.regenerate_with_feedback("gardening tips", "analysis", [])
