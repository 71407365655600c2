import os
import re
import json
import logging

from openai import OpenAI

logger = logging.getLogger(__name__)

MAX_ANALYSIS_PAGES = 5
ANALYSIS_BODY_CHARS = 1500
HISTORY_EXCERPT_CHARS = 500

RATING_LABELS = {
    'good': 'Liked',
    'bad': 'Needs improvement',
}

REQUIRED_STRING_FIELDS = ('title', 'metaDescription', 'content')

_FENCED_BLOCK = re.compile(r'```(?:json)?\s*\n?([\s\S]*?)\n?```')

RESPONSE_FORMAT_BLOCK = """## Response format
Respond with this JSON object only, with no other text.
```json
{
  "title": "Blog title",
  "metaDescription": "Meta description",
  "content": "<h2>...</h2><p>...</p>...",
  "tags": ["tag1", "tag2", ...]
}
```"""


class LLMConfigurationError(RuntimeError):
    """The LLM client cannot be created, usually because no API key is set."""


class MalformedModelOutputError(ValueError):
    """The model answered, but not with the JSON article it was asked for."""


def extract_json_payload(text):
    """Strip an optional ``` or ```json fence, else take the outermost {...} span."""
    match = _FENCED_BLOCK.search(text)
    if match:
        return match.group(1).strip()

    start, end = text.find('{'), text.rfind('}')
    if start != -1 and end > start:
        return text[start:end + 1]
    return text.strip()


def parse_generation_result(text):
    """Parse the model's article response into title, meta_description, content and tags."""
    if not text or not text.strip():
        raise MalformedModelOutputError("Model returned an empty response")

    payload = extract_json_payload(text)
    try:
        parsed = json.loads(payload)
    except json.JSONDecodeError as e:
        raise MalformedModelOutputError(f"Model response is not valid JSON: {e}") from e

    if not isinstance(parsed, dict):
        raise MalformedModelOutputError("Model response is not a JSON object")

    missing = [field for field in REQUIRED_STRING_FIELDS + ('tags',) if field not in parsed]
    if missing:
        raise MalformedModelOutputError(f"Model response is missing fields: {', '.join(missing)}")

    for field in REQUIRED_STRING_FIELDS:
        if not isinstance(parsed[field], str):
            raise MalformedModelOutputError(f"Field '{field}' must be a string")

    tags = parsed['tags']
    if not isinstance(tags, list) or not all(isinstance(tag, str) for tag in tags):
        raise MalformedModelOutputError("Field 'tags' must be a list of strings")

    return {
        'title': parsed['title'],
        'meta_description': parsed['metaDescription'],
        'content': parsed['content'],
        'tags': tags,
    }


class LLMHandler:
    def __init__(self, api_key=None, model="gpt-4o", language="English", service=None,
                 timeout=120, client=None):
        self.api_key = api_key or os.environ.get("OPENAI_API_KEY")
        self.model = model
        self.language = language
        self.service = service or {}
        self.timeout = timeout
        self._client = client

    @property
    def openai(self):
        if self._client is None:
            if not self.api_key:
                raise LLMConfigurationError("OPENAI_API_KEY must be set")
            # Retries are left to the caller
            self._client = OpenAI(api_key=self.api_key, timeout=self.timeout, max_retries=0)
        return self._client

    def analyze_competitors(self, crawled_data):
        """Summarize what the top-ranking pages for a keyword have in common"""
        pages = crawled_data['results'][:MAX_ANALYSIS_PAGES]
        results_text = "\n\n".join(
            self._format_page(index, page) for index, page in enumerate(pages, 1)
        )

        prompt = f"""The following articles rank at the top of a web search for '{crawled_data['keyword']}'.

{results_text}

Analyze what these articles have in common:
1. SEO strategy (keyword frequency and placement)
2. Title patterns (which title formats they use)
3. Heading (H1-H3) structure
4. Content structure (introduction, body, conclusion, etc.)
5. Length and tone
6. Frequently covered subtopics

Write a concise analysis in {self.language}."""

        logger.info(f"Requesting competitor analysis for '{crawled_data['keyword']}' ({len(pages)} pages)")
        text = self._complete(prompt)
        if not text or not text.strip():
            raise MalformedModelOutputError("Model returned an empty analysis")
        return text

    def generate_seo_content(self, keyword, analysis):
        """Draft an SEO-optimized article based on the competitor analysis"""
        prompt = f"""You are an SEO blog content writer.

## Target keyword
{keyword}

## Competitor analysis
{analysis}
{self._service_block()}

## Requirements
Based on the competitor analysis above, write an SEO-optimized blog article that can rank at the top.

{self._requirements_block()}

{RESPONSE_FORMAT_BLOCK}"""

        logger.info(f"Requesting article generation for '{keyword}'")
        return parse_generation_result(self._complete(prompt, json_mode=True))

    def regenerate_with_feedback(self, keyword, analysis, previous_generations):
        """Draft a new version of the article that addresses feedback on earlier versions"""
        history_text = "\n\n".join(
            f"--- Version {generation.version} ---\n"
            f"Title: {generation.title}\n"
            f"Rating: {RATING_LABELS.get(generation.rating, 'Not rated')}\n"
            f"Feedback: {generation.feedback or 'none'}\n"
            f"Content excerpt: {generation.content[:HISTORY_EXCERPT_CHARS]}..."
            for generation in previous_generations
        )

        prompt = f"""You are an SEO blog content writer.

## Target keyword
{keyword}

## Competitor analysis
{analysis}
{self._service_block()}

## Previous versions and feedback
{history_text}

## Requirements
Write an improved SEO-optimized blog article that reflects the feedback on the previous versions.
Above all, address the feedback the user left on versions rated "{RATING_LABELS['bad']}".

{self._requirements_block()}

{RESPONSE_FORMAT_BLOCK}"""

        logger.info(f"Requesting regeneration for '{keyword}' with {len(previous_generations)} prior versions")
        return parse_generation_result(self._complete(prompt, json_mode=True))

    def _complete(self, prompt, json_mode=False):
        kwargs = {}
        if json_mode:
            kwargs['response_format'] = {"type": "json_object"}

        response = self.openai.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            **kwargs
        )
        return response.choices[0].message.content or ''

    @staticmethod
    def _format_page(index, page):
        headings = "\n".join(page['headings'])
        return (
            f"--- Article {index} ---\n"
            f"URL: {page['url']}\n"
            f"Title: {page['title']}\n"
            f"Meta description: {page['meta_description']}\n"
            f"Heading structure:\n{headings}\n"
            f"Body (excerpt):\n{page['body_text'][:ANALYSIS_BODY_CHARS]}"
        )

    def _service_block(self):
        if not self.service.get('name'):
            return ""
        return (
            "\n## Service to promote\n"
            f"- Name: {self.service['name']}\n"
            f"- Description: {self.service.get('description', '')}\n"
            f"- URL: {self.service.get('url', '')}"
        )

    def _requirements_block(self):
        service_rule = ""
        if self.service.get('name'):
            service_rule = (
                f"   - Mention the service ({self.service['name']}) naturally once or twice "
                "in the middle of the body, without overdoing it\n"
            )

        return f"""1. **Title**: an engaging title that contains the target keyword
2. **Meta description**: at most 150 characters, containing the keyword
3. **Content**: written in HTML
   - Structured with H2 and H3 tags
   - Natural placement of the target keyword
{service_rule}   - Informative content that gives readers real value
   - Include a FAQ section
   - At least 1500 characters
   - Insert image prompts at fitting points (topic transitions, after explaining key concepts)
   - Format: <div class="image-prompt">[Image: a concrete prompt for an image generation AI]</div>
   - Insert 2-3 of them, matching the context of the article
4. **Tags**: 5-8 related keyword tags

Write the title, meta description, content and tags in {self.language}."""
