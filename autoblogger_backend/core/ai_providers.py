"""
Content generation backends and the factory that selects one per site.
"""
import abc
import asyncio
import json
import logging
import re
from typing import Any, Dict, List, Optional

import anthropic
from openai import OpenAI
from pydantic import ValidationError as PydanticValidationError

from autoblogger_backend.core.config import Settings
from autoblogger_backend.core.errors import ConfigurationError, short_message
from autoblogger_backend.schemas.content import GeneratedContent, GenerationOptions, GenerationResult
from autoblogger_backend.schemas.site import AIProvider, SiteConfig, TopicRecord

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are a professional blog writer. Respond with a single valid JSON object only."

SEO_TITLE_MAX = 60
SEO_DESCRIPTION_MAX = 160


def build_prompt(site: SiteConfig, topic: TopicRecord) -> str:
    """Build the generation prompt for a topic; same inputs give the same prompt."""
    settings = site.settings
    details = ""
    if topic.description and topic.description.strip():
        details += f"\nTopic details: {topic.description.strip()}"
    if topic.keywords:
        details += f"\nFocus keywords: {', '.join(topic.keywords)}"

    return f"""Write a comprehensive blog post about "{topic.title}" for {site.name}.{details}

Guidelines:
- Write in {settings.tone} tone
- Target audience: {settings.audience}
- Length: {settings.length} words
- Include relevant keywords naturally
- Structure with clear headings and paragraphs
- Make it engaging and informative
- Include a compelling introduction and conclusion

Return the content in the following JSON format:
{{
    "title": "The blog post title",
    "content": "The full HTML content of the blog post",
    "excerpt": "A brief excerpt (150-200 characters)",
    "seo_title": "SEO optimized title ({SEO_TITLE_MAX} characters max)",
    "seo_description": "SEO meta description ({SEO_DESCRIPTION_MAX} characters max)",
    "keywords": ["keyword1", "keyword2", "keyword3"]
}}"""


def validate_json_response(content: str, context: str = "") -> Dict[str, Any]:
    """
    Parse a JSON object out of a model response.

    Tolerates fenced code blocks and <pre> wrappers around the object.

    Raises:
        ValueError: If no JSON object can be parsed
    """
    content = (content or "").strip()

    if "```json" in content:
        start = content.find("```json") + 7
        end = content.find("```", start)
        if end != -1:
            content = content[start:end].strip()
    elif "```" in content:
        start = content.find("```") + 3
        end = content.find("```", start)
        if end != -1:
            content = content[start:end].strip()
    elif "<pre>" in content:
        start = content.find("<pre>") + 5
        end = content.find("</pre>", start)
        if end != -1:
            content = content[start:end].strip()

    content = content.replace("<pre>", "").replace("</pre>", "").strip()
    if not content:
        raise ValueError(f"Empty content after cleaning for {context}")

    try:
        result = json.loads(content)
    except json.JSONDecodeError as e:
        logger.error(f"JSON validation failed for {context}: {e}")
        raise ValueError(f"Invalid JSON response for {context}: {e.msg}")

    if not isinstance(result, dict):
        raise ValueError(f"Expected a JSON object for {context}")
    return result


def _first_heading(html: str) -> Optional[str]:
    match = re.search(r"<h[12][^>]*>(.*?)</h[12]>", html, flags=re.I | re.S)
    if not match:
        return None
    text = re.sub(r"<[^>]+>", "", match.group(1)).strip()
    return text or None


def normalize_content(raw: Dict[str, Any]) -> GeneratedContent:
    """Map a loosely shaped model object onto the fixed content schema."""
    candidate = raw
    for wrap in ("post", "article", "result", "data"):
        if isinstance(candidate.get(wrap), dict):
            candidate = candidate[wrap]
            break

    lower_map = {k.lower(): k for k in candidate.keys()}

    def get_ci(*names: str) -> Optional[Any]:
        for name in names:
            key = lower_map.get(name.lower())
            if key is not None:
                return candidate[key]
        return None

    body = get_ci("content", "html", "body", "article_html")
    if not isinstance(body, str) or not body.strip():
        raise ValueError("Missing or invalid 'content'.")

    title = get_ci("title", "headline")
    if not isinstance(title, str) or not title.strip():
        title = _first_heading(body)

    keywords = get_ci("keywords", "tags")
    if isinstance(keywords, str):
        keywords = [k.strip() for k in keywords.split(",")]
    if not isinstance(keywords, list):
        keywords = []

    seo_title = get_ci("seo_title", "seoTitle", "meta_title") or title or ""
    seo_description = get_ci("seo_description", "seoDescription", "meta_description") or ""

    return GeneratedContent(
        title=title.strip() if title else None,
        content=body,
        excerpt=str(get_ci("excerpt", "summary") or ""),
        seo_title=str(seo_title)[:SEO_TITLE_MAX],
        seo_description=str(seo_description)[:SEO_DESCRIPTION_MAX],
        keywords=[str(k) for k in keywords if str(k).strip()],
    )


def _describe_error(exc: Exception) -> str:
    """Short, body-free description of an upstream SDK failure."""
    status = getattr(exc, "status_code", None)
    if status:
        return f"{exc.__class__.__name__} (HTTP {status})"
    return exc.__class__.__name__


class ContentProvider(abc.ABC):
    """A content generation backend."""

    label = "AI provider"

    def __init__(self, model: str):
        self.model = model

    @abc.abstractmethod
    def _complete(self, prompt: str, options: GenerationOptions) -> str:
        """Blocking call returning the raw text of the model response."""

    async def generate_content(self, prompt: str, options: GenerationOptions) -> GenerationResult:
        """Generate structured content; failures come back as an error result."""
        logger.info(f"Calling {self.label} with model: {self.model}")
        try:
            text = await asyncio.wait_for(
                asyncio.to_thread(self._complete, prompt, options),
                timeout=options.timeout_s,
            )
        except asyncio.TimeoutError:
            logger.warning(f"{self.label} request timed out after {options.timeout_s}s")
            return GenerationResult(error=f"{self.label} request timed out after {options.timeout_s:g}s")
        except Exception as e:  # noqa: BLE001
            logger.error(f"{self.label} request failed: {_describe_error(e)}")
            return GenerationResult(error=f"{self.label} request failed: {_describe_error(e)}")

        try:
            content = normalize_content(validate_json_response(text, self.label))
        except (ValueError, PydanticValidationError) as e:
            message = e.errors()[0].get("msg") if isinstance(e, PydanticValidationError) else str(e)
            return GenerationResult(error=short_message(f"{self.label} returned an unusable response: {message}"))

        logger.info(f"{self.label} response parsed, content length: {len(content.content)}")
        return GenerationResult(content=content)


class OpenAIProvider(ContentProvider):
    """OpenAI chat completions backend."""

    label = "OpenAI"

    def __init__(self, api_key: str, model: str, timeout_s: float):
        super().__init__(model)
        self.client = OpenAI(api_key=api_key, timeout=timeout_s)

    def _request_options(self, prompt: str, options: GenerationOptions) -> Dict[str, Any]:
        request = {
            "model": self.model,
            "temperature": options.temperature,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "response_format": {"type": "json_object"},
        }
        # Newer models take max_completion_tokens; gpt-5 also rejects temperature
        if self.model.startswith("gpt-5"):
            request["max_completion_tokens"] = options.max_output_tokens
            request.pop("temperature")
        elif self.model.startswith(("gpt-4o", "o1", "o3", "o4")):
            request["max_completion_tokens"] = options.max_output_tokens
        else:
            request["max_tokens"] = options.max_output_tokens
        return request

    def _complete(self, prompt: str, options: GenerationOptions) -> str:
        response = self.client.chat.completions.create(**self._request_options(prompt, options))
        return response.choices[0].message.content or ""


class AnthropicProvider(ContentProvider):
    """Anthropic messages backend."""

    label = "Anthropic"

    def __init__(self, api_key: str, model: str, timeout_s: float):
        super().__init__(model)
        self.client = anthropic.Anthropic(api_key=api_key, timeout=timeout_s)

    def _complete(self, prompt: str, options: GenerationOptions) -> str:
        response = self.client.messages.create(
            model=self.model,
            max_tokens=options.max_output_tokens,
            temperature=options.temperature,
            system=SYSTEM_PROMPT,
            messages=[{"role": "user", "content": prompt}],
        )
        parts: List[str] = []
        for block in getattr(response, "content", []) or []:
            text = getattr(block, "text", None)
            if text:
                parts.append(text)
        return "".join(parts)


def default_options(settings: Settings) -> GenerationOptions:
    return GenerationOptions(
        temperature=settings.AI_TEMPERATURE,
        max_output_tokens=settings.AI_MAX_OUTPUT_TOKENS,
        timeout_s=settings.AI_TIMEOUT_S,
    )


def get_provider(provider, settings: Settings) -> ContentProvider:
    """
    Build the content provider for a provider identifier.

    Raises:
        ConfigurationError: Unknown identifier or missing API key
    """
    try:
        provider = AIProvider(provider)
    except ValueError:
        raise ConfigurationError(f"Unknown AI provider: {provider!r}")

    if provider is AIProvider.OPENAI:
        if not settings.OPENAI_API_KEY:
            raise ConfigurationError("API key not configured for openai")
        return OpenAIProvider(settings.OPENAI_API_KEY, settings.OPENAI_TEXT_MODEL, settings.AI_TIMEOUT_S)

    if provider is AIProvider.ANTHROPIC:
        if not settings.ANTHROPIC_API_KEY:
            raise ConfigurationError("API key not configured for anthropic")
        return AnthropicProvider(settings.ANTHROPIC_API_KEY, settings.ANTHROPIC_TEXT_MODEL, settings.AI_TIMEOUT_S)

    raise ConfigurationError(f"No content provider registered for {provider.value}")
