"""Press-release generation and publishing.

Flow for POST /press-releases:
    authorize bearer -> generate content -> persist artifact + record ->
    issue management token -> (optionally) consume verification token ->
    dispatch confirmation email

Content comes from the LLM when one is configured; without an API key, or
when the provider fails, a template produces a plain but complete release.
Persisting is fatal: if the content store rejects the write, nothing is
issued and the caller sees the upstream error.
"""

import json
import logging
import re
import secrets
from dataclasses import asdict, dataclass
from datetime import datetime
from html import escape

from presswire.core.config import Settings
from presswire.core.dispatch import SideEffectDispatcher
from presswire.core.email import ResendEmailSender, published_email
from presswire.core.errors import ValidationError
from presswire.core.store import Clock, utc_now
from presswire.models.records import CompanyInfo, GrantKind, ManagementRecord, PublishIdentity
from presswire.providers.errors import ProviderError
from presswire.providers.llm.base import LLMMessage, LLMProvider, TaskType
from presswire.services.content_store import ContentStore
from presswire.services.management_tokens import ManagementTokenStore
from presswire.services.publish_gate import PublishGate

logger = logging.getLogger(__name__)

PACKAGES = ("starter", "professional", "enterprise")

PACKAGE_PROMPTS = {
    "starter": "Create a basic press release",
    "professional": (
        "Create a professional, SEO-optimized press release with enhanced storytelling"
    ),
    "enterprise": (
        "Create a premium press release with maximum impact, storytelling, and media appeal"
    ),
}

SYSTEM_PROMPT = (
    "You are a professional PR writer for Irish businesses. "
    "Create compelling, newsworthy press releases that follow AP style. "
    "Include Irish market context and local relevance. "
    "Make it authentic and avoid marketing fluff. "
    "Focus on news value and factual information."
)

_PACKAGE_ADDITIONS = {
    "professional": (
        "About the Industry: This development comes at a time of significant growth "
        "in the Irish business sector, with companies continuing to innovate and "
        "expand their operations."
    ),
    "enterprise": (
        "Market Context: This announcement positions the company at the forefront of "
        "industry developments, reflecting broader trends in digital transformation "
        "and business growth across Ireland."
    ),
}

MAX_HEADLINE_LENGTH = 100

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")
_BULLET = re.compile(r"^[•\-*]\s*")
_NON_SLUG = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True)
class ReleaseDraft:
    """What the customer submits."""

    company: CompanyInfo
    headline: str
    summary: str
    key_points: str
    contact: str
    package: str = "starter"


@dataclass(frozen=True)
class GeneratedContent:
    headline: str
    summary: str
    content: str
    boilerplate: str


@dataclass(frozen=True)
class PublishedRelease:
    """Result returned to the publisher (the only time the token is shown)."""

    slug: str
    url: str
    management_token: str
    management_url: str
    headline: str
    summary: str
    content: str


# =============================================================================
# Pure helpers
# =============================================================================


def make_slug(company_name: str, cro_number: str, now: datetime) -> str:
    """Build <company>-<cro>-<ms>, lower-case and URL-safe."""
    name = _NON_SLUG.sub("-", company_name.lower()).strip("-")
    cro = _NON_SLUG.sub("-", cro_number.lower()).strip("-")
    stamp = str(int(now.timestamp() * 1000))
    return "-".join(part for part in (name, cro, stamp) if part)


def split_points(key_points: str) -> list[str]:
    """Key points, one per non-empty line, bullets stripped."""
    points = (_BULLET.sub("", line).strip() for line in key_points.splitlines())
    return [point for point in points if point]


def extract_json(text: str | None) -> dict | None:
    """Pull the first {...} object out of a completion, if it parses."""
    if not text:
        return None
    match = _JSON_OBJECT.search(text)
    if match is None:
        return None
    try:
        data = json.loads(match.group(0))
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def build_messages(draft: ReleaseDraft, identity: PublishIdentity) -> list[LLMMessage]:
    domain_note = " (Irish domain)" if identity.is_trusted_tld else ""
    user_prompt = (
        f"{PACKAGE_PROMPTS.get(draft.package, PACKAGE_PROMPTS['starter'])} for:\n\n"
        f"Company: {draft.company.name} (CRO: {draft.company.cro_number})\n"
        f"Status: {draft.company.status}\n"
        f"Domain: {identity.domain}{domain_note}\n\n"
        f"Headline: {draft.headline}\n"
        f"Summary: {draft.summary}\n\n"
        f"Key Points to expand:\n{draft.key_points}\n\n"
        f"Contact: {draft.contact}\n\n"
        "Please create a press release with:\n"
        f"1. An attention-grabbing headline (max {MAX_HEADLINE_LENGTH} chars)\n"
        "2. A compelling lead paragraph\n"
        "3. Body paragraphs expanding the key points, separated by blank lines, "
        "as plain text without HTML\n"
        "4. A company boilerplate\n\n"
        "Format as JSON with fields: headline, summary, content, boilerplate"
    )
    return [
        LLMMessage(role="system", content=SYSTEM_PROMPT),
        LLMMessage(role="user", content=user_prompt),
    ]


def template_content(
    draft: ReleaseDraft, identity: PublishIdentity, now: datetime
) -> GeneratedContent:
    """Template release used when no LLM is available."""
    company = draft.company
    dateline = f"DUBLIN, Ireland - {now.day} {now:%B %Y}"
    summary = draft.summary or f"{company.name} announces {draft.headline.lower()}"
    paragraphs = [f"{dateline} - {summary}"]
    paragraphs.extend(split_points(draft.key_points))
    paragraphs.append(
        f"This announcement represents a significant development for {company.name} "
        "and demonstrates the company's continued commitment to growth and "
        "innovation in the Irish market."
    )
    if identity.is_trusted_tld:
        paragraphs.append(
            "As an Irish-registered company, this initiative reinforces our dedication "
            "to contributing to the local economy and business ecosystem."
        )
    if draft.package in _PACKAGE_ADDITIONS:
        paragraphs.append(_PACKAGE_ADDITIONS[draft.package])

    status = company.status or "registered"
    boilerplate = (
        f"{company.name} (CRO: {company.cro_number}) is a {status} company "
        "registered in Ireland."
    )
    if company.type:
        boilerplate += f" The company operates as a {company.type}."
    return GeneratedContent(
        headline=draft.headline[:MAX_HEADLINE_LENGTH],
        summary=summary,
        content="\n\n".join(paragraphs),
        boilerplate=boilerplate,
    )


def _paragraphs(text: str) -> str:
    blocks = [block.strip() for block in re.split(r"\n\s*\n", text) if block.strip()]
    return "\n".join(f"<p>{escape(block)}</p>" for block in blocks)


def render_html(record: ManagementRecord, base_url: str) -> str:
    """Render the public release page. Every customer value is escaped."""
    url = f"{base_url}/news/{record.slug}.html"
    published = record.created_at.isoformat()
    article = {
        "@context": "https://schema.org",
        "@type": "NewsArticle",
        "headline": record.headline,
        "description": record.summary,
        "datePublished": published,
        "author": {
            "@type": "Organization",
            "name": record.company.name,
            "identifier": f"CRO: {record.company.cro_number}",
        },
        "publisher": {"@type": "Organization", "name": "PressWire.ie", "url": base_url},
        "mainEntityOfPage": {"@type": "WebPage", "@id": url},
    }
    # "</" inside a script block would end it early
    structured = json.dumps(article, indent=2).replace("</", "<\\/")
    tracking = json.dumps({"slug": record.slug}).replace("</", "<\\/")
    headline = escape(record.headline)
    summary = escape(record.summary)
    company = escape(record.company.name)
    return f"""<!DOCTYPE html>
<html lang="en-IE">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{headline} - {company} | PressWire.ie</title>
    <meta name="description" content="{summary}">
    <meta property="og:title" content="{headline}">
    <meta property="og:description" content="{summary}">
    <meta property="og:url" content="{escape(url)}">
    <meta property="og:type" content="article">
    <link rel="canonical" href="{escape(url)}">
    <script type="application/ld+json">
{structured}
    </script>
</head>
<body>
    <article>
        <p>{escape(record.created_at.strftime('%d %B %Y'))} | Verified domain: {escape(record.verified_domain)}</p>
        <h1>{headline}</h1>
        <p><strong>{summary}</strong></p>
{_paragraphs(record.content)}
        <h2>About {company}</h2>
{_paragraphs(record.boilerplate)}
        <h2>Media Contact</h2>
{_paragraphs(record.contact)}
    </article>
    <script>
    (function () {{
        var view = {tracking};
        view.session_id = sessionStorage.getItem("pw_session") || Math.random().toString(36).slice(2);
        sessionStorage.setItem("pw_session", view.session_id);
        view.referrer = document.referrer || "direct";
        fetch("/api/v1/analytics/track", {{
            method: "POST",
            headers: {{"Content-Type": "application/json"}},
            body: JSON.stringify(view)
        }});
    }})();
    </script>
</body>
</html>
"""


def record_json(record: ManagementRecord) -> str:
    """Serialized record for the content store; the management token is omitted."""
    data = asdict(record)
    data.pop("management_token")
    return json.dumps(data, indent=2, default=str)


# =============================================================================
# Services
# =============================================================================


class PressReleaseGenerator:
    """Writes release copy with the LLM, falling back to the template.

    Args:
        llm: Provider, or None when no API key is configured.
        clock: Returns the current UTC time.
    """

    def __init__(self, llm: LLMProvider | None, *, clock: Clock = utc_now) -> None:
        self._llm = llm
        self._clock = clock

    async def generate(self, draft: ReleaseDraft, identity: PublishIdentity) -> GeneratedContent:
        fallback = template_content(draft, identity, self._clock())
        if self._llm is None:
            logger.info("No LLM configured, using template generation")
            return fallback

        try:
            response = await self._llm.complete(
                build_messages(draft, identity), TaskType.PRESS_RELEASE, json_mode=True
            )
        except ProviderError as exc:
            logger.warning("LLM generation failed, using template: %s", type(exc).__name__)
            return fallback

        data = extract_json(response.content)
        if data is None:
            logger.warning("LLM response was not JSON, using it as body text")
            data = {"content": response.content}

        def text(name: str) -> str:
            value = data.get(name)
            return value.strip() if isinstance(value, str) else ""

        return GeneratedContent(
            headline=(text("headline") or draft.headline)[:MAX_HEADLINE_LENGTH],
            summary=text("summary") or fallback.summary,
            content=text("content") or fallback.content,
            boilerplate=text("boilerplate") or fallback.boilerplate,
        )


class PressReleasePublisher:
    """Authorizes, generates, persists and registers a press release."""

    def __init__(
        self,
        settings: Settings,
        gate: PublishGate,
        generator: PressReleaseGenerator,
        content_store: ContentStore,
        management: ManagementTokenStore,
        dispatcher: SideEffectDispatcher,
        email_sender: ResendEmailSender,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self._settings = settings
        self._gate = gate
        self._generator = generator
        self._content_store = content_store
        self._management = management
        self._dispatcher = dispatcher
        self._email_sender = email_sender
        self._clock = clock

    async def publish(self, bearer: str, draft: ReleaseDraft) -> PublishedRelease:
        """Publish one release.

        Raises:
            TokenNotFoundError / TokenExpiredError: Bearer rejected.
            ValidationError: Missing company name or headline, unknown package.
            UpstreamError / UpstreamTimeoutError: Content store write failed.
        """
        identity = self._gate.authorize(bearer)

        if not draft.company.name.strip() or not draft.headline.strip():
            raise ValidationError("Company name and headline are required")
        if draft.package not in PACKAGES:
            raise ValidationError(f"Unknown package: {draft.package}")

        content = await self._generator.generate(draft, identity)
        now = self._clock()
        slug = make_slug(draft.company.name, draft.company.cro_number, now)
        base_url = self._settings.public_base_url.rstrip("/")
        url = f"{base_url}/news/{slug}.html"

        record = ManagementRecord(
            # Placeholder; issue() assigns the real token
            management_token="",
            slug=slug,
            created_at=now,
            headline=content.headline,
            summary=content.summary,
            content=content.content,
            contact=draft.contact,
            company=draft.company,
            url=url,
            verified_domain=identity.domain,
            package=draft.package,
            key_points=draft.key_points,
            boilerplate=content.boilerplate,
        )

        await self._content_store.put_file(
            f"news/{slug}.html",
            render_html(record, base_url),
            f"Publish press release: {content.headline}",
        )
        await self._content_store.put_file(
            f"data/prs/{slug}.json",
            record_json(record),
            f"Add press release data: {slug}",
        )

        token = self._management.issue(record)
        self._gate.consume(identity)
        management_url = f"{base_url}/manage.html?token={token}"

        if identity.grant_kind in (GrantKind.VERIFICATION_DERIVED, GrantKind.PAYMENT_VERIFIED):
            subject, html, text = published_email(url, management_url)
            self._dispatcher.submit(
                self._email_sender.send(
                    to=identity.email, subject=subject, html=html, text=text
                ),
                name=f"published-email-{secrets.token_hex(4)}",
            )

        logger.info("Press release %s published (%s)", slug, identity.grant_kind.value)
        return PublishedRelease(
            slug=slug,
            url=url,
            management_token=token,
            management_url=management_url,
            headline=content.headline,
            summary=content.summary,
            content=content.content,
        )
