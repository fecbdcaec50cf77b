"""Minimal Gemini API client for generating personalised outreach emails."""
import json
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Dict, Any
import requests

from src import settings
from src.content_cache import ContentCache
from src.errors import ContentGenerationError
from src.logging_conf import logger


DEFAULT_PROMPT = """You are a professional software engineer reaching out to a recruiter.
I have provided my resume content below to help you personalize the email.
RESUME CONTENT:
---
{{resumeText}}
---

Create a highly personalized, professional, and concise email (under 150 words) for a recruiter.
CRITICAL INSTRUCTIONS:
1. You MUST start the email with exactly "Hi {{inferredName}}," or "Dear {{inferredName}}," and NEVER use placeholders like [Name] or [Hiring Manager].
2. You MUST explicitly reference {{inferredCompany}} in the body of the email.
3. Use specific details from my resume that would be relevant to {{inferredCompany}}.
4. DO NOT include any sign-off, closing, or signature at the end of the email. A signature is appended automatically.

Return the output strictly in JSON format as follows:
{
  "subject": "Compelling subject line",
  "htmlBody": "<p>Hi {{inferredName}},</p><p>...rest of the email HTML...</p>"
}
No markdown formatting for the json, just raw JSON string."""

SIGNATURE_KEYS = ("name", "role", "phone", "portfolio", "linkedin", "github")

SIGNATURE_PROMPT = """Extract the following contact details strictly from the resume below.
Return the output strictly in JSON format with exactly these keys: "name", "role", "phone", "portfolio", "linkedin", "github".
If a value is not found, use an empty string. Make "role" a concise professional title (e.g. "Software Engineer").
RESUME CONTENT:
---
{{resumeText}}
---
Ensure no markdown formatting or extra text, just raw JSON string."""

SUGGEST_PROMPT = """Analyze the following resume and write a highly effective SYSTEM PROMPT TEMPLATE.
This template will be used to instruct an AI to write personalized cold emails to recruiters on behalf of this candidate.

CRITICAL INSTRUCTIONS FOR THE TEMPLATE YOU GENERATE:
1. It MUST include the following literal variables EXACTLY as written: {{inferredName}}, {{inferredCompany}}, and {{resumeText}}.
2. It MUST instruct the AI to use exactly "Hi {{inferredName}}," or "Dear {{inferredName}}," as the greeting and forbid placeholders like [Name].
3. It MUST instruct the AI to reference {{inferredCompany}} in the body of the email.
4. It MUST define the persona and provide email guidelines (under 150 words, compelling CTA, professional tone).
5. It MUST instruct the AI to NOT include any sign-off, closing, or signature.
6. It MUST end with instructions to return the output STRICTLY in JSON format with "subject" and "htmlBody" string keys.
7. Output ONLY the raw prompt template text, without greeting, preamble, or markdown formatting.

RESUME:
---
"""

_SIGN_OFF_RE = re.compile(
    r"(?:<br\s*/?>|</?p>|\s)*(?:Best regards|Sincerely|Warm regards|Regards)[\s\S]*$",
    re.IGNORECASE,
)


@dataclass
class Signature:
    name: str = ""
    role: str = ""
    phone: str = ""
    portfolio: str = ""
    linkedin: str = ""
    github: str = ""

    def to_html(self) -> str:
        if not (self.name or self.role):
            return ""
        links = []
        if self.portfolio:
            links.append(f'<a href="{self.portfolio}">Portfolio</a>')
        if self.linkedin:
            links.append(f'<a href="{self.linkedin}">LinkedIn</a>')
        if self.github:
            links.append(f'<a href="{self.github}">GitHub</a>')

        lines = [f"<strong>{self.name}</strong><br>", f"{self.role}<br><br>"]
        if self.phone:
            lines.append(f"{self.phone}<br>")
        if links:
            lines.append(" | ".join(links))
        return (
            '<br><br><hr style="border: none; border-top: 1px solid #ccc; margin: 20px 0;">'
            '<div style="font-family: Arial, sans-serif; line-height: 1.5;">'
            + "".join(lines)
            + "</div>"
        )


@dataclass
class GeneratedEmail:
    subject: str
    body: str


def infer_name(email: str) -> str:
    """Guess a display name from the address local part: jane.doe -> Jane Doe."""
    local = email.split("@")[0]
    return " ".join(part[:1].upper() + part[1:] for part in re.split(r"[._+-]", local) if part)


def infer_company(email: str) -> str:
    """Guess a company from the address domain: jobs@acme.io -> ACME."""
    if "@" not in email:
        return "your company"
    domain = email.split("@")[1]
    return domain.split(".")[0].upper() or "your company"


def strip_code_fence(text: str) -> str:
    text = re.sub(r"^```[a-z]*\s*", "", text.strip())
    return re.sub(r"```\s*$", "", text).strip()


class GeminiClient:
    """Generates subject and body for each recipient through the Gemini API."""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None,
                 cache: Optional[ContentCache] = None, resume_path: Optional[str] = None):
        self.base_url = "https://generativelanguage.googleapis.com/v1beta"
        self.api_key = api_key or settings.GEMINI_API_KEY
        self.model = model or settings.GEMINI_MODEL
        self.cache = cache if cache is not None else ContentCache()
        self.resume_path = Path(resume_path or settings.ATTACHMENT_PATH)
        self.session = requests.Session()
        self.session.headers.update({
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
        })

    def generate_email(self, email: str, name: str = "", company: str = "",
                       prompt_template: str = "",
                       signature: Optional[Signature] = None) -> GeneratedEmail:
        """
        Produce a personalised email for one recipient.

        Args:
            email: Recipient address
            name: Recipient name; inferred from the address when empty
            company: Recipient company; inferred from the domain when empty
            prompt_template: Template with {{inferredName}}, {{inferredCompany}}
                and {{resumeText}} placeholders
            signature: Sender details appended as an HTML block

        Raises:
            ContentGenerationError when the API fails or returns unusable output
        """
        if not self.api_key:
            raise ContentGenerationError("GEMINI_API_KEY is missing")

        prompt = (prompt_template or DEFAULT_PROMPT)
        prompt = prompt.replace("{{inferredName}}", name or infer_name(email))
        prompt = prompt.replace("{{inferredCompany}}", company or infer_company(email))
        prompt = prompt.replace("{{resumeText}}", self.resume_text())

        text = self.generate_text(prompt)
        try:
            parsed = json.loads(strip_code_fence(text))
            subject = parsed["subject"]
            body = parsed["htmlBody"]
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            logger.error(f"Failed to parse Gemini response: {text[:500]}")
            raise ContentGenerationError("Failed to generate personalized email") from e

        body = _SIGN_OFF_RE.sub("", body)
        if signature:
            body += signature.to_html()
        return GeneratedEmail(subject=subject, body=body)

    def resume_text(self) -> str:
        return self.cache.get_text(self.resume_path)

    def extract_signature(self, resume_text: Optional[str] = None) -> Signature:
        """Pull sender contact details out of the resume."""
        if not self.api_key:
            raise ContentGenerationError("GEMINI_API_KEY is missing")

        text = resume_text if resume_text is not None else self.resume_text()
        response = self.generate_text(SIGNATURE_PROMPT.replace("{{resumeText}}", text))
        try:
            parsed = json.loads(strip_code_fence(response))
            return Signature(**{key: str(parsed.get(key) or "") for key in SIGNATURE_KEYS})
        except (json.JSONDecodeError, AttributeError) as e:
            logger.error(f"Failed to parse extracted signature details: {response[:500]}")
            raise ContentGenerationError("Failed to extract signature details") from e

    def suggest_prompt(self, resume_text: Optional[str] = None) -> str:
        """Draft a reusable prompt template tailored to the resume."""
        if not self.api_key:
            raise ContentGenerationError("GEMINI_API_KEY is missing")

        text = resume_text if resume_text is not None else self.resume_text()
        suggestion = self.generate_text(f"{SUGGEST_PROMPT}{text}\n---").strip()
        if not suggestion:
            raise ContentGenerationError("Gemini returned an empty prompt template")
        return suggestion

    def generate_text(self, prompt: str) -> str:
        """Send one prompt and return the first candidate's text."""
        payload = {"contents": [{"parts": [{"text": prompt}]}]}
        response = self._request("POST", f"/models/{self.model}:generateContent", payload)
        if not response:
            raise ContentGenerationError("Gemini request failed")

        try:
            parts = response["candidates"][0]["content"]["parts"]
            return "".join(part.get("text", "") for part in parts)
        except (KeyError, IndexError, TypeError) as e:
            raise ContentGenerationError(f"Unexpected Gemini response shape: {e}") from e

    def _request(self, method: str, endpoint: str, payload: Dict[str, Any],
                 retry_count: int = 0) -> Optional[Dict[str, Any]]:
        """Make API request with retry logic."""
        url = f"{self.base_url}{endpoint}"

        try:
            response = self.session.request(method=method, url=url, json=payload, timeout=60)

            if response.status_code == 429 and retry_count < 3:
                retry_after = int(response.headers.get("Retry-After", 30))
                logger.warning(f"Rate limited. Waiting {retry_after}s...")
                time.sleep(retry_after)
                return self._request(method, endpoint, payload, retry_count + 1)

            if response.status_code >= 500 and retry_count < 3:
                wait_time = 2 ** retry_count
                logger.warning(f"Server error {response.status_code}. Retrying in {wait_time}s...")
                time.sleep(wait_time)
                return self._request(method, endpoint, payload, retry_count + 1)

            response.raise_for_status()
            return response.json()

        except requests.exceptions.RequestException as e:
            if retry_count < 3 and isinstance(e, (requests.exceptions.ConnectionError, requests.exceptions.Timeout)):
                wait_time = 2 ** retry_count
                time.sleep(wait_time)
                return self._request(method, endpoint, payload, retry_count + 1)
            logger.error(f"Gemini API request failed: {e}")
            return None
