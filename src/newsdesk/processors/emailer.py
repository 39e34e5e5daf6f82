"""
Email rendering and sending utilities for newsdesk.

Renders newsletter HTML from stored articles, personalizes campaign bodies,
and delivers messages through Resend (HTTP API) or SMTP (SSL) depending on
``email.provider`` in config.yaml.
"""

from __future__ import annotations

from typing import Dict, Any, List, Optional, Tuple
import datetime
import html
import logging
import os
import re
import smtplib
import ssl
from email.message import EmailMessage
from email.utils import make_msgid
from html.parser import HTMLParser
from pathlib import Path

from ..core.http_client import RetryableHTTPClient
from ..core.secrets import resolve_api_key

logger = logging.getLogger(__name__)

RESEND_URL = "https://api.resend.com/emails"
DEFAULT_RECIPIENT_NAME = "Suscriptor"
_NAME_PLACEHOLDER = re.compile(r"\{\{\s*name\s*\}\}")


def personalize(html_body: str, name: Optional[str]) -> str:
    """Replace every ``{{name}}`` placeholder with the contact name."""
    return _NAME_PLACEHOLDER.sub(html.escape(name or DEFAULT_RECIPIENT_NAME), html_body)


def html_to_text(html_body: str) -> str:
    """Plain-text alternative for an HTML email body."""
    text = re.sub(r"(?is)<(script|style).*?</\1>", "", html_body or "")
    text = re.sub(r"(?i)<br\s*/?>", "\n", text)
    text = re.sub(r"(?i)</(p|div|h[1-6]|li|tr)>", "\n", text)
    text = re.sub(r"<[^>]+>", "", text)
    text = html.unescape(text)
    lines = [re.sub(r"[ \t]+", " ", line).strip() for line in text.splitlines()]
    return re.sub(r"\n{3,}", "\n\n", "\n".join(lines)).strip()


class EmailRenderer:
    """Create compact HTML suitable for email clients (no external JS/CSS)."""

    def render_article_digest(
        self,
        section_title: str,
        articles: List[Dict[str, Any]],
        *,
        max_items: Optional[int] = None,
    ) -> str:
        """Return HTML for one newsletter section.

        Articles are expected to contain: title, url (or link), summary or
        description, image_url, category, published_at.
        """
        items = list(articles)
        if max_items is not None:
            items = items[: max_items]

        parts: List[str] = [f'<h2 style="margin:16px 0 8px;">{html.escape(section_title)}</h2>']
        if not items:
            parts.append('<p style="font-style:italic;color:#555;">Sin novedades.</p>')
            return "\n".join(parts)

        for a in items:
            title = html.escape((a.get('title') or '').strip() or 'Sin título')
            link = html.escape((a.get('url') or a.get('link') or '#').strip(), quote=True)
            category = html.escape((a.get('category') or '').strip())
            published = html.escape((a.get('published_at') or a.get('created_at') or '')[:10])
            body = (a.get('summary') or a.get('description') or '').strip()
            body_html = self._sanitize_html(body) if body else ''
            image = (a.get('image_url') or '').strip()
            image_html = ''
            if image.startswith(('http://', 'https://')):
                image_html = (
                    f'<img src="{html.escape(image, quote=True)}" alt="" '
                    'style="max-width:100%;height:auto;border-radius:4px;margin:6px 0;">'
                )

            parts.append(
                f"""
<div style="margin:12px 0 18px;">
  {image_html}
  <div style="font-size:17px;line-height:1.35;">
    <a href="{link}" target="_blank" style="color:#8b1a1a;text-decoration:none;">{title}</a>
  </div>
  <div style="color:#333;margin:6px 0;">{body_html}</div>
  <div style="color:#666;font-size:12px;"><strong>{category}</strong> · {published}</div>
</div>
"""
            )
        return "\n".join(parts)

    def _sanitize_html(self, html_text: str) -> str:
        """Return a sanitized HTML string suitable for email.

        - Allows a small whitelist of inline/block tags plus <a> and <img>
        - For <a> and <img>, only http/https URLs survive
        - Escapes all text and drops disallowed tags/attributes
        """
        if not html_text or ('<' not in html_text and '>' not in html_text):
            return html.escape(html_text or '')

        allowed_tags = {'b', 'strong', 'i', 'em', 'u', 'br', 'p', 'ul', 'ol', 'li', 'span', 'a', 'img', 'h2', 'h3'}
        skip_tags = {'script', 'style'}
        out: List[str] = []
        skip_stack: List[str] = []

        def is_http_url(url: Optional[str]) -> bool:
            u = (url or '').strip().lower()
            return u.startswith('http://') or u.startswith('https://')

        class Sanitizer(HTMLParser):
            def handle_starttag(self, tag, attrs):
                if tag in skip_tags:
                    skip_stack.append(tag)
                    return
                if tag not in allowed_tags or skip_stack:
                    return
                attrs_map = dict(attrs)
                if tag == 'a':
                    href = attrs_map.get('href')
                    if is_http_url(href):
                        out.append(f'<a href="{html.escape(href, quote=True)}" target="_blank" rel="noopener noreferrer">')
                    else:
                        out.append('<a>')
                elif tag == 'img':
                    src = attrs_map.get('src')
                    if is_http_url(src):
                        alt = html.escape(attrs_map.get('alt') or '', quote=True)
                        out.append(f'<img src="{html.escape(src, quote=True)}" alt="{alt}" style="max-width:100%;height:auto;">')
                else:
                    out.append(f'<{tag}>')

            def handle_endtag(self, tag):
                if skip_stack and tag == skip_stack[-1]:
                    skip_stack.pop()
                    return
                if tag not in allowed_tags or tag in ('img', 'br') or skip_stack:
                    return
                out.append(f'</{tag}>')

            def handle_data(self, data):
                if not skip_stack:
                    out.append(html.escape(data))

        parser = Sanitizer(convert_charrefs=True)
        parser.feed(html_text)
        parser.close()
        return ''.join(out)

    def render_full_email(
        self,
        title: str,
        sections: List[Tuple[str, str]],
        *,
        outlet: str = "",
        footer_html: Optional[str] = None,
    ) -> str:
        """Return a complete HTML email with a masthead and pre-rendered sections.

        sections: list of (anchor_name, section_html); section_html already
        carries its own heading.
        """
        safe_title = html.escape(title)
        masthead = html.escape(outlet) if outlet else safe_title
        today = datetime.date.today().isoformat()
        head = f"""
<!DOCTYPE html>
<html>
<head>
  <meta charset="UTF-8">
  <title>{safe_title}</title>
  <style>
    body {{ font-family: Georgia, 'Times New Roman', serif; margin: 12px 16px; color: #111; }}
    h1 {{ color: #8b1a1a; font-size: 24px; margin: 0 0 4px; }}
    h2 {{ color: #333; font-size: 18px; margin: 16px 0 8px; border-bottom: 2px solid #8b1a1a; }}
    a  {{ color: #8b1a1a; }}
    hr {{ border: none; border-top: 1px solid #ddd; margin: 12px 0; }}
  </style>
</head>
<body>
  <h1>{masthead}</h1>
  <div style="color:#666;font-size:13px;margin-bottom:12px;">{safe_title} · {today}</div>
"""
        body_parts: List[str] = [head]
        for anchor, sec_html in sections:
            body_parts.append(f'<a name="{html.escape(anchor, quote=True)}"></a>')
            body_parts.append(sec_html)
            body_parts.append("<hr>")
        if footer_html:
            body_parts.append(f'<div style="color:#888;font-size:12px;">{footer_html}</div>')
        body_parts.append("</body></html>")
        return "\n".join(body_parts)


def format_from_header(from_addr: str, from_name: Optional[str] = None) -> str:
    return f"{from_name} <{from_addr}>" if from_name else from_addr


class ResendSender:
    """Send emails through the Resend HTTP API."""

    def __init__(self, api_key: str, from_addr: str, from_name: Optional[str] = None,
                 http_client: Optional[RetryableHTTPClient] = None) -> None:
        self.api_key = api_key
        self.from_header = format_from_header(from_addr, from_name)
        self.http = http_client or RetryableHTTPClient(rps=2.0, max_retries=3, timeout=30)

    def send(self, *, subject: str, to_addrs: List[str], html_body: str,
             text_body: Optional[str] = None) -> Optional[str]:
        """Send one message; returns the Resend message id."""
        payload: Dict[str, Any] = {
            'from': self.from_header,
            'to': to_addrs,
            'subject': subject,
            'html': html_body,
        }
        if text_body:
            payload['text'] = text_body
        resp = self.http.post_with_retry(
            RESEND_URL,
            headers={'Authorization': f"Bearer {self.api_key}", 'Content-Type': 'application/json'},
            json=payload,
        )
        return (resp.json() or {}).get('id')


class SMTPSender:
    """Send emails via SMTP (SSL) using settings under config['email']['smtp']."""

    def __init__(self, smtp_cfg: Dict[str, Any], from_addr: str, from_name: Optional[str] = None,
                 config_dir: Optional[str] = None) -> None:
        """Initialize SMTP connection parameters and optional password lookup directory."""
        self.host = str(smtp_cfg.get('host') or '')
        self.port = int(smtp_cfg.get('port') or 465)
        self.username = str(smtp_cfg.get('username') or '')
        self.password = str(smtp_cfg.get('password') or '')  # discouraged; prefer file
        self.password_file = smtp_cfg.get('password_file')
        self.from_header = format_from_header(from_addr, from_name)
        self._config_dir = Path(config_dir).expanduser().resolve() if config_dir else None

    def _load_password(self) -> str:
        """Fetch SMTP password via inline config, password file, or environment fallback."""
        if self.password:
            return self.password
        if self.password_file:
            candidate = Path(str(self.password_file)).expanduser()
            if not candidate.is_absolute() and self._config_dir:
                secrets_candidate = self._config_dir / 'secrets' / candidate
                candidate = secrets_candidate if secrets_candidate.exists() else self._config_dir / candidate
            if candidate.exists():
                lines = [
                    line.strip() for line in candidate.read_text(encoding='utf-8').splitlines()
                    if line.strip() and not line.strip().startswith('#')
                ]
                if lines:
                    return lines[0]
        return os.environ.get('SMTP_PASSWORD', '')

    def send(self, *, subject: str, to_addrs: List[str], html_body: str,
             text_body: Optional[str] = None) -> Optional[str]:
        """Send a multipart email with HTML alternative using SMTP over SSL; returns the Message-ID."""
        if not self.host or not self.port or not self.username:
            raise RuntimeError("SMTP configuration incomplete: host/port/username required")
        password = self._load_password()
        if not password:
            raise RuntimeError("SMTP password not found. Set email.smtp.password_file or email.smtp.password in config.")

        msg = EmailMessage()
        msg['Subject'] = subject
        msg['From'] = self.from_header
        msg['To'] = ", ".join(to_addrs)
        msg['Message-ID'] = make_msgid()
        msg.set_content(text_body or html_to_text(html_body) or "HTML email; open in an HTML-capable client.")
        msg.add_alternative(html_body, subtype='html')

        context = ssl.create_default_context()
        with smtplib.SMTP_SSL(self.host, self.port, context=context) as server:
            server.login(self.username, password)
            server.send_message(msg)
        return msg['Message-ID']


def build_sender(config: Dict[str, Any], config_dir: Optional[str] = None):
    """Create the sender configured under ``email.provider``."""
    email_cfg = config.get('email') or {}
    provider = email_cfg.get('provider', 'resend')
    from_addr = email_cfg.get('from') or ''
    from_name = email_cfg.get('from_name') or config.get('outlet')
    if not from_addr:
        raise RuntimeError("email.from is not configured")
    if provider == 'smtp':
        return SMTPSender(email_cfg.get('smtp') or {}, from_addr, from_name, config_dir=config_dir)
    env = (email_cfg.get('resend') or {}).get('api_key_env') or 'RESEND_API_KEY'
    secrets_dir = Path(config_dir) / 'secrets' if config_dir else None
    key = resolve_api_key(env, secrets_dir, filenames=('resend.env',))
    return ResendSender(key, from_addr, from_name)
