"""Tests for email rendering and sending functionality."""

from pathlib import Path
import sys

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from newsdesk.processors.emailer import (  # noqa: E402
    RESEND_URL,
    EmailRenderer,
    ResendSender,
    SMTPSender,
    build_sender,
    html_to_text,
    personalize,
)


class FakeResponse:
    def __init__(self, payload):
        self.payload = payload

    def json(self):
        return self.payload


class RecordingHTTP:
    def __init__(self, payload=None):
        self.payload = payload if payload is not None else {"id": "msg-1"}
        self.posts = []

    def post_with_retry(self, url, **kwargs):
        self.posts.append((url, kwargs))
        return FakeResponse(self.payload)


def test_personalize_replaces_every_placeholder():
    body = "<p>Hola {{name}}, gracias {{ name }}.</p>"
    assert personalize(body, "Ana") == "<p>Hola Ana, gracias Ana.</p>"
    assert personalize(body, None) == "<p>Hola Suscriptor, gracias Suscriptor.</p>"
    assert personalize("{{name}}", "<b>") == "&lt;b&gt;"


def test_html_to_text_conversion():
    """Test that HTML is properly converted to plain text."""
    html_body = """
    <!DOCTYPE html>
    <html>
    <head><style>body { color: red; }</style></head>
    <body>
      <h1>Portada</h1>
      <p>Primera   línea<br>segunda &amp; última</p>
      <div>Cierre</div>
    </body>
    </html>
    """

    text = html_to_text(html_body)

    assert '<p>' not in text
    assert 'color: red' not in text
    assert 'Portada' in text
    assert 'Primera línea\nsegunda & última' in text
    assert text.endswith('Cierre')
    assert '\n\n\n' not in text


def test_render_article_digest():
    """Test that a newsletter section renders every article."""
    renderer = EmailRenderer()

    articles = [
        {
            'title': 'Nuevo hospital',
            'url': 'https://diario.example.com/hospital',
            'summary': '<p>Abrió sus puertas.</p>',
            'category': 'Salud',
            'published_at': '2025-10-06T10:00:00+00:00',
            'image_url': 'https://img.example.com/h.jpg',
        },
        {
            'title': '',
            'link': 'https://diario.example.com/otra',
            'description': 'Texto plano',
            'image_url': 'ftp://img.example.com/x.jpg',
        },
    ]

    html = renderer.render_article_digest('Últimas noticias', articles)

    assert 'Últimas noticias' in html
    assert 'Nuevo hospital' in html
    assert 'Sin título' in html
    assert 'https://diario.example.com/otra' in html
    assert '2025-10-06' in html
    assert 'src="https://img.example.com/h.jpg"' in html
    assert 'ftp://' not in html


def test_render_article_digest_empty_and_limited():
    renderer = EmailRenderer()
    assert 'Sin novedades.' in renderer.render_article_digest('Vacía', [])

    items = [{'title': f'Nota {i}', 'url': f'https://x.example/{i}'} for i in range(5)]
    html = renderer.render_article_digest('Top', items, max_items=2)
    assert 'Nota 1' in html
    assert 'Nota 2' not in html


def test_render_full_email():
    """Test that full email structure is created."""
    renderer = EmailRenderer()

    sections = [
        ('portada', '<p>Content 1</p>'),
        ('deportes', '<p>Content 2</p>'),
    ]

    html = renderer.render_full_email('Resumen diario', sections, outlet='El Diario', footer_html='Baja')

    assert '<!DOCTYPE html>' in html
    assert '<h1>El Diario</h1>' in html
    assert 'Resumen diario' in html
    assert '<a name="portada"></a>' in html
    assert 'Content 2' in html
    assert 'Baja' in html
    assert 'stylesheet' not in html.lower()


def test_sanitize_html():
    """Test HTML sanitization for article summaries."""
    renderer = EmailRenderer()

    malicious = '<script>alert("xss")</script><p>Safe text</p>'
    result = renderer._sanitize_html(malicious)
    assert '<script>' not in result
    assert 'alert' not in result
    assert '<p>Safe text</p>' in result

    img_html = '<p>Texto con <img src="https://example.com/img.png" alt="foto"> imagen</p>'
    result = renderer._sanitize_html(img_html)
    assert 'src="https://example.com/img.png"' in result
    assert 'max-width:100%' in result

    link_html = '<a href="https://example.com">Safe link</a><a href="javascript:alert()">Bad link</a>'
    result = renderer._sanitize_html(link_html)
    assert 'href="https://example.com"' in result
    assert 'javascript:' not in result
    assert 'Bad link' in result

    assert renderer._sanitize_html('a & b') == 'a &amp; b'


def test_resend_sender_posts_payload():
    http = RecordingHTTP({"id": "re_123"})
    sender = ResendSender("key-1", "noticias@diario.example.com", "El Diario", http_client=http)

    message_id = sender.send(
        subject="Hola",
        to_addrs=["ana@example.com"],
        html_body="<p>Hola</p>",
        text_body="Hola",
    )

    assert message_id == "re_123"
    [(url, kwargs)] = http.posts
    assert url == RESEND_URL
    assert kwargs["headers"]["Authorization"] == "Bearer key-1"
    assert kwargs["json"] == {
        "from": "El Diario <noticias@diario.example.com>",
        "to": ["ana@example.com"],
        "subject": "Hola",
        "html": "<p>Hola</p>",
        "text": "Hola",
    }


def test_senders_share_from_header_format():
    resend = ResendSender("key-1", "noticias@diario.example.com", "El Diario", http_client=RecordingHTTP({}))
    smtp = SMTPSender({'host': 'smtp.example.com'}, "noticias@diario.example.com", "El Diario")

    assert resend.from_header == smtp.from_header == "El Diario <noticias@diario.example.com>"
    assert ResendSender("k", "noticias@diario.example.com", http_client=RecordingHTTP({})).from_header == \
        "noticias@diario.example.com"


def test_smtp_sender_requires_configuration():
    sender = SMTPSender({'host': '', 'port': 465, 'username': ''}, 'a@example.com')
    with pytest.raises(RuntimeError):
        sender.send(subject='s', to_addrs=['b@example.com'], html_body='<p>x</p>')


def test_smtp_password_file_relative_to_secrets(tmp_path, monkeypatch):
    monkeypatch.delenv('SMTP_PASSWORD', raising=False)
    (tmp_path / 'secrets').mkdir()
    (tmp_path / 'secrets' / 'email_password.env').write_text('# comment\nhunter2\n', encoding='utf-8')

    sender = SMTPSender(
        {'host': 'smtp.example.com', 'port': 465, 'username': 'u', 'password_file': 'email_password.env'},
        'a@example.com',
        config_dir=str(tmp_path),
    )

    assert sender._load_password() == 'hunter2'


def test_smtp_sender_sends_multipart_message(monkeypatch):
    sent = []

    class FakeSMTP:
        def __init__(self, host, port, context=None):
            self.host, self.port = host, port

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

        def login(self, username, password):
            sent.append(('login', username, password))

        def send_message(self, msg):
            sent.append(('send', msg))

    monkeypatch.setattr('newsdesk.processors.emailer.smtplib.SMTP_SSL', FakeSMTP)
    sender = SMTPSender(
        {'host': 'smtp.example.com', 'port': 465, 'username': 'u', 'password': 'p'},
        'a@example.com',
        'El Diario',
    )

    message_id = sender.send(subject='Hola', to_addrs=['b@example.com', 'c@example.com'], html_body='<p>Hola</p>')

    assert sent[0] == ('login', 'u', 'p')
    msg = sent[1][1]
    assert msg['To'] == 'b@example.com, c@example.com'
    assert msg['From'] == 'El Diario <a@example.com>'
    assert message_id == msg['Message-ID']
    assert msg.get_body(preferencelist=('plain',)).get_content().strip() == 'Hola'


def test_build_sender_by_provider(tmp_path, monkeypatch):
    monkeypatch.setenv('RESEND_API_KEY', 'from-env')
    resend = build_sender({'email': {'provider': 'resend', 'from': 'a@example.com'}}, str(tmp_path))
    assert isinstance(resend, ResendSender)
    assert resend.api_key == 'from-env'

    smtp = build_sender({'email': {'provider': 'smtp', 'from': 'a@example.com', 'smtp': {'host': 'h'}}})
    assert isinstance(smtp, SMTPSender)

    with pytest.raises(RuntimeError):
        build_sender({'email': {'provider': 'resend'}})
