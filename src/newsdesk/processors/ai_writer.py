"""
LLM-backed article writing.

- Builds the newsroom rewrite prompt for a source article.
- Calls OpenAI Chat Completions (official client) or Google Gemini
  ``generateContent`` (REST) depending on ``llm.provider``.
- Cleans the reply, extracts headline and lede, and converts the body to HTML.
"""

import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from openai import OpenAI

from ..core.http_client import RetryableHTTPClient
from ..core.secrets import resolve_api_key
from ..core.text_utils import clean_ai_generated_content, extract_title_and_summary, markdown_to_html

logger = logging.getLogger(__name__)

GEMINI_URL = "https://generativelanguage.googleapis.com/v1/models/{model}:generateContent"
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
DEFAULT_GEMINI_MODEL = "gemini-pro"
DEFAULT_OUTLET = "La Voz del Norte Diario"

_REWRITE_TEMPLATE = """Eres un periodista experimentado de {outlet}, un periódico regional argentino.
Tu estilo periodístico se caracteriza por:
- Lenguaje claro, preciso y accesible para todo público
- Tono neutral pero cercano, evitando sensacionalismo
- Enfoque en hechos verificables y contexto regional
- Estructura clásica de noticia con pirámide invertida
- Lenguaje formal pero no rebuscado

Usa formato Markdown para resaltar elementos importantes:
- **Negritas** para nombres propios, lugares y datos clave
- *Cursivas* para énfasis sutil o citas textuales

Reescribe el siguiente contenido con el estilo periodístico de {outlet}:

**Título original:** {title}
**Contenido a reescribir:**
{content}

**Instrucciones específicas:**
1. Mantén TODA la información factual del contenido original
2. Conserva el enfoque y ángulo del artículo original
3. Estructura en pirámide invertida: lo más importante primero
4. Agrega contexto regional cuando sea relevante
5. Elimina redundancias y mantén el tono neutral
6. Longitud similar al original

Responde ÚNICAMENTE con el artículo reescrito en formato Markdown, sin introducción ni comentarios adicionales. El formato debe ser:

**Título Atractivo**

*Entradilla que resume lo esencial.*

Cuerpo del artículo con párrafos coherentes y bien estructurados."""


class GenerationError(RuntimeError):
    """Raised when the language model returns nothing usable."""


def build_rewrite_prompt(title: str, content: str, outlet: str = DEFAULT_OUTLET) -> str:
    return _REWRITE_TEMPLATE.format(outlet=outlet, title=title, content=content)


class ArticleWriter:
    """Generate and rewrite articles with the configured LLM provider."""

    def __init__(self, config: Dict[str, Any], secrets_dir: Optional[Path] = None,
                 http_client: Optional[RetryableHTTPClient] = None,
                 openai_factory: Callable[..., Any] = OpenAI):
        llm = config.get('llm') or {}
        self.provider = llm.get('provider', 'gemini')
        self.model = llm.get('model') or DEFAULT_OPENAI_MODEL
        self.gemini_model = llm.get('gemini_model') or DEFAULT_GEMINI_MODEL
        self.temperature = float(llm.get('temperature', 0.7))
        self.max_tokens = int(llm.get('max_tokens', 2000))
        self.max_retries = int(llm.get('max_retries', 3))
        self.outlet = config.get('outlet') or DEFAULT_OUTLET
        self._llm_cfg = llm
        self._secrets_dir = secrets_dir
        self._http = http_client
        self._openai_factory = openai_factory
        self._client = None

    def _openai_client(self):
        if self._client is None:
            env = self._llm_cfg.get('api_key_env') or 'OPENAI_API_KEY'
            key = resolve_api_key(env, self._secrets_dir, filenames=('openai.env',))
            self._client = self._openai_factory(api_key=key)
        return self._client

    def _call_openai(self, prompt: str, system_prompt: Optional[str], model: Optional[str]) -> Dict[str, Any]:
        client = self._openai_client()
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        resp = client.chat.completions.create(
            model=model or self.model,
            messages=messages,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        usage = getattr(resp, 'usage', None)
        return {
            'content': (resp.choices[0].message.content or '').strip(),
            'model': getattr(resp, 'model', None) or model or self.model,
            'usage': usage.model_dump() if hasattr(usage, 'model_dump') else usage,
        }

    def _call_gemini(self, prompt: str, system_prompt: Optional[str], model: Optional[str]) -> Dict[str, Any]:
        env = self._llm_cfg.get('gemini_api_key_env') or 'GEMINI_API_KEY'
        key = resolve_api_key(env, self._secrets_dir, filenames=('gemini.env',))
        if self._http is None:
            # complete() owns the retry loop
            self._http = RetryableHTTPClient(rps=1.0, max_retries=1, timeout=60)
        text = f"{system_prompt}\n\n{prompt}" if system_prompt else prompt
        payload = {
            "contents": [{"parts": [{"text": text}]}],
            "generationConfig": {"temperature": self.temperature, "maxOutputTokens": self.max_tokens},
        }
        model_name = model or self.gemini_model
        resp = self._http.post_with_retry(GEMINI_URL.format(model=model_name), params={'key': key}, json=payload)
        data = resp.json()
        try:
            content = data['candidates'][0]['content']['parts'][0]['text']
        except (KeyError, IndexError, TypeError):
            content = ''
        return {'content': (content or '').strip(), 'model': model_name, 'usage': data.get('usageMetadata')}

    def complete(self, prompt: str, system_prompt: Optional[str] = None, model: Optional[str] = None) -> Dict[str, Any]:
        """Run one prompt and return ``{content, usage, model}``.

        Transient failures are retried with exponential backoff.

        Raises:
            GenerationError: If every attempt failed or the reply was empty
        """
        call = self._call_gemini if self.provider == 'gemini' else self._call_openai
        last_error: Optional[Exception] = None
        for attempt in range(self.max_retries):
            try:
                result = call(prompt, system_prompt, model)
                if result['content']:
                    return result
                last_error = GenerationError("Empty response from language model")
            except RuntimeError as e:
                # Missing API keys are not transient
                if 'API key' in str(e):
                    raise
                last_error = e
            except Exception as e:
                last_error = e
            logger.warning(f"{self.provider} call failed (attempt {attempt + 1}/{self.max_retries}): {last_error}")
            if attempt < self.max_retries - 1:
                time.sleep(min(8.0, 2.0 ** attempt))
        raise GenerationError(f"Could not generate content: {last_error}")

    def generate(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        return self.complete(prompt, system_prompt)['content']

    def rewrite_article(self, article: Dict[str, Any]) -> Dict[str, str]:
        """Rewrite a stored article in the house style.

        Returns a dict with ``title``, ``summary``, ``content`` (HTML) and
        ``prompt_used``.
        """
        source_text = article.get('content') or article.get('description') or ''
        prompt = build_rewrite_prompt(article['title'], source_text, self.outlet)
        raw = self.generate(prompt)

        cleaned = clean_ai_generated_content(raw)
        title, summary, body = extract_title_and_summary(cleaned, article['title'])
        return {
            'title': title,
            'summary': summary,
            'content': markdown_to_html(body),
            'prompt_used': prompt,
        }
