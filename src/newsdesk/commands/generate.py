"""
AI generation commands.

- ``complete``: run a free-form prompt against the configured provider.
- ``run``: rewrite one stored article in the house style and save it as an
  AI article (draft unless publishing was requested).
"""

import logging
from typing import Any, Dict, Optional

from ..core.command_context import CommandContext
from ..core.dates import now_iso
from ..processors.ai_writer import ArticleWriter
from ..processors.article_cache import ArticlesCache, articles_cache
from ..processors.images import PexelsClient

logger = logging.getLogger(__name__)


def build_writer(ctx: CommandContext) -> ArticleWriter:
    return ArticleWriter(ctx.config, secrets_dir=ctx.config_manager.secrets_dir)


def rewrite_and_store(
    ctx: CommandContext,
    article: Dict[str, Any],
    writer: ArticleWriter,
    *,
    publish: bool = False,
    category: Optional[str] = None,
    image_client: Optional[PexelsClient] = None,
) -> Dict[str, Any]:
    """Rewrite *article* and insert the result into ``ai_generated_articles``."""
    rewritten = writer.rewrite_article(article)
    image_url = article.get('image_url')
    image_caption = ''
    if not image_url and image_client is not None:
        found = image_client.image_for_article(rewritten['title'], category or article.get('category') or '',
                                               rewritten['summary'])
        if found:
            image_url, image_caption = found['image_url'], found['image_caption']

    return ctx.db.insert_row('ai_generated_articles', {
        'title': rewritten['title'],
        'content': rewritten['content'],
        'summary': rewritten['summary'],
        'category': category or article.get('category'),
        'status': 'published' if publish else 'draft',
        'source_rss_id': None,
        'prompt_used': rewritten['prompt_used'],
        'image_url': image_url,
        'image_caption': image_caption,
        'author': ctx.get_setting('outlet', default='La Voz del Norte Diario'),
        'published_at': now_iso() if publish else None,
    })


def complete(config_path: Optional[str], prompt: str, system_prompt: Optional[str] = None,
             model: Optional[str] = None, *, writer: Optional[ArticleWriter] = None) -> Dict[str, Any]:
    """Return ``{content, usage, model}`` for a single prompt."""
    if not (prompt or '').strip():
        raise ValueError("Prompt is required")
    ctx = CommandContext(config_path)
    writer = writer or build_writer(ctx)
    return writer.complete(prompt, system_prompt, model)


def run(
    config_path: Optional[str],
    article_id: str,
    table: str = 'articles',
    *,
    publish: bool = False,
    with_image: bool = False,
    writer: Optional[ArticleWriter] = None,
    image_client: Optional[PexelsClient] = None,
    cache: Optional[ArticlesCache] = None,
) -> Dict[str, Any]:
    """Rewrite the stored article *article_id* from *table*; returns the new AI article row."""
    if table not in ('articles', 'local_news'):
        raise ValueError("Only RSS articles and local news can be rewritten")
    ctx = CommandContext(config_path)
    article = ctx.db.get_row(table, article_id)
    if article is None:
        raise LookupError(f"Article '{article_id}' not found in {table}")
    if table == 'local_news' and not article.get('description'):
        article['description'] = article.get('summary')

    writer = writer or build_writer(ctx)
    if with_image and image_client is None:
        image_client = PexelsClient(config=ctx.config, secrets_dir=ctx.config_manager.secrets_dir)
    stored = rewrite_and_store(ctx, article, writer, publish=publish, image_client=image_client)

    if publish:
        (cache if cache is not None else articles_cache).invalidate_category(stored.get('category'))
        (cache if cache is not None else articles_cache).invalidate_category(None)
    logger.info(f"Generated AI article {stored['id']} from {table}/{article_id}")
    return stored
