"""Command-line entry point for newsdesk."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click

from .commands import ads as ads_cmd
from .commands import articles as articles_cmd
from .commands import auth as auth_cmd
from .commands import automation as automation_cmd
from .commands import campaigns as campaigns_cmd
from .commands import cleanup as cleanup_cmd
from .commands import featured as featured_cmd
from .commands import generate as generate_cmd
from .commands import ingest as ingest_cmd
from .core.command_context import CommandContext
from .core.config import ConfigManager, DEFAULT_CONFIG_PATH
from .core.database import ARTICLE_TABLES
from .core.paths import get_data_dir
from . import status as status_api

# Setup logging early so submodules inherit sane defaults
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

TABLE_CHOICE = click.Choice(list(ARTICLE_TABLES))


def _fail(what: str, exc: Exception) -> None:
    click.echo(f"❌ {what} failed: {exc}", err=True)
    sys.exit(1)


@click.group()
@click.option(
    "--config",
    default=str(DEFAULT_CONFIG_PATH),
    show_default=True,
    help="Path to config file (defaults to data_dir/config/config.yaml)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx: click.Context, config: str, verbose: bool) -> None:
    """newsdesk - newsroom admin backend: ingestion, AI rewriting, campaigns and ads."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config


# ----------------------------------------------------------------------
# Ingestion

@cli.group("ingest", invoke_without_command=True)
@click.option("--force", is_flag=True, help="Ignore the per-source refresh interval")
@click.pass_context
def ingest(ctx: click.Context, force: bool) -> None:
    """Fetch RSS feeds and web sources and store new articles."""
    if ctx.invoked_subcommand is not None:
        return
    try:
        result = ingest_cmd.run(ctx.obj["config_path"], force=force)
        click.echo(f"✅ {result['message']} ({result['total_articles_processed']} items read)")
    except Exception as exc:  # pragma: no cover - click echoes the message
        _fail("Ingest", exc)


@ingest.command("local")
@click.option("--source", "source_index", type=int, default=None,
              help="Process only the local source at this position")
@click.option("--max", "max_per_source", type=click.IntRange(min=1), default=None,
              help="Items to keep per source")
@click.pass_context
def ingest_local(ctx: click.Context, source_index: int | None, max_per_source: int | None) -> None:
    """Fetch the provincial outlets into the local news table."""
    try:
        result = ingest_cmd.run_local(ctx.obj["config_path"], source_index=source_index,
                                      max_per_source=max_per_source)
    except Exception as exc:
        _fail("Local ingest", exc)
    click.echo(f"✅ {result['message']} ({result['total_news_processed']} items read)")
    if result['has_more']:
        click.echo(f"➡️  Next source index: {source_index + 1}")


@cli.command("categorize")
@click.argument("title")
@click.option("--description", default="", help="Optional lede used as extra context")
@click.pass_context
def categorize(ctx: click.Context, title: str, description: str) -> None:
    """Print the section a headline would be filed under."""
    click.echo(ingest_cmd.categorize(title, description, ctx.obj["config_path"]))


@cli.group("sources")
def sources() -> None:
    """Manage RSS and scraped web sources."""


@sources.command("add")
@click.argument("url")
@click.option("--name", help="Display name (defaults to the url)")
@click.option("--category", help="Default section for the source")
@click.option("--type", "source_type", type=click.Choice(["rss", "web"]), default="rss", show_default=True)
@click.option("--scrape-selector", help="CSS selector for article blocks (web sources)")
@click.option("--title-selector")
@click.option("--description-selector")
@click.option("--link-selector")
@click.option("--date-selector")
@click.option("--base-url", help="Page to scrape and base for relative links")
@click.pass_context
def sources_add(ctx: click.Context, url: str, name: str | None, category: str | None, source_type: str,
                scrape_selector: str | None, title_selector: str | None, description_selector: str | None,
                link_selector: str | None, date_selector: str | None, base_url: str | None) -> None:
    """Register a source in the database."""
    try:
        source = ingest_cmd.add_source(
            ctx.obj["config_path"], url, name=name, category=category, source_type=source_type,
            scrape_selector=scrape_selector, title_selector=title_selector,
            description_selector=description_selector, link_selector=link_selector,
            date_selector=date_selector, base_url=base_url,
        )
        click.echo(f"✅ Source saved: {source['name']} ({source['id']})")
    except Exception as exc:  # pragma: no cover - click echoes the message
        _fail("Adding source", exc)


@sources.command("list")
@click.option("--active-only", is_flag=True)
@click.pass_context
def sources_list(ctx: click.Context, active_only: bool) -> None:
    """List configured sources."""
    for source in ingest_cmd.list_sources(ctx.obj["config_path"], active_only=active_only):
        state = "on " if source['is_active'] else "off"
        click.echo(f"[{state}] {source['source_type']:<3} {source['name']} - {source['url']} "
                   f"(last run: {source.get('updated_at') or 'never'})")


@sources.command("enable")
@click.argument("source")
@click.pass_context
def sources_enable(ctx: click.Context, source: str) -> None:
    """Enable a source by id or url."""
    if ingest_cmd.set_source_active(ctx.obj["config_path"], source, True):
        click.echo(f"✅ Enabled {source}")
    else:
        _fail("Enable", LookupError(f"source '{source}' not found"))


@sources.command("disable")
@click.argument("source")
@click.pass_context
def sources_disable(ctx: click.Context, source: str) -> None:
    """Disable a source by id or url."""
    if ingest_cmd.set_source_active(ctx.obj["config_path"], source, False):
        click.echo(f"✅ Disabled {source}")
    else:
        _fail("Disable", LookupError(f"source '{source}' not found"))


# ----------------------------------------------------------------------
# Articles

@cli.group("articles")
def articles() -> None:
    """Browse and edit stored articles."""


@articles.command("list")
@click.option("--category", help="Restrict to one section")
@click.option("--page", default=1, type=int, show_default=True)
@click.option("--page-size", default=20, type=int, show_default=True)
@click.pass_context
def articles_list(ctx: click.Context, category: str | None, page: int, page_size: int) -> None:
    """Show the combined front-page listing."""
    try:
        items, total = articles_cmd.list_articles(ctx.obj["config_path"], category, page, page_size)
        click.echo(f"📰 {total} articles (page {page})")
        for item in items:
            flags = ("★" if item['is_featured'] else " ") + ("AI" if item['is_ai'] else "  ")
            click.echo(f"{flags} {item['source_table']}:{item['id']} [{item['category']}] {item['title']}")
    except Exception as exc:  # pragma: no cover - click echoes the message
        _fail("Listing articles", exc)


@articles.command("publish")
@click.argument("article_id")
@click.pass_context
def articles_publish(ctx: click.Context, article_id: str) -> None:
    """Publish an AI-generated article."""
    try:
        articles_cmd.set_status(ctx.obj["config_path"], article_id, "published")
        click.echo(f"✅ Published {article_id}")
    except Exception as exc:  # pragma: no cover - click echoes the message
        _fail("Publish", exc)


@articles.command("unpublish")
@click.argument("article_id")
@click.pass_context
def articles_unpublish(ctx: click.Context, article_id: str) -> None:
    """Move an AI-generated article back to draft."""
    try:
        articles_cmd.set_status(ctx.obj["config_path"], article_id, "draft")
        click.echo(f"✅ {article_id} is now a draft")
    except Exception as exc:  # pragma: no cover - click echoes the message
        _fail("Unpublish", exc)


@articles.command("feature")
@click.argument("article_id")
@click.option("--table", type=TABLE_CHOICE, default="articles", show_default=True)
@click.pass_context
def articles_feature(ctx: click.Context, article_id: str, table: str) -> None:
    """Toggle the featured flag of an article."""
    try:
        featured = articles_cmd.toggle_featured(ctx.obj["config_path"], table, article_id)
        click.echo(f"✅ {article_id} {'featured' if featured else 'no longer featured'}")
    except Exception as exc:  # pragma: no cover - click echoes the message
        _fail("Feature toggle", exc)


@articles.command("delete")
@click.argument("article_id")
@click.option("--table", type=TABLE_CHOICE, default="articles", show_default=True)
@click.pass_context
def articles_delete(ctx: click.Context, article_id: str, table: str) -> None:
    """Delete an article."""
    try:
        if not articles_cmd.delete_article(ctx.obj["config_path"], table, article_id):
            raise LookupError(f"article '{article_id}' not found in {table}")
        click.echo(f"✅ Deleted {table}:{article_id}")
    except Exception as exc:  # pragma: no cover - click echoes the message
        _fail("Delete", exc)


@articles.command("convert")
@click.argument("article_id")
@click.option("--table", type=click.Choice(["articles", "local_news"]), default="articles", show_default=True)
@click.option("--title", help="Replace the title while converting")
@click.option("--category", help="Replace the section while converting")
@click.pass_context
def articles_convert(ctx: click.Context, article_id: str, table: str, title: str | None,
                     category: str | None) -> None:
    """Turn an RSS or local article into an own published article."""
    overrides = {k: v for k, v in {'title': title, 'category': category}.items() if v}
    try:
        stored = articles_cmd.convert_to_own(ctx.obj["config_path"], table, article_id, overrides)
        click.echo(f"✅ Converted into own article {stored['id']}")
    except Exception as exc:  # pragma: no cover - click echoes the message
        _fail("Convert", exc)


@articles.command("generate")
@click.argument("article_id")
@click.option("--table", type=click.Choice(["articles", "local_news"]), default="articles", show_default=True)
@click.option("--publish", is_flag=True, help="Publish immediately instead of saving a draft")
@click.option("--with-image", is_flag=True, help="Look up a stock photo when the source has none")
@click.pass_context
def articles_generate(ctx: click.Context, article_id: str, table: str, publish: bool, with_image: bool) -> None:
    """Rewrite a stored article with the configured AI provider."""
    try:
        stored = generate_cmd.run(ctx.obj["config_path"], article_id, table,
                                  publish=publish, with_image=with_image)
        click.echo(f"✅ AI article {stored['id']} saved as {stored['status']}: {stored['title']}")
    except Exception as exc:  # pragma: no cover - click echoes the message
        _fail("Generation", exc)


# ----------------------------------------------------------------------
# Featured schedule

@cli.group("featured")
def featured() -> None:
    """Schedule featured content slots."""


@featured.command("add")
@click.argument("content_ref")
@click.option("--start", "start_at", required=True, help="Start (ISO date/time)")
@click.option("--end", "end_at", help="Optional end (ISO date/time)")
@click.option("--position", default=featured_cmd.DEFAULT_POSITION, show_default=True)
@click.option("--priority", default=0, type=int, show_default=True)
@click.option("--type", "content_type", type=click.Choice(list(featured_cmd.CONTENT_TYPES)), default="article")
@click.option("--metadata", help="JSON object with extra display data")
@click.pass_context
def featured_add(ctx: click.Context, content_ref: str, start_at: str, end_at: str | None, position: str,
                 priority: int, content_type: str, metadata: str | None) -> None:
    """Schedule CONTENT_REF (``table:id`` or an article id)."""
    try:
        row = featured_cmd.add_schedule(ctx.obj["config_path"], content_ref, start_at, end_at,
                                        position=position, priority=priority,
                                        content_type=content_type, metadata=metadata)
        click.echo(f"✅ Scheduled {row['id']} in {row['position']}")
    except Exception as exc:  # pragma: no cover - click echoes the message
        _fail("Scheduling", exc)


@featured.command("list")
@click.pass_context
def featured_list(ctx: click.Context) -> None:
    """List all schedule entries."""
    for row in featured_cmd.list_schedule(ctx.obj["config_path"]):
        state = "on " if row['active'] else "off"
        click.echo(f"[{state}] {row['id']} {row['position']} p{row['priority']} "
                   f"{row['ref_table']}:{row['content_id']} {row['start_at']} -> {row.get('end_at') or '...'}")


@featured.command("remove")
@click.argument("schedule_id")
@click.pass_context
def featured_remove(ctx: click.Context, schedule_id: str) -> None:
    """Delete a schedule entry."""
    if featured_cmd.delete_schedule(ctx.obj["config_path"], schedule_id):
        click.echo(f"✅ Removed {schedule_id}")
    else:
        _fail("Remove", LookupError(f"schedule '{schedule_id}' not found"))


@featured.command("active")
@click.option("--position", help="Only this slot")
@click.pass_context
def featured_active(ctx: click.Context, position: str | None) -> None:
    """Show what is live right now."""
    for row in featured_cmd.active_items(ctx.obj["config_path"], position):
        click.echo(f"{row['position']} p{row['priority']} {row['ref_table']}:{row['content_id']}")


@featured.command("rotate")
@click.pass_context
def featured_rotate(ctx: click.Context) -> None:
    """Clear yesterday's featured flags and expire ended schedules."""
    try:
        result = featured_cmd.rotate(ctx.obj["config_path"])
        click.echo(f"✅ Unfeatured {result['unfeatured']} articles, expired {result['expired']} schedules")
    except Exception as exc:  # pragma: no cover - click echoes the message
        _fail("Rotate", exc)


# ----------------------------------------------------------------------
# Ads and toasts

@cli.group("ads")
def ads() -> None:
    """Manage advertisements."""


@ads.command("add")
@click.argument("title")
@click.argument("image_url")
@click.option("--link", "link_url", help="Click-through URL")
@click.option("--placement", default=ads_cmd.DEFAULT_PLACEMENT, show_default=True)
@click.option("--width", default=ads_cmd.DEFAULT_WIDTH, type=int, show_default=True)
@click.option("--height", default=ads_cmd.DEFAULT_HEIGHT, type=int, show_default=True)
@click.option("--inactive", is_flag=True, help="Store paused")
@click.pass_context
def ads_add(ctx: click.Context, title: str, image_url: str, link_url: str | None, placement: str,
            width: int, height: int, inactive: bool) -> None:
    """Add an advertisement."""
    try:
        row = ads_cmd.add_advertisement(ctx.obj["config_path"], title, image_url, link_url, placement,
                                        width, height, is_active=not inactive)
        click.echo(f"✅ Advertisement {row['id']} added to {row['placement']}")
    except Exception as exc:  # pragma: no cover - click echoes the message
        _fail("Adding advertisement", exc)


@ads.command("list")
@click.option("--placement")
@click.option("--active-only", is_flag=True)
@click.pass_context
def ads_list(ctx: click.Context, placement: str | None, active_only: bool) -> None:
    """List advertisements by placement and order."""
    for ad in ads_cmd.list_advertisements(ctx.obj["config_path"], placement, active_only):
        state = "on " if ad['is_active'] else "off"
        click.echo(f"[{state}] {ad['placement']} #{ad['sort_order']} {ad['title']} "
                   f"({ad['width']}x{ad['height']}, {ad['impression_count']} views, {ad['click_count']} clicks)")


@ads.command("settings")
@click.option("--set", "assignments", multiple=True, metavar="KEY=VALUE", help="Update a setting")
@click.pass_context
def ads_settings(ctx: click.Context, assignments: tuple[str, ...]) -> None:
    """Show or update ad layout settings."""
    try:
        for assignment in assignments:
            key, _, value = assignment.partition("=")
            if not value:
                raise ValueError(f"Expected KEY=VALUE, got '{assignment}'")
            ads_cmd.set_ad_setting(ctx.obj["config_path"], key.strip(), int(value))
        for key, value in sorted(ads_cmd.get_ad_settings(ctx.obj["config_path"]).items()):
            click.echo(f"{key} = {value}")
    except Exception as exc:  # pragma: no cover - click echoes the message
        _fail("Ad settings", exc)


@cli.group("toasts")
def toasts() -> None:
    """Manage modal announcements."""


@toasts.command("add")
@click.argument("title")
@click.option("--body", default="")
@click.option("--image", "image_url")
@click.option("--link", "link_url")
@click.option("--start", "start_at")
@click.option("--end", "end_at")
@click.option("--repeatable", is_flag=True)
@click.option("--every-visit", is_flag=True, help="Show on every visit instead of once")
@click.pass_context
def toasts_add(ctx: click.Context, title: str, body: str, image_url: str | None, link_url: str | None,
               start_at: str | None, end_at: str | None, repeatable: bool, every_visit: bool) -> None:
    """Create a modal toast."""
    try:
        row = ads_cmd.add_toast(ctx.obj["config_path"], title, body, image_url, link_url,
                                start_at=start_at, end_at=end_at, repeatable=repeatable,
                                show_once=not every_visit)
        click.echo(f"✅ Toast {row['id']} created")
    except Exception as exc:  # pragma: no cover - click echoes the message
        _fail("Creating toast", exc)


@toasts.command("list")
@click.option("--active", "only_active", is_flag=True, help="Only toasts live right now")
@click.pass_context
def toasts_list(ctx: click.Context, only_active: bool) -> None:
    """List modal toasts, newest first."""
    rows = (ads_cmd.active_toasts(ctx.obj["config_path"]) if only_active
            else ads_cmd.list_toasts(ctx.obj["config_path"]))
    for row in rows:
        state = "on " if row['is_active'] else "off"
        click.echo(f"[{state}] {row['id']} {row['title']} {row.get('start_at') or ''} -> {row.get('end_at') or ''}")


# ----------------------------------------------------------------------
# Email

@cli.group("campaign")
def campaign() -> None:
    """Email campaigns."""


@campaign.command("create")
@click.argument("name")
@click.argument("subject")
@click.option("--html", "html_file", type=click.Path(exists=True, dir_okay=False), help="HTML body file")
@click.option("--template", "template_id", help="Use a stored template as the body")
@click.pass_context
def campaign_create(ctx: click.Context, name: str, subject: str, html_file: str | None,
                    template_id: str | None) -> None:
    """Create a draft campaign."""
    try:
        html_content = Path(html_file).read_text(encoding="utf-8") if html_file else None
        row = campaigns_cmd.create_campaign(ctx.obj["config_path"], name, subject, html_content, template_id)
        click.echo(f"✅ Campaign {row['id']} created as draft")
    except Exception as exc:  # pragma: no cover - click echoes the message
        _fail("Creating campaign", exc)


@campaign.command("send")
@click.argument("campaign_id")
@click.option("--contact", "contact_ids", multiple=True, help="Send only to these contact ids")
@click.option("--dry-run", is_flag=True, help="Do not send; write a preview under the data directory")
@click.pass_context
def campaign_send(ctx: click.Context, campaign_id: str, contact_ids: tuple[str, ...], dry_run: bool) -> None:
    """Send a campaign to active contacts."""
    try:
        result = campaigns_cmd.send_campaign(ctx.obj["config_path"], campaign_id,
                                             list(contact_ids) or None, dry_run=dry_run)
        if dry_run:
            click.echo(f"📝 Dry-run preview written to {result['preview_path']}")
        else:
            click.echo(f"✅ Sent {result['sent_count']}/{result['total_contacts']} "
                       f"({result['failed_count']} failed)")
    except Exception as exc:  # pragma: no cover - click echoes the message
        _fail("Campaign send", exc)


@campaign.command("stats")
@click.argument("campaign_id")
@click.option("--sends", "show_sends", is_flag=True, help="List individual sends")
@click.pass_context
def campaign_stats(ctx: click.Context, campaign_id: str, show_sends: bool) -> None:
    """Recompute and show delivery counters."""
    try:
        counts = campaigns_cmd.update_campaign_stats(ctx.obj["config_path"], campaign_id)
        for key, value in counts.items():
            click.echo(f"{key}: {value}")
        if show_sends:
            details = campaigns_cmd.campaign_details(ctx.obj["config_path"], campaign_id)
            for send in details['sends']:
                click.echo(f"  {send['status']:<6} {send['email']} {send.get('error_message') or ''}")
    except Exception as exc:  # pragma: no cover - click echoes the message
        _fail("Campaign stats", exc)


@campaign.command("template-send")
@click.argument("template_id")
@click.option("--contact", "contact_ids", multiple=True, required=True)
@click.option("--subject", help="Override the template subject")
@click.pass_context
def campaign_template_send(ctx: click.Context, template_id: str, contact_ids: tuple[str, ...],
                           subject: str | None) -> None:
    """Send a stored template to selected contacts."""
    try:
        result = campaigns_cmd.send_template(ctx.obj["config_path"], template_id, list(contact_ids), subject)
        click.echo(f"✅ Sent {result['success_count']}/{result['total']}")
        for error in result['errors']:
            click.echo(f"   ❌ {error}", err=True)
    except Exception as exc:  # pragma: no cover - click echoes the message
        _fail("Template send", exc)


@cli.group("contacts")
def contacts() -> None:
    """Import and export email contacts."""


@contacts.command("import")
@click.argument("csv_file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def contacts_import(ctx: click.Context, csv_file: str) -> None:
    """Import contacts from a CSV file (email/correo, name/nombre columns)."""
    try:
        text = Path(csv_file).read_text(encoding="utf-8-sig")
        result = campaigns_cmd.import_contacts_csv(ctx.obj["config_path"], text)
        click.echo(f"✅ Imported {result['imported']} of {result['total']} contacts")
    except Exception as exc:  # pragma: no cover - click echoes the message
        _fail("Import", exc)


@contacts.command("export")
@click.option("--output", type=click.Path(dir_okay=False), help="Write to a file instead of stdout")
@click.pass_context
def contacts_export(ctx: click.Context, output: str | None) -> None:
    """Export all contacts as CSV."""
    text = campaigns_cmd.export_contacts_csv(ctx.obj["config_path"])
    if output:
        Path(output).write_text(text, encoding="utf-8")
        click.echo(f"✅ Contacts written to {output}")
    else:
        click.echo(text, nl=False)


@cli.command("digest")
@click.option("--category", help="Only this section")
@click.option("--limit", default=10, type=int, show_default=True)
@click.option("--to", "recipients", multiple=True, help="Send to these addresses instead of all contacts")
@click.option("--dry-run", is_flag=True, help="Do not send; write preview HTML under the runtime data directory")
@click.pass_context
def digest(ctx: click.Context, category: str | None, limit: int, recipients: tuple[str, ...], dry_run: bool) -> None:
    """Email a newsletter with the latest articles."""
    try:
        result = campaigns_cmd.send_digest(ctx.obj["config_path"], category, limit,
                                           list(recipients) or None, dry_run=dry_run)
        if dry_run:
            click.echo(f"📝 Digest dry-run completed (preview written under {get_data_dir()})")
        else:
            click.echo(f"✅ Digest sent to {result['sent']}/{result['recipients']} recipients")
    except Exception as exc:  # pragma: no cover - click echoes the message
        _fail("Digest", exc)


# ----------------------------------------------------------------------
# Automation and maintenance

@cli.group("automation")
def automation() -> None:
    """Scheduled AI generation."""


@automation.command("run")
@click.option("--force", is_flag=True, help="Run even if not within the schedule window")
@click.pass_context
def automation_run(ctx: click.Context, force: bool) -> None:
    """Run the automation if it is due."""
    try:
        result = automation_cmd.run(ctx.obj["config_path"], force=force)
        click.echo(f"{'✅' if result['executed'] else '⏭️ '} {result['message']}")
        for error in result['errors']:
            click.echo(f"   ❌ {error}", err=True)
    except Exception as exc:  # pragma: no cover - click echoes the message
        _fail("Automation", exc)


@automation.command("configure")
@click.option("--time", "schedule_time", required=True, help="Daily run time, HH:MM")
@click.option("--category", "categories", multiple=True, required=True)
@click.option("--per-category", default=1, type=int, show_default=True)
@click.option("--auto-publish", is_flag=True)
@click.option("--disabled", is_flag=True)
@click.pass_context
def automation_configure(ctx: click.Context, schedule_time: str, categories: tuple[str, ...], per_category: int,
                         auto_publish: bool, disabled: bool) -> None:
    """Store a new automation configuration."""
    try:
        automation_cmd.configure(ctx.obj["config_path"], schedule_time, list(categories), per_category,
                                 auto_publish=auto_publish, enabled=not disabled)
        click.echo(f"✅ Automation scheduled at {schedule_time} for {', '.join(categories)}")
    except Exception as exc:  # pragma: no cover - click echoes the message
        _fail("Automation configure", exc)


@cli.command("cleanup")
@click.option("--dry-run", is_flag=True, help="Report without deleting")
@click.pass_context
def cleanup(ctx: click.Context, dry_run: bool) -> None:
    """Delete RSS articles with missing or broken images."""
    try:
        result = cleanup_cmd.run(ctx.obj["config_path"], dry_run=dry_run)
        verb = "Would delete" if dry_run else "Deleted"
        click.echo(f"✅ {verb} {result['deleted']} of {result['total']} articles ({result['remaining']} remain)")
        for item in result['details']:
            click.echo(f"   - {item['title']} ({item['reason']})")
    except Exception as exc:  # pragma: no cover - click echoes the message
        _fail("Cleanup", exc)


@cli.group("auth")
def auth() -> None:
    """Admin session management."""


@auth.command("login")
@click.option("--email", prompt=True)
@click.option("--password", prompt=True, hide_input=True)
@click.pass_context
def auth_login(ctx: click.Context, email: str, password: str) -> None:
    """Sign in and store the session."""
    try:
        auth_cmd.login(ctx.obj["config_path"], email, password)
        click.echo(f"✅ Signed in as {email}")
    except Exception as exc:  # pragma: no cover - click echoes the message
        _fail("Sign in", exc)


@auth.command("logout")
@click.pass_context
def auth_logout(ctx: click.Context) -> None:
    """Sign out and clear the stored session."""
    try:
        auth_cmd.logout(ctx.obj["config_path"])
        click.echo("✅ Signed out")
    except Exception as exc:  # pragma: no cover - click echoes the message
        _fail("Sign out", exc)


@auth.command("whoami")
@click.pass_context
def auth_whoami(ctx: click.Context) -> None:
    """Show the signed-in user."""
    try:
        user = auth_cmd.whoami(ctx.obj["config_path"])
        if not user:
            click.echo("Not signed in")
        else:
            suffix = " [offline]" if user.get('offline') else ""
            click.echo(f"👤 {user.get('email')} ({user.get('id')}){suffix}")
    except Exception as exc:  # pragma: no cover - click echoes the message
        _fail("Session check", exc)


@cli.command("backup")
@click.option("--keep", default=3, type=int, show_default=True, help="Backups to retain")
@click.pass_context
def backup(ctx: click.Context, keep: int) -> None:
    """Copy the database to a timestamped backup file."""
    try:
        path = CommandContext(ctx.obj["config_path"]).db.backup_database(keep=keep)
        click.echo(f"✅ Backup written to {path}" if path else "Nothing to back up yet")
    except Exception as exc:  # pragma: no cover - click echoes the message
        _fail("Backup", exc)


@cli.command("status")
@click.option("--json", "as_json", is_flag=True, help="Machine readable output")
@click.pass_context
def status(ctx: click.Context, as_json: bool) -> None:
    """Show system status and configuration."""
    try:
        config_manager = ConfigManager(ctx.obj["config_path"])
        if as_json:
            click.echo(json.dumps(status_api(ctx.obj["config_path"]), indent=2, ensure_ascii=False))
            return

        click.echo(f"📄 Config file: {config_manager.config_path}")
        if config_manager.validate_config():
            click.echo("✅ Configuration is valid")
        else:
            click.echo("❌ Configuration validation failed")
            return

        feeds = config_manager.get_enabled_feeds()
        click.echo(f"📡 Enabled feeds: {len(feeds)}")

        config = config_manager.load_config()
        click.echo(f"🤖 LLM provider: {(config.get('llm') or {}).get('provider', 'gemini')}")
        click.echo(f"✉️  Email provider: {(config.get('email') or {}).get('provider', 'resend')}")

        ctx_obj = CommandContext(ctx.obj["config_path"])
        click.echo(f"🗄️  Database: {ctx_obj.db.db_path}")
        for table, count in ctx_obj.db.table_counts().items():
            click.echo(f"   {table}: {count}")

    except Exception as exc:  # pragma: no cover - click echoes the message
        click.echo(f"❌ Error checking status: {exc}", err=True)


if __name__ == "__main__":  # pragma: no cover - script entry
    cli()
