"""
Email campaign commands.

Campaigns are stored drafts that are sent one contact at a time with
``{{name}}`` personalization. Every attempt is recorded in ``email_sends``
so delivery counters can be recomputed at any time. Also covers stored
template bulk sends, CSV contact import/export and the article newsletter.
"""

from __future__ import annotations

import csv
import datetime
import io
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..core.command_context import CommandContext
from ..core.dates import now_iso, parse_timestamp
from ..core.paths import resolve_data_dir
from ..processors.emailer import EmailRenderer, build_sender, html_to_text, personalize

logger = logging.getLogger(__name__)

PROGRESS_EVERY = 10
EXPORT_HEADER = ['Email', 'Nombre', 'Estado', 'Fecha de Suscripción']


def _sender_for(ctx: CommandContext, sender):
    return sender if sender is not None else build_sender(ctx.config, ctx.config_manager.base_dir)


def _write_preview(name: str, html_body: str) -> Path:
    """Write an HTML preview under the data dir's ``previews`` folder (dry runs)."""
    out_dir = resolve_data_dir('previews', ensure_exists=True)
    stamp = datetime.datetime.now().strftime('%Y%m%d-%H%M%S')
    safe = ''.join(ch if ch.isalnum() or ch in '-_' else '_' for ch in name)[:60] or 'email'
    path = out_dir / f"{safe}.{stamp}.html"
    path.write_text(html_body, encoding='utf-8')
    return path


def create_campaign(config_path: Optional[str], name: str, subject: str, html_content: Optional[str] = None,
                    template_id: Optional[str] = None) -> Dict[str, Any]:
    """Store a draft campaign; the body may come from a stored template."""
    ctx = CommandContext(config_path)
    if template_id and not html_content:
        template = ctx.db.get_row('email_templates', template_id)
        if template is None:
            raise LookupError(f"Template '{template_id}' not found")
        html_content = template['html_content']
    if not name or not subject or not html_content:
        raise ValueError("Campaign name, subject and content are required")
    return ctx.db.insert_row('email_campaigns', {
        'name': name,
        'subject': subject,
        'html_content': html_content,
        'template_id': template_id,
        'status': 'draft',
        'total_recipients': 0,
        'sent_count': 0,
    })


def create_template(config_path: Optional[str], name: str, html_content: str,
                    subject: Optional[str] = None) -> Dict[str, Any]:
    if not name or not html_content:
        raise ValueError("Template name and content are required")
    ctx = CommandContext(config_path)
    return ctx.db.insert_row('email_templates', {'name': name, 'subject': subject, 'html_content': html_content})


def send_campaign(config_path: Optional[str], campaign_id: str, contact_ids: Optional[List[str]] = None,
                  *, sender=None, dry_run: bool = False) -> Dict[str, Any]:
    """Send a campaign to active contacts (all active ones when *contact_ids* is None).

    Per-contact failures are recorded and do not stop the run. The campaign
    ends ``failed`` only if every send failed. Unexpected errors mark the
    campaign ``failed`` and are re-raised.
    """
    ctx = CommandContext(config_path)
    campaign = ctx.db.get_row('email_campaigns', campaign_id)
    if campaign is None:
        raise LookupError(f"Campaign '{campaign_id}' not found")

    contacts = ctx.db.get_contacts(contact_ids, status='active')
    if not contacts:
        raise ValueError("No active contacts to send to")

    if dry_run:
        sample = personalize(campaign['html_content'], contacts[0].get('name'))
        path = _write_preview(campaign['name'], sample)
        logger.info(f"Dry run: preview for {len(contacts)} contacts written to {path}")
        return {'success': True, 'sent_count': 0, 'failed_count': 0,
                'total_contacts': len(contacts), 'preview_path': str(path)}

    ctx.db.update_row('email_campaigns', campaign_id, {'status': 'sending', 'total_recipients': len(contacts)})
    try:
        sender = _sender_for(ctx, sender)
        sent = failed = 0
        for index, contact in enumerate(contacts, start=1):
            body = personalize(campaign['html_content'], contact.get('name'))
            record: Dict[str, Any] = {
                'campaign_id': campaign_id,
                'template_id': campaign.get('template_id'),
                'contact_id': contact['id'],
                'email': contact['email'],
            }
            try:
                provider_id = sender.send(subject=campaign['subject'], to_addrs=[contact['email']],
                                          html_body=body, text_body=html_to_text(body))
                record.update({'status': 'sent', 'resend_id': provider_id, 'sent_at': now_iso()})
                sent += 1
            except Exception as e:
                logger.error(f"Failed to send campaign {campaign_id} to {contact['email']}: {e}")
                record.update({'status': 'failed', 'error_message': str(e)})
                failed += 1
            ctx.db.insert_row('email_sends', record)

            if index % PROGRESS_EVERY == 0:
                ctx.db.update_row('email_campaigns', campaign_id, {'sent_count': sent})

        final_status = 'failed' if sent == 0 else 'sent'
        ctx.db.update_row('email_campaigns', campaign_id, {'status': final_status, 'sent_count': sent})
        logger.info(f"Campaign {campaign_id}: {sent} sent, {failed} failed")
        return {'success': True, 'sent_count': sent, 'failed_count': failed, 'total_contacts': len(contacts)}
    except Exception:
        ctx.db.update_row('email_campaigns', campaign_id, {'status': 'failed'})
        raise


def send_template(config_path: Optional[str], template_id: str, contact_ids: List[str],
                  subject: Optional[str] = None, *, sender=None) -> Dict[str, Any]:
    """Send a stored template as-is to the given contacts (bulk send, no campaign)."""
    if not contact_ids:
        raise ValueError("At least one contact is required")
    ctx = CommandContext(config_path)
    template = ctx.db.get_row('email_templates', template_id)
    if template is None:
        raise LookupError(f"Template '{template_id}' not found")
    subject = subject or template.get('subject') or template['name']
    contacts = ctx.db.get_contacts(contact_ids, status='active')
    sender = _sender_for(ctx, sender)

    success = 0
    errors: List[str] = []
    for contact in contacts:
        record: Dict[str, Any] = {'template_id': template_id, 'contact_id': contact['id'], 'email': contact['email']}
        try:
            provider_id = sender.send(subject=subject, to_addrs=[contact['email']],
                                      html_body=template['html_content'])
            record.update({'status': 'sent', 'resend_id': provider_id, 'sent_at': now_iso()})
            success += 1
        except Exception as e:
            logger.error(f"Failed to send template {template_id} to {contact['email']}: {e}")
            record.update({'status': 'failed', 'error_message': str(e)})
            errors.append(f"{contact['email']}: {e}")
        ctx.db.insert_row('email_sends', record)

    return {'total': len(contacts), 'success_count': success, 'error_count': len(errors), 'errors': errors}


def update_campaign_stats(config_path: Optional[str], campaign_id: str) -> Dict[str, int]:
    """Recompute the campaign counters from its ``email_sends`` rows."""
    ctx = CommandContext(config_path)
    counts = ctx.db.campaign_send_counts(campaign_id)
    ctx.db.update_row('email_campaigns', campaign_id, counts)
    return counts


def campaign_details(config_path: Optional[str], campaign_id: str) -> Dict[str, Any]:
    ctx = CommandContext(config_path)
    campaign = ctx.db.get_row('email_campaigns', campaign_id)
    if campaign is None:
        raise LookupError(f"Campaign '{campaign_id}' not found")
    return {'campaign': campaign, 'sends': ctx.db.get_campaign_sends(campaign_id)}


def import_contacts_csv(config_path: Optional[str], csv_text: str) -> Dict[str, int]:
    """Import contacts from CSV with an ``email``/``correo`` column and optional ``name``/``nombre``.

    Rows without a plausible address are skipped; addresses already stored
    are ignored. Returns ``{imported, total}``.
    """
    reader = csv.reader(io.StringIO(csv_text.strip()))
    try:
        header = [h.strip().lower() for h in next(reader)]
    except StopIteration:
        raise ValueError("CSV is empty")

    email_idx = next((i for i, h in enumerate(header) if h in ('email', 'correo')), None)
    name_idx = next((i for i, h in enumerate(header) if h in ('name', 'nombre')), None)
    if email_idx is None:
        raise ValueError('CSV must contain an "email" or "correo" column')

    contacts = []
    for row in reader:
        values = [v.strip() for v in row]
        email = values[email_idx] if email_idx < len(values) else ''
        if '@' not in email:
            continue
        name = values[name_idx] if name_idx is not None and name_idx < len(values) else None
        contacts.append({'email': email, 'name': name or None, 'status': 'active'})

    if not contacts:
        raise ValueError("No valid contacts found in CSV")

    imported = CommandContext(config_path).db.add_contacts(contacts)
    logger.info(f"Imported {imported} of {len(contacts)} contacts")
    return {'imported': imported, 'total': len(contacts)}


def export_contacts_csv(config_path: Optional[str] = None) -> str:
    ctx = CommandContext(config_path)
    out = io.StringIO()
    writer = csv.writer(out, lineterminator='\n')
    writer.writerow(EXPORT_HEADER)
    for contact in ctx.db.get_contacts(status=None):
        subscribed = parse_timestamp(contact.get('subscribed_at'))
        date_text = f"{subscribed.day}/{subscribed.month}/{subscribed.year}" if subscribed else ''
        writer.writerow([contact['email'], contact.get('name') or '', contact['status'], date_text])
    return out.getvalue()


def send_digest(config_path: Optional[str] = None, category: Optional[str] = None, limit: int = 10,
                to: Optional[List[str]] = None, *, sender=None, dry_run: bool = False) -> Dict[str, Any]:
    """Email a newsletter of the latest published articles.

    Recipients are *to* when given, otherwise every active contact.
    """
    ctx = CommandContext(config_path)
    outlet = ctx.get_setting('outlet', default='Newsdesk')
    articles = ctx.db.get_ai_articles(category, status='published', limit=limit)
    if len(articles) < limit:
        articles += ctx.db.get_articles(category, limit=limit - len(articles))

    renderer = EmailRenderer()
    title = f"Resumen de noticias{' - ' + category if category else ''}"
    section = renderer.render_article_digest(category or 'Últimas noticias', articles)
    html_body = renderer.render_full_email(
        title, [('latest', section)], outlet=outlet,
        footer_html=f"Recibís este correo porque estás suscripto a {outlet}.",
    )

    if dry_run:
        path = _write_preview('digest', html_body)
        logger.info(f"Dry run: digest written to {path}")
        return {'sent': 0, 'articles': len(articles), 'preview_path': str(path)}

    recipients = [{'email': addr, 'name': None} for addr in to] if to else ctx.db.get_contacts(status='active')
    if not recipients:
        raise ValueError("No recipients for the digest")
    sender = _sender_for(ctx, sender)
    sent = 0
    for recipient in recipients:
        body = personalize(html_body, recipient.get('name'))
        try:
            sender.send(subject=f"{outlet}: {title}", to_addrs=[recipient['email']],
                        html_body=body, text_body=html_to_text(body))
            sent += 1
        except Exception as e:
            logger.error(f"Failed to send digest to {recipient['email']}: {e}")
    return {'sent': sent, 'articles': len(articles), 'recipients': len(recipients)}
