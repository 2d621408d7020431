"""
history.py
The combined donation and request timeline shown on the history page.
"""
import logging
from datetime import datetime, timezone

from .blood_requests import get_user_requests
from .donors import get_user_donations

logger = logging.getLogger(__name__)

HISTORY_FILTERS = ('all', 'donations', 'requests')

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def parse_timestamp(value):
    """ISO-8601 string -> aware datetime (naive values are taken as UTC)"""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value):
    """('October 5, 2026', '02:30 PM'), or ('-', '-') when unparseable"""
    parsed = parse_timestamp(value)
    if parsed is None:
        return '-', '-'
    return f'{parsed:%B} {parsed.day}, {parsed.year}', f'{parsed:%I:%M %p}'


def merge_history(donations, requests):
    """Tag donations and requests with their type and sort newest first"""
    items = [{**d, 'type': 'donation'} for d in donations]
    items += [{**r, 'type': 'request'} for r in requests]
    items.sort(key=lambda x: parse_timestamp(x.get('timestamp')) or _EPOCH, reverse=True)
    return items


def _matches(item, term):
    if item['type'] == 'donation':
        fields = (item.get('full_name'), item.get('blood_group'), item.get('contact'))
    else:
        fields = (item.get('blood_group'), item.get('requested_donor_name'))
    return any(term in str(field).lower() for field in fields if field)


def filter_history(items, filter='all', search=''):
    if filter == 'donations':
        items = [item for item in items if item['type'] == 'donation']
    elif filter == 'requests':
        items = [item for item in items if item['type'] == 'request']
    term = (search or '').strip().lower()
    if term:
        items = [item for item in items if _matches(item, term)]
    return items


def empty_state_message(filter='all', search=''):
    if (search or '').strip():
        return 'No history items match your search.'
    if filter == 'donations':
        return 'No donations found. Start by donating blood!'
    if filter == 'requests':
        return 'No requests found. Make a blood request!'
    return 'No history found. Start by donating blood or making a request!'


def load_user_history(user_email):
    """
    Donations and requests of one user, merged.
    A side that fails to load counts as empty and is named in `failed`;
    the load fails only when both sides do.
    """
    donations = get_user_donations(user_email)
    requests = get_user_requests(user_email)
    failed = []
    for name, result in (('donations', donations), ('requests', requests)):
        if not result['success']:
            logger.warning('history %s load failed for %s: %s', name, user_email, result['error'])
            failed.append(name)
    if len(failed) == 2:
        return {'success': False, 'error': donations['error'], 'failed': failed}
    history = merge_history(donations.get('donations', []), requests.get('requests', []))
    return {'success': True, 'history': history, 'failed': failed}
