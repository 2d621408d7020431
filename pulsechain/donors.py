"""
donors.py
Donor records and the blood inventory derived from them.

Donor documents live in the `donors` collection with the portal's stored
field names (fullName, bloodGroup, medicalNote, ...); every read maps them
to records with snake_case keys.
"""
import logging
from datetime import datetime, timezone

from .store import DocumentNotFound, StoreError, get_store

logger = logging.getLogger(__name__)

COLLECTION = 'donors'

BLOOD_GROUPS = ['A+', 'A-', 'B+', 'B-', 'AB+', 'AB-', 'O+', 'O-']
AVAILABILITY = ('Yes', 'No')
GENDERS = ('Male', 'Female', 'Other')

MIN_AGE = 18
MAX_AGE = 65

# Fewer available donors than this marks a blood group as low
LOW_STOCK = 3
INVENTORY_FILTERS = ('all', 'available', 'low')

# record key -> stored document field
FIELD_MAP = {
    'full_name': 'fullName',
    'age': 'age',
    'gender': 'gender',
    'blood_group': 'bloodGroup',
    'contact': 'contact',
    'availability': 'availability',
    'medical_note': 'medicalNote',
    'user_email': 'userEmail',
    'timestamp': 'timestamp'
}


def now_iso():
    return datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')


def normalize_donor(doc):
    age = doc.get('age')
    return {
        'id': doc.get('id'),
        'full_name': doc.get('fullName') or '-',
        'age': age if age not in (None, '') else '-',
        'gender': doc.get('gender') or '-',
        'blood_group': doc.get('bloodGroup') or '-',
        'contact': doc.get('contact') or None,
        'availability': doc.get('availability') or 'No',
        'medical_note': doc.get('medicalNote') or None,
        'user_email': doc.get('userEmail'),
        'timestamp': doc.get('timestamp')
    }


def _newest_first(records):
    return sorted(records, key=lambda x: x.get('timestamp') or '', reverse=True)


def validate_donor(data, partial=False):
    """Return an error message, or None when the data is acceptable"""
    if not partial or 'full_name' in data:
        if not (data.get('full_name') or '').strip():
            return 'Please enter the donor\'s full name.'
    if not partial or 'age' in data:
        try:
            age = int(data.get('age'))
        except (TypeError, ValueError):
            return 'Please enter a valid age.'
        if age < MIN_AGE or age > MAX_AGE:
            return f'Donor age must be between {MIN_AGE} and {MAX_AGE} years!'
    if not partial or 'blood_group' in data:
        if data.get('blood_group') not in BLOOD_GROUPS:
            return 'Please select a valid blood group.'
    if not partial or 'availability' in data:
        if data.get('availability') not in AVAILABILITY:
            return 'Availability must be Yes or No.'
    if not partial or 'contact' in data:
        if not (data.get('contact') or '').strip():
            return 'Please enter a contact number.'
    return None


def get_all_donors():
    try:
        docs = get_store().scan(COLLECTION)
    except StoreError as e:
        return {'success': False, 'error': str(e)}
    return {'success': True, 'donors': [normalize_donor(d) for d in docs]}


def get_filtered_donors(blood_group, availability=None):
    """Donors of one blood group, optionally restricted to an availability"""
    criteria = {'bloodGroup': blood_group}
    if availability:
        criteria['availability'] = availability
    try:
        docs = get_store().query(COLLECTION, **criteria)
    except StoreError as e:
        return {'success': False, 'error': str(e)}
    return {'success': True, 'donors': [normalize_donor(d) for d in docs]}


def get_user_donations(user_email):
    try:
        docs = get_store().query(COLLECTION, userEmail=user_email)
    except StoreError as e:
        return {'success': False, 'error': str(e)}
    return {'success': True, 'donations': _newest_first(normalize_donor(d) for d in docs)}


def get_donor(donor_id):
    try:
        doc = get_store().get(COLLECTION, donor_id)
    except StoreError as e:
        return {'success': False, 'error': str(e)}
    if doc is None:
        return {'success': False, 'error': 'Donor not found'}
    return {'success': True, 'donor': normalize_donor(doc)}


def add_donor(data, user_email):
    error = validate_donor(data)
    if error:
        return {'success': False, 'error': error}
    doc = {
        'fullName': data['full_name'].strip(),
        'age': int(data['age']),
        'gender': data.get('gender') or '',
        'bloodGroup': data['blood_group'],
        'contact': data['contact'].strip(),
        'availability': data['availability'],
        'medicalNote': (data.get('medical_note') or '').strip(),
        'userEmail': user_email,
        'timestamp': now_iso()
    }
    try:
        donor_id = get_store().add(COLLECTION, doc)
    except StoreError as e:
        return {'success': False, 'error': str(e)}
    logger.info('donor %s registered (%s) by %s', donor_id, doc['bloodGroup'], user_email)
    return {'success': True, 'id': donor_id}


def update_donor(donor_id, changes):
    unknown = set(changes) - set(FIELD_MAP)
    if unknown:
        return {'success': False, 'error': f"Unknown donor fields: {', '.join(sorted(unknown))}"}
    error = validate_donor(changes, partial=True)
    if error:
        return {'success': False, 'error': error}
    try:
        get_store().update(COLLECTION, donor_id, {FIELD_MAP[k]: v for k, v in changes.items()})
    except DocumentNotFound:
        return {'success': False, 'error': 'Donor not found'}
    except StoreError as e:
        return {'success': False, 'error': str(e)}
    return {'success': True}


def delete_donor(donor_id):
    try:
        get_store().delete(COLLECTION, donor_id)
    except StoreError as e:
        return {'success': False, 'error': str(e)}
    return {'success': True}


def count_inventory(donors):
    """{blood_group: {total, available}} for every blood group"""
    inventory = {group: {'total': 0, 'available': 0} for group in BLOOD_GROUPS}
    for donor in donors:
        counts = inventory.get(donor.get('blood_group'))
        if counts is None:
            continue
        counts['total'] += 1
        if donor.get('availability') == 'Yes':
            counts['available'] += 1
    return inventory


def inventory_cards(donors, filter='all', search=''):
    """
    Inventory cards for the hospital dashboard.
    The search term narrows the donors counted (by blood group); the tab
    decides which groups get a card.
    """
    search = (search or '').strip().lower()
    if search:
        donors = [d for d in donors if search in (d.get('blood_group') or '').lower()]
    cards = []
    for group, counts in count_inventory(donors).items():
        available = counts['available']
        if filter == 'available' and available == 0:
            continue
        if filter == 'low' and available >= LOW_STOCK:
            continue
        if available == 0:
            status = 'empty'
        elif available < LOW_STOCK:
            status = 'low'
        else:
            status = 'ok'
        cards.append({
            'blood_group': group,
            'total': counts['total'],
            'available': available,
            'percentage': round(available / counts['total'] * 100) if counts['total'] else 0,
            'status': status
        })
    return cards
