"""
blood_requests.py
Blood requests.

Two collections hold requests in different shapes:
  requests     legacy form submissions (requesterName, bloodGroup, contact,
               department, reason)
  allRequests  requests made from the portal (userEmail, requestBlood,
               fullName, requestedDonorId, requestedDonorName, status)
Both are read through normalize_request into one record schema.
"""
import logging

from .donors import BLOOD_GROUPS, now_iso
from .store import DocumentNotFound, StoreError, get_store

logger = logging.getLogger(__name__)

LEGACY_COLLECTION = 'requests'
COLLECTION = 'allRequests'

STATUS_PENDING = 'pending'
STATUS_COMPLETED = 'completed'
STATUSES = (STATUS_PENDING, STATUS_COMPLETED)


def normalize_request(doc, source=COLLECTION):
    user_email = doc.get('userEmail')
    full_name = doc.get('fullName') or doc.get('requesterName') or user_email
    return {
        'id': doc.get('id'),
        'source': source,
        'requester_name': full_name or 'Unknown',
        'blood_group': doc.get('requestBlood') or doc.get('bloodGroup') or '-',
        'contact': doc.get('contact') or '-',
        'department': doc.get('department') or '-',
        'reason': doc.get('reason') or '-',
        'timestamp': doc.get('timestamp'),
        'status': doc.get('status') or STATUS_PENDING,
        'user_email': user_email,
        'full_name': full_name,
        'requested_donor_id': doc.get('requestedDonorId') or None,
        'requested_donor_name': doc.get('requestedDonorName') or None
    }


def _newest_first(records):
    return sorted(records, key=lambda x: x.get('timestamp') or '', reverse=True)


REQUEST_COLLECTIONS = (COLLECTION, LEGACY_COLLECTION)


def create_request(data):
    """Legacy request form: requester details with a reason"""
    if not (data.get('requester_name') or '').strip():
        return {'success': False, 'error': 'Please enter the requester name.'}
    if data.get('blood_group') not in BLOOD_GROUPS:
        return {'success': False, 'error': 'Please select a valid blood group.'}
    doc = {
        'requesterName': data['requester_name'].strip(),
        'bloodGroup': data['blood_group'],
        'contact': (data.get('contact') or '').strip(),
        'department': (data.get('department') or '').strip(),
        'reason': (data.get('reason') or '').strip(),
        'timestamp': now_iso()
    }
    try:
        request_id = get_store().add(LEGACY_COLLECTION, doc)
    except StoreError as e:
        return {'success': False, 'error': str(e)}
    return {'success': True, 'id': request_id}


def create_blood_request(user_email, blood_group, full_name=None, donor_id=None, donor_name=None):
    """Request blood, optionally from one specific donor"""
    if not user_email:
        return {'success': False, 'error': 'Please log in to request blood.'}
    if blood_group not in BLOOD_GROUPS:
        return {'success': False, 'error': 'Please select a valid blood group.'}
    doc = {
        'userEmail': user_email,
        'requestBlood': blood_group,
        'fullName': full_name or user_email,
        'requestedDonorId': donor_id or None,
        'requestedDonorName': donor_name or None,
        'status': STATUS_PENDING,
        'timestamp': now_iso()
    }
    try:
        request_id = get_store().add(COLLECTION, doc)
    except StoreError as e:
        return {'success': False, 'error': str(e)}
    logger.info('blood request %s for %s by %s', request_id, blood_group, user_email)
    return {'success': True, 'id': request_id}


def get_all_requests():
    try:
        docs = get_store().scan(COLLECTION)
    except StoreError as e:
        return {'success': False, 'error': str(e)}
    return {'success': True, 'requests': [normalize_request(d) for d in docs]}


def get_legacy_requests():
    try:
        docs = get_store().scan(LEGACY_COLLECTION)
    except StoreError as e:
        return {'success': False, 'error': str(e)}
    return {'success': True, 'requests': [normalize_request(d, LEGACY_COLLECTION) for d in docs]}


def get_user_requests(user_email):
    try:
        docs = get_store().query(COLLECTION, userEmail=user_email)
    except StoreError as e:
        return {'success': False, 'error': str(e)}
    return {'success': True, 'requests': _newest_first(normalize_request(d) for d in docs)}


def update_request_status(request_id, status, source=COLLECTION):
    if status not in STATUSES:
        return {'success': False, 'error': f'Invalid status: {status}'}
    if source not in REQUEST_COLLECTIONS:
        return {'success': False, 'error': f'Unknown request collection: {source}'}
    try:
        get_store().update(source, request_id, {'status': status})
    except DocumentNotFound:
        return {'success': False, 'error': 'Request not found'}
    except StoreError as e:
        return {'success': False, 'error': str(e)}
    return {'success': True}


def delete_request(request_id, source=COLLECTION):
    if source not in REQUEST_COLLECTIONS:
        return {'success': False, 'error': f'Unknown request collection: {source}'}
    try:
        get_store().delete(source, request_id)
    except StoreError as e:
        return {'success': False, 'error': str(e)}
    return {'success': True}
