"""
views.py
Page controllers and JSON endpoints for the Pulse Chain portal.
"""
from flask import Blueprint, current_app, jsonify, redirect, render_template, request, url_for

from . import auth
from .auth import admin_required, current_role, get_current_user, is_admin, login_required
from .blood_requests import (
    STATUS_COMPLETED, STATUS_PENDING,
    create_blood_request, create_request, delete_request, get_all_requests,
    get_legacy_requests, get_user_requests, update_request_status
)
from .donors import (
    AVAILABILITY, BLOOD_GROUPS, GENDERS, INVENTORY_FILTERS, add_donor, count_inventory,
    delete_donor, get_all_donors, get_donor, get_filtered_donors, inventory_cards, update_donor
)
from .history import HISTORY_FILTERS, empty_state_message, filter_history, format_timestamp, load_user_history
from .shell import initialize_dashboard_components
from .state import ViewState
from .toast import get_toasts, show_error_toast, show_success_toast

bp = Blueprint('portal', __name__)


# ============== HELPERS ==============

@bp.before_app_request
def resolve_session():
    auth.load_session()


@bp.app_context_processor
def portal_context():
    return {
        'current_user': get_current_user(),
        'current_role': current_role(),
        'get_toasts': get_toasts,
        'blood_groups': BLOOD_GROUPS
    }


def render_page(template, active_page, header_title, search_placeholder, state=None, **context):
    """Render a dashboard page and inject the shell into it"""
    html = render_template(template, state=state, **context)
    return initialize_dashboard_components(
        html,
        active_page=active_page,
        header_title=header_title,
        search_placeholder=search_placeholder,
        user=get_current_user(),
        role=current_role(),
        search_term=state.search if state else '',
        filter=state.filter if state else None,
        open_profile=request.args.get('profile') == '1'
    )


def safe_redirect_target(target):
    """Only same-site paths are followed after sign-in"""
    if target and target.startswith('/') and not target.startswith('//'):
        return target
    return None


def login_redirect():
    return redirect(url_for('portal.login', redirect=request.full_path.rstrip('?')))


# ============== PAGES ==============

@bp.route('/')
def index():
    """Home page"""
    result = get_all_donors()
    donors = result['donors'] if result['success'] else []
    inventory = count_inventory(donors)
    stats = {
        'total_donors': len(donors),
        'available_donors': sum(1 for d in donors if d['availability'] == 'Yes'),
        'inventory': inventory
    }
    return render_page('index.html', 'home', 'Dashboard', 'Search donors, requests...', stats=stats)


@bp.route('/login', methods=['GET', 'POST'])
def login():
    """Sign-in, sign-up and password reset"""
    mode = request.args.get('mode', 'signin')
    errors = {}
    values = {}

    if request.method == 'POST':
        action = request.form.get('action', 'signin')
        mode = action
        values = request.form.to_dict()
        values.pop('password', None)
        values.pop('confirm_password', None)

        if action == 'signin':
            response = _handle_sign_in(errors)
        elif action == 'signup':
            response = _handle_sign_up(errors)
        elif action == 'reset':
            response = _handle_reset(errors)
        else:
            response = None
            show_error_toast('Unknown action.')
        if response is not None:
            return response

    return render_template('login.html', mode=mode, errors=errors, values=values)


def _after_sign_in_target():
    return safe_redirect_target(request.args.get('redirect')) or url_for('portal.index')


def _handle_sign_in(errors):
    email = request.form.get('email', '')
    password = request.form.get('password', '')
    result = auth.sign_in(email, password)

    if result['success']:
        if result['is_admin']:
            show_success_toast('Admin login successful! Redirecting...')
            return redirect(url_for('portal.admin_dashboard'))
        show_success_toast('Login successful! Redirecting...')
        return redirect(_after_sign_in_target())

    code = result.get('code')
    if code == 'invalid-credential':
        errors['login_email'] = 'Incorrect Email or Password'
        errors['login_password'] = 'Incorrect Email or Password'
    elif code == 'user-not-found':
        errors['login_email'] = 'Email Not Found! Please Sign Up'
    elif code == 'wrong-password':
        errors['login_password'] = 'Incorrect Password! Please Try Again.'
    elif code == 'invalid-email':
        errors['login_email'] = 'Invalid Email Format!'
    else:
        show_error_toast(result.get('error') or 'Login Failed! Please Check Your Credentials.')
    return None


def _handle_sign_up(errors):
    name = request.form.get('name', '')
    email = request.form.get('email', '')
    password = request.form.get('password', '')
    confirm_password = request.form.get('confirm_password', '')

    if not name.strip():
        errors['signup_name'] = 'Please enter your name!'
    if password != confirm_password:
        errors['confirm_password'] = 'Passwords do not match!'
    if len(password) < 6:
        errors['signup_password'] = 'Password must be at least 6 characters long!'
    if errors:
        return None

    result = auth.sign_up(email, password, name.strip())
    if result['success']:
        if result['confirmation_required']:
            show_success_toast('Account created! Please confirm your email address, then sign in.')
            return redirect(url_for('portal.login'))
        show_success_toast('Account created successfully! Redirecting...')
        return redirect(_after_sign_in_target())

    code = result.get('code')
    if code == 'email-already-in-use':
        errors['signup_email'] = 'This email is already registered.'
    elif code == 'invalid-email':
        errors['signup_email'] = 'Invalid email format.'
    elif code == 'weak-password':
        errors['signup_password'] = 'Password is too weak.'
    else:
        show_error_toast(result.get('error') or 'Sign up failed. Please try again.')
    return None


def _handle_reset(errors):
    email = request.form.get('email', '').strip()
    if not email:
        errors['reset_email'] = 'Please enter your email'
        return None

    result = auth.reset_password(email)
    if result['success']:
        show_success_toast('Password reset link sent! Check your email.')
        return redirect(url_for('portal.login'))

    code = result.get('code')
    if code == 'user-not-found':
        errors['reset_email'] = 'No account found with this email'
    elif code == 'invalid-email':
        errors['reset_email'] = 'Invalid email format'
    else:
        show_error_toast(result.get('error') or 'Failed to send reset link')
    return None


@bp.route('/logout', methods=['POST'])
def logout():
    """Logout"""
    auth.log_out()
    show_success_toast('Logged out successfully!')
    return redirect(url_for('portal.login'))


@bp.route('/profile', methods=['GET', 'POST'])
def profile():
    """Open the profile modal, or save a new display name"""
    if get_current_user() is None:
        return login_redirect()
    if request.method == 'POST':
        result = auth.update_profile(request.form.get('display_name'))
        if result['success']:
            show_success_toast('Profile updated successfully!')
        else:
            show_error_toast(result['error'])
        return redirect(safe_redirect_target(request.form.get('next')) or url_for('portal.index'))
    return redirect(url_for('portal.index', profile=1))


@bp.route('/history')
def history():
    """Donation and request timeline for the signed-in user"""
    state = ViewState.from_request('history', HISTORY_FILTERS)
    if not state.check(get_current_user()):
        return login_redirect()

    result = load_user_history(state.user['email'])
    if result['success']:
        if result['failed']:
            show_error_toast(f"Failed to load your {' and '.join(result['failed'])}.")
        state.ready(result['history'])
    else:
        show_error_toast('Failed to load history')
        state.ready(error='Error loading history. Please try again.')

    items = []
    for item in filter_history(state.records, state.filter, state.search):
        date, time = format_timestamp(item.get('timestamp'))
        items.append({**item, 'date': date, 'time': time})

    return render_page(
        'history.html', 'history', 'My History', 'Search history...', state=state,
        items=items,
        empty_message=state.error or empty_state_message(state.filter, state.search)
    )


@bp.route('/hospital-dashboard')
def hospital_dashboard():
    """Blood inventory by group and the donor search table"""
    state = ViewState.from_request('hospital-dashboard', INVENTORY_FILTERS)
    if not state.check(get_current_user()):
        return login_redirect()

    result = get_all_donors()
    if result['success']:
        state.ready(result['donors'])
        inventory_error = None
    else:
        show_error_toast('Failed to load inventory')
        state.ready(error=result['error'])
        inventory_error = 'Failed to load inventory'
    cards = inventory_cards(state.records, state.filter, state.search)

    searched = 'blood_group' in request.args or 'availability' in request.args
    blood_group = request.args.get('blood_group', '')
    availability = request.args.get('availability') or 'Yes'
    donors = None
    donors_error = None
    if searched:
        if blood_group:
            found = get_filtered_donors(blood_group, availability)
        else:
            found = result
        if found['success']:
            donors = [d for d in found['donors'] if d['availability'] == availability]
        else:
            show_error_toast('Failed to fetch donors. Please try again.')
            donors_error = 'Failed to load donors'

    requested = get_user_requests(state.user['email'])
    requested_ids = set()
    if requested['success']:
        requested_ids = {r['requested_donor_id'] for r in requested['requests'] if r['requested_donor_id']}

    return render_page(
        'hospital_dashboard.html', 'hospital-dashboard', 'Hospital Dashboard', 'Search blood groups...',
        state=state,
        cards=cards,
        inventory_error=inventory_error,
        searched=searched,
        blood_group=blood_group,
        availability=availability,
        donors=donors,
        donors_error=donors_error,
        requested_ids=requested_ids
    )


@bp.route('/hospital-dashboard/request', methods=['POST'])
def request_from_donor():
    """Request blood from one donor in the table"""
    back = safe_redirect_target(request.form.get('next')) or url_for('portal.hospital_dashboard')
    user = get_current_user()
    if not user or not user.get('email'):
        show_error_toast('Please log in to request blood.')
        return redirect(back)

    found = get_donor(request.form.get('donor_id') or '')
    if not found['success']:
        show_error_toast('Donor not found.')
        return redirect(back)
    donor = found['donor']
    if donor['availability'] != 'Yes':
        show_error_toast(f"{donor['full_name']} is not available to donate right now.")
        return redirect(back)

    blood_group = donor['blood_group']
    donor_name = donor['full_name']
    result = create_blood_request(
        user['email'],
        blood_group,
        user.get('display_name') or user['email'],
        donor['id'],
        donor_name
    )
    if result['success']:
        show_success_toast(f'Blood request for {blood_group} from {donor_name} submitted successfully!')
    else:
        current_app.logger.warning('blood request failed for %s: %s', user['email'], result['error'])
        show_error_toast('Failed to submit request. Please try again.')
    return redirect(back)


@bp.route('/donate', methods=['GET', 'POST'])
@login_required
def donate():
    """Register a donor record"""
    values = {}
    if request.method == 'POST':
        values = request.form.to_dict()
        result = add_donor(values, get_current_user()['email'])
        if result['success']:
            show_success_toast('Thank you! Your donation details have been saved.')
            return redirect(url_for('portal.history', filter='donations'))
        show_error_toast(result['error'])
    return render_page(
        'donate.html', 'donate', 'Donate Blood', 'Search donors, requests...',
        values=values, genders=GENDERS, availability_options=AVAILABILITY
    )


@bp.route('/request', methods=['GET', 'POST'])
@login_required
def request_page():
    """Blood request form"""
    values = {}
    if request.method == 'POST':
        values = request.form.to_dict()
        result = create_request(values)
        if result['success']:
            show_success_toast(f"Blood request for {values.get('blood_group')} submitted successfully!")
            return redirect(url_for('portal.request_page'))
        show_error_toast(result['error'])
    return render_page(
        'request.html', 'request', 'Request Blood', 'Search donors, requests...', values=values
    )


# ============== ADMIN ==============

@bp.route('/admin')
@admin_required
def admin_dashboard():
    """Admin dashboard: every donor and request"""
    donors = get_all_donors()
    requests_list = get_all_requests()
    legacy = get_legacy_requests()
    for result in (donors, requests_list, legacy):
        if not result['success']:
            show_error_toast('Failed to load some records. Please try again.')
            break

    all_requests = (requests_list.get('requests') or []) + (legacy.get('requests') or [])
    all_requests.sort(key=lambda x: x.get('timestamp') or '', reverse=True)
    return render_page(
        'admin_dashboard.html', 'admin', 'Admin Dashboard', 'Search donors, requests...',
        donors=donors.get('donors') or [],
        requests=all_requests,
        status_completed=STATUS_COMPLETED,
        status_pending=STATUS_PENDING
    )


@bp.route('/admin/requests/<source>/<request_id>/status', methods=['POST'])
@admin_required
def admin_request_status(source, request_id):
    result = update_request_status(request_id, request.form.get('status', STATUS_COMPLETED), source)
    if result['success']:
        show_success_toast('Request status updated.')
    else:
        show_error_toast(result['error'])
    return redirect(url_for('portal.admin_dashboard'))


@bp.route('/admin/requests/<source>/<request_id>/delete', methods=['POST'])
@admin_required
def admin_request_delete(source, request_id):
    result = delete_request(request_id, source)
    if result['success']:
        show_success_toast('Request deleted.')
    else:
        show_error_toast(result['error'])
    return redirect(url_for('portal.admin_dashboard'))


@bp.route('/admin/donors/<donor_id>/availability', methods=['POST'])
@admin_required
def admin_donor_availability(donor_id):
    result = update_donor(donor_id, {'availability': request.form.get('availability')})
    if result['success']:
        show_success_toast('Donor availability updated.')
    else:
        show_error_toast(result['error'])
    return redirect(url_for('portal.admin_dashboard'))


@bp.route('/admin/donors/<donor_id>/delete', methods=['POST'])
@admin_required
def admin_donor_delete(donor_id):
    result = delete_donor(donor_id)
    if result['success']:
        show_success_toast('Donor deleted.')
    else:
        show_error_toast(result['error'])
    return redirect(url_for('portal.admin_dashboard'))


# ============== API ==============

@bp.route('/api/session')
def api_session():
    """Current session and role"""
    return jsonify({
        'success': True,
        'user': get_current_user(),
        'role': current_role(),
        'is_admin': is_admin()
    })


@bp.route('/api/inventory')
def api_inventory():
    """Donor counts per blood group"""
    result = get_all_donors()
    if not result['success']:
        return jsonify({'success': False, 'error': result['error']}), 502
    return jsonify({'success': True, 'inventory': count_inventory(result['donors'])})


@bp.route('/api/history')
def api_history():
    """History of the signed-in user after the `filter` and `q` parameters"""
    user = get_current_user()
    if user is None:
        return jsonify({'success': False, 'error': 'Please log in to view your history.'}), 401
    result = load_user_history(user['email'])
    if not result['success']:
        return jsonify(result), 502
    filter = request.args.get('filter', 'all')
    search = request.args.get('q', '')
    items = filter_history(result['history'], filter, search)
    return jsonify({
        'success': True,
        'history': items,
        'empty_message': None if items else empty_state_message(filter, search),
        'failed': result['failed']
    })


@bp.route('/api/requests', methods=['POST'])
def api_create_request():
    """Create a blood request for the signed-in user"""
    user = get_current_user()
    if not user or not user.get('email'):
        return jsonify({'success': False, 'error': 'Please log in to request blood.'}), 401
    data = request.get_json(silent=True) or {}
    result = create_blood_request(
        user['email'],
        data.get('blood_group'),
        user.get('display_name') or user['email'],
        data.get('donor_id'),
        data.get('donor_name')
    )
    return jsonify(result), (201 if result['success'] else 400)


# ============== ERROR HANDLERS ==============

@bp.app_errorhandler(404)
def not_found(e):
    return render_template('404.html'), 404


@bp.app_errorhandler(500)
def server_error(e):
    return render_template('500.html'), 500
