"""
shell.py
The portal shell: sidebar, top header, mobile menu toggle and profile modal.

Each fragment is rendered from templates/components and injected into its
placeholder element on the page (sidebar-container, top-header-container,
mobile-menu-toggle-container, profile-modal-container). Injection replaces
whatever an earlier injection put there, so running it twice gives the same
page. A page without a placeholder keeps working without that fragment.
"""
import logging
import re

from flask import render_template

from .history import parse_timestamp

logger = logging.getLogger(__name__)

SIDEBAR_CONTAINER = 'sidebar-container'
TOP_HEADER_CONTAINER = 'top-header-container'
MOBILE_TOGGLE_CONTAINER = 'mobile-menu-toggle-container'
PROFILE_MODAL_CONTAINER = 'profile-modal-container'

# (page, endpoint, label); the profile item opens the modal
NAV_ITEMS = [
    ('home', 'portal.index', 'Home'),
    ('hospital-dashboard', 'portal.hospital_dashboard', 'Hospital Dashboard'),
    ('donate', 'portal.donate', 'Donate Blood'),
    ('request', 'portal.request_page', 'Request Blood'),
    ('history', 'portal.history', 'My History'),
    ('profile', 'portal.profile', 'Profile'),
]


def profile_details(user, role=None):
    """Display values for the sidebar user block and the profile modal"""
    if not user:
        return None
    display_name = user.get('display_name')
    created = parse_timestamp(user.get('created_at'))
    return {
        'name': display_name or user.get('email') or 'User',
        'email': user.get('email') or '-',
        'display_name': display_name or '-',
        'initial': display_name[0].upper() if display_name else 'U',
        'member_since': f'{created.month}/{created.day}/{created.year}' if created else '-',
        'role': 'Admin' if role == 'admin' else 'User'
    }


def render_sidebar(active_page='home', user=None, role=None):
    return render_template(
        'components/sidebar.html',
        active_page=active_page,
        nav_items=NAV_ITEMS,
        profile=profile_details(user, role)
    )


def render_top_header(title='Dashboard', search_placeholder='Search donors, requests...',
                      search_term='', filter=None, signed_in=False):
    return render_template(
        'components/top_header.html',
        title=title,
        search_placeholder=search_placeholder,
        search_term=search_term,
        filter=filter,
        signed_in=signed_in
    )


def render_mobile_menu_toggle():
    return render_template('components/mobile_toggle.html')


def render_profile_modal(user=None, role=None, open=False):
    return render_template(
        'components/profile_modal.html',
        profile=profile_details(user, role),
        open=open and bool(user)
    )


def inject(html, container_id, fragment):
    """Put `fragment` inside the element with id `container_id`"""
    opening = re.compile(r'<([a-zA-Z][\w-]*)\b[^>]*\bid\s*=\s*["\']%s["\'][^>]*>' % re.escape(container_id))
    match = opening.search(html)
    if match is None:
        logger.error('%s not found. Please add a div with id="%s" to your page.', container_id, container_id)
        return html

    start = match.end()
    previous = re.compile(
        r'\s*<!--shell:%s-->.*?<!--/shell:%s-->' % (re.escape(container_id), re.escape(container_id)),
        re.S
    ).match(html, start)
    end = previous.end() if previous else start
    wrapped = f'<!--shell:{container_id}-->{fragment}<!--/shell:{container_id}-->'
    return html[:start] + wrapped + html[end:]


def initialize_dashboard_components(html, active_page='home', header_title='Dashboard',
                                    search_placeholder='Search donors, requests...',
                                    user=None, role=None, search_term='', filter=None,
                                    open_profile=False):
    """Inject every shell fragment into a rendered page"""
    html = inject(html, SIDEBAR_CONTAINER, render_sidebar(active_page, user, role))
    html = inject(html, TOP_HEADER_CONTAINER, render_top_header(
        header_title, search_placeholder, search_term, filter, signed_in=bool(user) or role == 'admin'
    ))
    html = inject(html, MOBILE_TOGGLE_CONTAINER, render_mobile_menu_toggle())
    html = inject(html, PROFILE_MODAL_CONTAINER, render_profile_modal(user, role, open_profile))
    return html
