import logging

from pulsechain.shell import (
    PROFILE_MODAL_CONTAINER, SIDEBAR_CONTAINER, initialize_dashboard_components, inject,
    profile_details, render_profile_modal, render_sidebar
)

PAGE = (
    '<body><div id="mobile-menu-toggle-container"></div>'
    '<div id="sidebar-container"></div>'
    '<main><div id="top-header-container"></div></main>'
    '<div id="profile-modal-container"></div></body>'
)

USER = {
    'uid': 'u1',
    'email': 'donor@example.com',
    'display_name': 'donor One',
    'created_at': '2026-03-04T10:00:00+00:00'
}


def test_inject_replaces_previous_fragment():
    once = inject(PAGE, SIDEBAR_CONTAINER, '<nav>one</nav>')
    twice = inject(once, SIDEBAR_CONTAINER, '<nav>one</nav>')
    assert once == twice
    assert once.count('<nav>one</nav>') == 1

    changed = inject(once, SIDEBAR_CONTAINER, '<nav>two</nav>')
    assert '<nav>one</nav>' not in changed
    assert '<nav>two</nav>' in changed


def test_inject_missing_placeholder(caplog):
    html = '<body><main></main></body>'
    with caplog.at_level(logging.ERROR, logger='pulsechain.shell'):
        assert inject(html, SIDEBAR_CONTAINER, '<nav></nav>') == html
    assert 'sidebar-container not found' in caplog.text


def test_profile_details():
    profile = profile_details(USER, 'user')
    assert profile['initial'] == 'D'
    assert profile['name'] == 'donor One'
    assert profile['member_since'] == '3/4/2026'
    assert profile['role'] == 'User'

    bare = profile_details({'email': 'x@example.com'}, 'admin')
    assert bare['initial'] == 'U'
    assert bare['display_name'] == '-'
    assert bare['member_since'] == '-'
    assert bare['role'] == 'Admin'
    assert profile_details(None) is None


def test_sidebar_marks_active_page(ctx):
    html = render_sidebar('history', USER, 'user')
    assert 'class="nav-item active"' in html
    assert html.count(' active"') == 1
    assert 'data-page="history"' in html
    assert 'donor One' in html


def test_sidebar_without_user_links_to_login(ctx):
    html = render_sidebar('home')
    assert 'Click to sign in' in html
    assert 'Admin</a>' not in html


def test_profile_modal_open_only_with_user(ctx):
    assert 'display: flex' in render_profile_modal(USER, 'user', open=True)
    assert 'display: none' in render_profile_modal(None, None, open=True)


def test_initialize_dashboard_components_is_idempotent(ctx):
    first = initialize_dashboard_components(PAGE, 'donate', 'Donate Blood', user=USER, role='user')
    second = initialize_dashboard_components(first, 'donate', 'Donate Blood', user=USER, role='user')
    assert first == second
    assert first.count('id="sidebar"') == 1
    assert first.count('id="profileModal"') == 1
    assert 'Donate Blood</h1>' in first
    assert f'<!--shell:{PROFILE_MODAL_CONTAINER}-->' in first
