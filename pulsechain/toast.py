"""
toast.py
Toast notifications, carried to the next rendered page by Flask's flash
queue. The layout renders a single container and shows each toast with a
close button until it auto-dismisses.
"""
from flask import flash, get_flashed_messages

TOAST_TYPES = ('success', 'error')
DEFAULT_DURATIONS = {'success': 4000, 'error': 5000}


def show_toast(message, type='success', duration=None):
    """
    Queue a toast.
    :param type: 'success' or 'error'
    :param duration: milliseconds before auto-dismiss (default depends on type)
    """
    if type not in TOAST_TYPES:
        raise ValueError(f'Unknown toast type: {type}')
    category = type
    if duration is not None and duration != DEFAULT_DURATIONS[type]:
        category = f'{type}:{int(duration)}'
    flash(message, category)


def show_success_toast(message, duration=4000):
    show_toast(message, 'success', duration)


def show_error_toast(message, duration=5000):
    show_toast(message, 'error', duration)


def get_toasts():
    """
    Toasts for the page being rendered, as [{message, type, duration}].
    The first call in a request takes them off the queue; later calls in the
    same request return the same toasts.
    """
    toasts = []
    for category, message in get_flashed_messages(with_categories=True):
        type, _, duration = category.partition(':')
        if type not in TOAST_TYPES:
            # flash() calls that bypassed show_toast (default category 'message')
            type = 'success'
        toasts.append({
            'message': message,
            'type': type,
            'duration': int(duration) if duration.isdigit() else DEFAULT_DURATIONS[type]
        })
    return toasts
