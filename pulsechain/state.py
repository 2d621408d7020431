"""
state.py
Per-request page state for the portal's controllers.

A page moves unauthenticated -> checking -> loading -> ready. A page in
ready re-enters ready whenever its filter, search term or records change.
"""
from flask import request

UNAUTHENTICATED = 'unauthenticated'
CHECKING = 'checking'
LOADING = 'loading'
READY = 'ready'

TRANSITIONS = {
    UNAUTHENTICATED: (CHECKING,),
    CHECKING: (UNAUTHENTICATED, LOADING),
    LOADING: (READY,),
    READY: (READY, CHECKING),
}


class ViewState:
    def __init__(self, page, filters=('all',), filter=None, search=''):
        self.page = page
        self.filters = tuple(filters)
        self.filter = filter if filter in self.filters else self.filters[0]
        self.search = (search or '').strip()
        self.status = UNAUTHENTICATED
        self.user = None
        self.records = []
        self.error = None

    @classmethod
    def from_request(cls, page, filters=('all',)):
        """State seeded from the `filter` and `q` query parameters"""
        return cls(page, filters, request.args.get('filter'), request.args.get('q', ''))

    def transition(self, status):
        if status not in TRANSITIONS[self.status]:
            raise ValueError(f'{self.page}: cannot go from {self.status} to {status}')
        self.status = status

    def check(self, user):
        """Resolve the session; True when the page may load its records"""
        self.transition(CHECKING)
        if user is None:
            self.user = None
            self.transition(UNAUTHENTICATED)
            return False
        self.user = user
        self.transition(LOADING)
        return True

    def ready(self, records=None, error=None):
        self.records = list(records or [])
        self.error = error
        self.transition(READY)

    def update(self, filter=None, search=None):
        if filter is not None:
            self.filter = filter if filter in self.filters else self.filters[0]
        if search is not None:
            self.search = search.strip()
        self.transition(READY)

    @property
    def is_ready(self):
        return self.status == READY

    def to_dict(self):
        return {'page': self.page, 'status': self.status, 'filter': self.filter, 'search': self.search}
