from yachtdesk.extensions import db
from yachtdesk.models import User, Yacht


class DataLoader:
    """Batching cache keyed by id.

    ``batch_fn`` receives a sorted list of distinct missing keys and returns a
    mapping of key to value. Each ``load_many`` call issues at most one batch.
    """

    def __init__(self, batch_fn):
        self._batch_fn = batch_fn
        self._cache = {}
        self.batch_calls = 0

    def load_many(self, keys):
        wanted = {key for key in keys if key is not None}
        missing = sorted(wanted - set(self._cache))
        if missing:
            self.batch_calls += 1
            found = self._batch_fn(missing) or {}
            for key in missing:
                self._cache[key] = found.get(key)
        return {key: self._cache[key] for key in wanted}

    def load(self, key):
        if key is None:
            return None
        return self.load_many([key]).get(key)

    def prime(self, key, value):
        self._cache.setdefault(key, value)

    def clear(self):
        self._cache.clear()


def _users_by_id(ids):
    rows = db.session.query(User.id, User.first_name, User.last_name, User.email).filter(User.id.in_(ids)).all()
    return {row.id: f"{row.first_name or ''} {row.last_name or ''}".strip() or row.email for row in rows}


def _yachts_by_id(ids):
    rows = db.session.query(Yacht.id, Yacht.name).filter(Yacht.id.in_(ids)).all()
    return {row.id: row.name for row in rows}


def user_name_loader():
    return DataLoader(_users_by_id)


def yacht_name_loader():
    return DataLoader(_yachts_by_id)
