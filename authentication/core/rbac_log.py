import json
import logging
import threading
from collections import Counter, deque
from dataclasses import asdict, dataclass, field

from django.apps import apps
from django.utils import timezone

logger = logging.getLogger('rbac')


@dataclass(frozen=True)
class RbacLogEntry:
    user_id: str
    role: str
    resource: str
    action: str
    allowed: bool
    email: str = ''
    ip: str = ''
    path: str = ''
    method: str = ''
    reason: str = ''
    timestamp: str = field(default_factory=lambda: timezone.now().isoformat())


class RbacDecisionLog:
    """
    Bounded in-memory record of permission decisions.

    One instance is created by AuthenticationConfig.ready() and shared by
    the permission classes. Entries are lost on restart.
    """

    def __init__(self, max_entries=1000, suspicious_threshold=5):
        self.max_entries = max_entries
        self.suspicious_threshold = suspicious_threshold
        self._entries = deque(maxlen=max_entries)
        self._lock = threading.Lock()

    def __len__(self):
        return len(self._entries)

    def record(self, entry):
        with self._lock:
            self._entries.append(entry)

        if entry.allowed:
            logger.debug(
                "RBAC allow: user=%s role=%s %s:%s",
                entry.user_id, entry.role, entry.resource, entry.action,
            )
        else:
            logger.warning(
                "RBAC deny: user=%s role=%s %s:%s path=%s ip=%s (%s)",
                entry.user_id, entry.role, entry.resource, entry.action,
                entry.path, entry.ip, entry.reason,
            )
        return entry

    def _snapshot(self):
        with self._lock:
            return list(self._entries)

    def query(self, user_id=None, role=None, resource=None, allowed=None, limit=None):
        """Most recent first."""
        results = []
        for entry in reversed(self._snapshot()):
            if user_id is not None and entry.user_id != str(user_id):
                continue
            if role is not None and entry.role != role:
                continue
            if resource is not None and entry.resource != resource:
                continue
            if allowed is not None and entry.allowed != allowed:
                continue
            results.append(entry)
            if limit and len(results) >= limit:
                break
        return results

    def stats(self):
        entries = self._snapshot()
        total = len(entries)
        allowed = sum(1 for e in entries if e.allowed)
        denied = total - allowed

        by_role = {}
        by_resource = {}
        for entry in entries:
            bucket = by_role.setdefault(entry.role, {'allowed': 0, 'denied': 0})
            bucket['allowed' if entry.allowed else 'denied'] += 1
            bucket = by_resource.setdefault(entry.resource, {'allowed': 0, 'denied': 0})
            bucket['allowed' if entry.allowed else 'denied'] += 1

        return {
            'total': total,
            'allowed': allowed,
            'denied': denied,
            'allowed_percentage': round(allowed / total * 100, 2) if total else 0,
            'denied_percentage': round(denied / total * 100, 2) if total else 0,
            'by_role': by_role,
            'by_resource': by_resource,
        }

    def recent_denials(self, limit=50):
        return self.query(allowed=False, limit=limit)

    def suspicious_activity(self, threshold=None):
        """Users and IPs whose denial count reaches `threshold`."""
        threshold = self.suspicious_threshold if threshold is None else threshold
        denials = [e for e in self._snapshot() if not e.allowed]
        by_user = Counter(e.user_id for e in denials)
        by_ip = Counter(e.ip for e in denials if e.ip)

        return {
            'threshold': threshold,
            'users': [
                {'user_id': user_id, 'denials': count}
                for user_id, count in by_user.most_common() if count >= threshold
            ],
            'ips': [
                {'ip': ip, 'denials': count}
                for ip, count in by_ip.most_common() if count >= threshold
            ],
        }

    def export(self):
        return json.dumps([asdict(e) for e in self._snapshot()], indent=2)

    def clear(self):
        with self._lock:
            self._entries.clear()
        logger.info("RBAC decision log cleared")


def get_rbac_log():
    """Return the process-wide decision log owned by the authentication app."""
    return apps.get_app_config('authentication').rbac_log
