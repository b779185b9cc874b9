""" Shared fixtures: an in-memory store standing in for the cluster.
"""

import copy
import threading
import uuid
from collections import Counter
from datetime import datetime, timedelta, timezone

import pytest

from paasplane.errors import (
    AlreadyExistsError,
    ConflictError,
    NotFoundError,
    WatchOpenError,
)
from paasplane.k8s import kinds
from paasplane.k8s.store import Store
from paasplane.k8s.watch import ADDED, DELETED, MODIFIED, EventStream
from paasplane.labels import LabelCompiler

ROOT_NAMESPACE = "cf"


def timestamp(offset_seconds=0):
    moment = datetime.now(timezone.utc) + timedelta(seconds=offset_seconds)
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ")


def apply_merge_patch(target, patch):
    for key, value in patch.items():
        if value is None:
            target.pop(key, None)
        elif isinstance(value, dict) and isinstance(target.get(key), dict):
            apply_merge_patch(target[key], value)
        else:
            target[key] = copy.deepcopy(value)


def _matches_labels(obj, label_selector):
    if not label_selector:
        return True
    labels = obj.get("metadata", {}).get("labels") or {}
    for term in label_selector.split(","):
        if "=" in term:
            key, value = term.split("=", 1)
            if labels.get(key) != value:
                return False
        elif term not in labels:
            return False
    return True


def _matches_fields(obj, field_selector):
    if not field_selector:
        return True
    for term in field_selector.split(","):
        path, value = term.split("=", 1)
        current = obj
        for part in path.split("."):
            current = (current or {}).get(part)
        if current != value:
            return False
    return True


class FakeStore(Store):
    """ Store keeping objects in memory.

    Writes are counted per verb and kind name in ``writes``. Failures can be
    queued per verb and kind with ``fail_next``. Namespaces are deleted
    asynchronously: they stay terminating until ``purge_namespace`` is
    called. ``namespace_read_lag`` hides a freshly created namespace from
    that many subsequent reads.
    """

    def __init__(self):
        self.objects = {}
        self.writes = Counter()
        self.deletions = []
        self.namespace_read_lag = 0
        self._hidden_reads = Counter()
        self._failures = {}
        self._streams = {}
        self._rv = 0
        self._lock = threading.RLock()

    def _key(self, kind, name, namespace):
        return (kind.plural, namespace if kind.namespaced else None, name)

    def _next_rv(self):
        self._rv += 1
        return str(self._rv)

    def fail_next(self, verb, kind, error, times=1):
        self._failures.setdefault((verb, kind.kind), []).extend([error] * times)

    def _maybe_fail(self, verb, kind):
        pending = self._failures.get((verb, kind.kind))
        if pending:
            raise pending.pop(0)

    def _notify(self, key, event_type, obj):
        for stream in list(self._streams.get(key, [])):
            stream.put(event_type, copy.deepcopy(obj))

    def count(self, verb, kind):
        return self.writes[(verb, kind.kind)]

    # Seeding helpers bypass counters and failure injection

    def add(self, kind, body):
        body = copy.deepcopy(body)
        metadata = body.setdefault("metadata", {})
        if kind.namespaced:
            metadata.setdefault("namespace", ROOT_NAMESPACE)
        else:
            metadata.pop("namespace", None)
        body.setdefault("apiVersion", kind.api_version)
        body.setdefault("kind", kind.kind)
        metadata.setdefault("uid", str(uuid.uuid4()))
        metadata.setdefault("generation", 1)
        metadata["resourceVersion"] = self._next_rv()
        key = self._key(kind, metadata["name"], metadata.get("namespace"))
        self.objects[key] = body
        self._notify(key, ADDED, body)
        return copy.deepcopy(body)

    def peek(self, kind, name, namespace=None):
        obj = self.objects.get(self._key(kind, name, namespace))
        return copy.deepcopy(obj) if obj is not None else None

    def exists(self, kind, name, namespace=None):
        return self._key(kind, name, namespace) in self.objects

    def purge_namespace(self, name):
        """Finish the asynchronous deletion of a terminating namespace."""
        key = self._key(kinds.NAMESPACE, name, None)
        obj = self.objects.pop(key, None)
        if obj is not None:
            self._notify(key, DELETED, obj)

    # Store contract

    def get(self, kind, name, namespace=None):
        with self._lock:
            self._maybe_fail("get", kind)
            key = self._key(kind, name, namespace)
            if self._hidden_reads[key] > 0:
                self._hidden_reads[key] -= 1
                raise NotFoundError(f"{kind.kind} {name} not found", status=404)
            obj = self.objects.get(key)
            if obj is None:
                raise NotFoundError(f"{kind.kind} {name} not found", status=404)
            return copy.deepcopy(obj)

    def create(self, kind, body):
        with self._lock:
            self.writes[("create", kind.kind)] += 1
            self._maybe_fail("create", kind)
            metadata = body.get("metadata", {})
            key = self._key(kind, metadata["name"], metadata.get("namespace"))
            if key in self.objects:
                raise AlreadyExistsError(f"{kind.kind} {metadata['name']} already exists", status=409)

            body = copy.deepcopy(body)
            # Server-owned fields are assigned on create
            for field in ("uid", "resourceVersion", "generation", "deletionTimestamp"):
                body["metadata"].pop(field, None)
            created = self.add(kind, body)
            if kind == kinds.NAMESPACE and self.namespace_read_lag:
                self._hidden_reads[key] = self.namespace_read_lag
            return created

    def _patch(self, verb, kind, name, patch, namespace, status_only):
        with self._lock:
            self.writes[(verb, kind.kind)] += 1
            self._maybe_fail(verb, kind)
            key = self._key(kind, name, namespace)
            current = self.objects.get(key)
            if current is None:
                raise NotFoundError(f"{kind.kind} {name} not found", status=404)

            patch = copy.deepcopy(patch)
            metadata_patch = patch.get("metadata") or {}
            expected_rv = metadata_patch.pop("resourceVersion", None)
            if expected_rv and expected_rv != current["metadata"]["resourceVersion"]:
                raise ConflictError(f"{kind.kind} {name} was modified", status=409)

            updated = copy.deepcopy(current)
            if status_only:
                apply_merge_patch(updated, {"status": patch.get("status") or {}})
            else:
                patch.pop("status", None)
                apply_merge_patch(updated, patch)
                if updated.get("spec") != current.get("spec"):
                    updated["metadata"]["generation"] = current["metadata"].get("generation", 1) + 1

            if updated == current:
                return copy.deepcopy(current)

            metadata = updated["metadata"]
            if metadata.get("deletionTimestamp") and not metadata.get("finalizers"):
                del self.objects[key]
                self._notify(key, DELETED, updated)
                return copy.deepcopy(updated)

            metadata["resourceVersion"] = self._next_rv()
            self.objects[key] = updated
            self._notify(key, MODIFIED, updated)
            return copy.deepcopy(updated)

    def patch(self, kind, name, patch, namespace=None):
        return self._patch("patch", kind, name, patch, namespace, status_only=False)

    def patch_status(self, kind, name, patch, namespace=None):
        return self._patch("patch_status", kind, name, patch, namespace, status_only=True)

    def list(self, kind, namespace=None, label_selector=None, field_selector=None):
        with self._lock:
            self._maybe_fail("list", kind)
            return [
                copy.deepcopy(obj)
                for (plural, ns, _), obj in sorted(self.objects.items(), key=lambda i: str(i[0]))
                if plural == kind.plural
                and (namespace is None or ns == namespace)
                and _matches_labels(obj, label_selector)
                and _matches_fields(obj, field_selector)
            ]

    def delete(self, kind, name, namespace=None, propagation_policy=None):
        with self._lock:
            self.writes[("delete", kind.kind)] += 1
            self._maybe_fail("delete", kind)
            key = self._key(kind, name, namespace)
            obj = self.objects.get(key)
            if obj is None:
                raise NotFoundError(f"{kind.kind} {name} not found", status=404)
            self.deletions.append((kind.kind, namespace, name, propagation_policy))

            if obj["metadata"].get("finalizers") or kind == kinds.NAMESPACE:
                if not obj["metadata"].get("deletionTimestamp"):
                    obj["metadata"]["deletionTimestamp"] = timestamp()
                    obj["metadata"]["resourceVersion"] = self._next_rv()
                    self._notify(key, MODIFIED, obj)
                return

            del self.objects[key]
            self._notify(key, DELETED, obj)

    def watch(self, kind, namespace, name):
        with self._lock:
            try:
                self._maybe_fail("watch", kind)
            except Exception as e:
                raise WatchOpenError(f"cannot watch {kind.kind} {namespace}/{name}: {e}") from e

            key = self._key(kind, name, namespace)
            stream = EventStream(f"{kind.kind} {namespace}/{name}")
            if key in self.objects:
                stream.put(ADDED, copy.deepcopy(self.objects[key]))
            self._streams.setdefault(key, []).append(stream)
            stream.on_stop(lambda: self._streams[key].remove(stream))
            return stream

    def open_streams(self):
        return sum(len(streams) for streams in self._streams.values())


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def label_compiler():
    return LabelCompiler().defaults(
        {
            "pod-security.kubernetes.io/enforce": "restricted",
            "pod-security.kubernetes.io/audit": "restricted",
        }
    )
