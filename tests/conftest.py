import copy
import os
import sys

import pytest
from kubernetes.client.rest import ApiException

# Ensure project root is importable
_project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)


class FakeCustomObjectsApi:
    """In-memory VaultService objects with resourceVersion checks on status writes"""

    def __init__(self):
        self.objects = {}
        self.before_replace = None

    def add(self, namespace, name, status=None, spec=None):
        self.objects[(namespace, name)] = {
            "apiVersion": "vault.security.coreos.com/v1alpha1",
            "kind": "VaultService",
            "metadata": {"name": name, "namespace": namespace, "resourceVersion": "1"},
            "spec": spec or {"nodes": 3},
            "status": status or {},
        }

    def external_write(self, namespace, name, status):
        """Simulate another writer touching the object"""
        obj = self.objects[(namespace, name)]
        obj["status"] = status
        obj["metadata"]["resourceVersion"] = str(int(obj["metadata"]["resourceVersion"]) + 1)

    def get_namespaced_custom_object(self, group, version, namespace, plural, name):
        if (namespace, name) not in self.objects:
            raise ApiException(status=404, reason="Not Found")
        return copy.deepcopy(self.objects[(namespace, name)])

    def replace_namespaced_custom_object_status(self, group, version, namespace, plural, name, body):
        if self.before_replace is not None:
            hook, self.before_replace = self.before_replace, None
            hook()
        if (namespace, name) not in self.objects:
            raise ApiException(status=404, reason="Not Found")
        current = self.objects[(namespace, name)]
        if body["metadata"]["resourceVersion"] != current["metadata"]["resourceVersion"]:
            raise ApiException(status=409, reason="Conflict")
        current["status"] = copy.deepcopy(body["status"])
        current["metadata"]["resourceVersion"] = str(int(current["metadata"]["resourceVersion"]) + 1)
        return copy.deepcopy(current)


@pytest.fixture
def custom_objects_api():
    return FakeCustomObjectsApi()
