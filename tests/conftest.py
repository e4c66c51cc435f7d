"""
Shared fakes for the AWS clients.
"""

import threading
from typing import Any, Dict, List, Optional

import boto3
import pytest
from botocore.stub import Stubber

from mxaws.clients import ProviderClients


def make_instance(instance_id: str, state: str = "running", size: str = "t3.small",
                  tags: Optional[Dict[str, str]] = None, address: Optional[str] = None) -> Dict[str, Any]:
    instance = {
        "InstanceId": instance_id,
        "InstanceType": size,
        "State": {"Name": state},
        "Tags": [{"Key": k, "Value": v} for k, v in (tags or {}).items()],
    }
    if address:
        instance["PublicIpAddress"] = address
    return instance


class FakeWaiter:
    """Checks that the fake instances are already in the awaited state."""

    def __init__(self, ec2: "FakeEC2", state: str):
        self.ec2 = ec2
        self.state = state

    def wait(self, InstanceIds, WaiterConfig=None):
        self.ec2.calls.append(("wait", self.state, list(InstanceIds)))
        for instance_id in InstanceIds:
            assert self.ec2.instances[instance_id]["State"]["Name"] == self.state


class FakeEC2:
    """
    In-memory EC2 client. Power transitions complete immediately so the
    waiters only need to confirm them.
    """

    WAITERS = {"instance_stopped": "stopped", "instance_running": "running"}

    def __init__(self, instances: List[Dict[str, Any]], slow_names=()):
        self.instances = {inst["InstanceId"]: inst for inst in instances}
        self.calls: List[tuple] = []
        self.slow_names = set(slow_names)
        self._lock = threading.Lock()

    def _record(self, *call):
        with self._lock:
            self.calls.append(call)

    def _matches(self, instance, filters):
        if not filters:
            return True
        key = filters[0]["Values"][0]
        values = filters[1]["Values"]
        tags = {tag["Key"]: tag["Value"] for tag in instance["Tags"]}
        return tags.get(key) in values

    def describe_instances(self, InstanceIds=None, Filters=None):
        self._record("describe_instances", InstanceIds, Filters)
        if Filters and Filters[1]["Values"][0] in self.slow_names:
            threading.Event().wait(0.05)
        selected = [
            inst for inst in self.instances.values()
            if (InstanceIds is None or inst["InstanceId"] in InstanceIds) and self._matches(inst, Filters)
        ]
        return {"Reservations": [{"Instances": [inst]} for inst in selected]}

    def get_paginator(self, operation):
        assert operation == "describe_instances"
        fake = self

        class _Paginator:
            def paginate(self, **params):
                return iter([fake.describe_instances(**params)])

        return _Paginator()

    def _set_state(self, instance_ids, state):
        for instance_id in instance_ids:
            self.instances[instance_id]["State"]["Name"] = state

    def stop_instances(self, InstanceIds):
        self._record("stop_instances", list(InstanceIds))
        self._set_state(InstanceIds, "stopped")
        return {"StoppingInstances": []}

    def start_instances(self, InstanceIds):
        self._record("start_instances", list(InstanceIds))
        self._set_state(InstanceIds, "running")
        return {"StartingInstances": []}

    def reboot_instances(self, InstanceIds):
        self._record("reboot_instances", list(InstanceIds))
        return {}

    def modify_instance_attribute(self, InstanceId, InstanceType):
        self._record("modify_instance_attribute", InstanceId, InstanceType["Value"])
        assert self.instances[InstanceId]["State"]["Name"] == "stopped"
        self.instances[InstanceId]["InstanceType"] = InstanceType["Value"]
        return {}

    def get_waiter(self, name):
        return FakeWaiter(self, self.WAITERS[name])


@pytest.fixture
def fake_ec2_clients():
    """Factory building ProviderClients around a FakeEC2."""
    def build(instances, slow_names=()):
        return ProviderClients(
            ec2=FakeEC2(instances, slow_names),
            rds=None,
            codedeploy=None,
            dynamodb=None,
        )
    return build


@pytest.fixture
def aws_env(monkeypatch):
    """Dummy credentials so real botocore clients can be built for Stubber."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    monkeypatch.delenv("AWS_PROFILE", raising=False)


@pytest.fixture
def stubbed(aws_env):
    """Real botocore client for a service, wrapped in an active Stubber."""
    stubbers = []

    def build(service):
        client = boto3.client(service, region_name="us-east-1")
        stubber = Stubber(client)
        stubber.activate()
        stubbers.append(stubber)
        return client, stubber

    yield build
    for stubber in stubbers:
        stubber.deactivate()
