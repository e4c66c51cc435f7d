"""
Tests for the provider client facade.
"""

import pytest
from unittest.mock import Mock, patch
from botocore.exceptions import ClientError, EndpointConnectionError, NoRegionError, WaiterError

from mxaws.clients import call, create_clients, paginate, translate_waiter_error
from mxaws.config import AWSConfig
from mxaws.errors import ConfigurationError, RemoteCallError


def client_error(code="InvalidInstanceID.NotFound", message="The instance ID 'i-x' does not exist"):
    return ClientError({"Error": {"Code": code, "Message": message}}, "DescribeInstances")


class TestCall:
    """Test error translation for single calls."""

    def test_returns_response(self):
        client = Mock()
        client.describe_instances.return_value = {"Reservations": []}

        assert call(client, "describe_instances", InstanceIds=["i-1"]) == {"Reservations": []}
        client.describe_instances.assert_called_once_with(InstanceIds=["i-1"])

    def test_client_error_becomes_remote_call_error(self):
        client = Mock()
        client.meta.service_model.service_name = "ec2"
        client.describe_instances.side_effect = client_error()

        with pytest.raises(RemoteCallError) as excinfo:
            call(client, "describe_instances", InstanceIds=["i-x"])

        err = excinfo.value
        assert err.service == "ec2"
        assert err.operation == "describe_instances"
        assert err.code == "InvalidInstanceID.NotFound"
        assert "does not exist" in str(err)
        assert isinstance(err.__cause__, ClientError)

    def test_botocore_error_becomes_remote_call_error(self):
        client = Mock()
        client.start_instances.side_effect = EndpointConnectionError(endpoint_url="https://ec2")

        with pytest.raises(RemoteCallError) as excinfo:
            call(client, "start_instances", InstanceIds=["i-1"])
        assert excinfo.value.code is None


class TestPaginate:
    """Test paginated iteration."""

    def test_flattens_pages(self):
        client = Mock()
        client.get_paginator.return_value.paginate.return_value = [
            {"TableNames": ["a", "b"]},
            {"TableNames": ["c"]},
            {},
        ]

        assert list(paginate(client, "list_tables", "TableNames")) == ["a", "b", "c"]
        client.get_paginator.assert_called_once_with("list_tables")

    def test_error_mid_pagination(self):
        client = Mock()
        client.get_paginator.return_value.paginate.side_effect = client_error("ThrottlingException", "Rate exceeded")

        with pytest.raises(RemoteCallError, match="ThrottlingException"):
            list(paginate(client, "list_tables", "TableNames"))


@patch("mxaws.clients.boto3.session.Session")
def test_create_clients_uses_config(mock_session):
    session = mock_session.return_value
    session.client.side_effect = lambda name: f"client:{name}"

    clients = create_clients(AWSConfig("AKIA", "secret", "us-west-2"))

    mock_session.assert_called_once_with(
        aws_access_key_id="AKIA",
        aws_secret_access_key="secret",
        region_name="us-west-2",
    )
    assert clients.ec2 == "client:ec2"
    assert clients.rds == "client:rds"
    assert clients.codedeploy == "client:codedeploy"
    assert clients.dynamodb == "client:dynamodb"


def test_clients_are_immutable():
    clients = create_clients(session=Mock())
    with pytest.raises(AttributeError):
        clients.ec2 = None


@patch("mxaws.clients.boto3.session.Session")
def test_create_clients_without_region(mock_session):
    mock_session.return_value.client.side_effect = NoRegionError()

    with pytest.raises(ConfigurationError, match="awsRegion or AWS_REGION") as excinfo:
        create_clients(AWSConfig(None, None, None))
    assert isinstance(excinfo.value.__cause__, NoRegionError)


class TestTranslateWaiterError:
    """Test telling rejected polls apart from waits that ran out."""

    def test_rejected_poll(self):
        client = Mock()
        client.meta.service_model.service_name = "ec2"
        error = WaiterError(
            name="InstanceStopped",
            reason="An error occurred (UnauthorizedOperation): You are not authorized",
            last_response={"Error": {"Code": "UnauthorizedOperation", "Message": "You are not authorized"}},
        )

        rejected = translate_waiter_error(client, "describe_instances", error)

        assert isinstance(rejected, RemoteCallError)
        assert rejected.service == "ec2"
        assert rejected.operation == "describe_instances"
        assert rejected.code == "UnauthorizedOperation"

    def test_max_attempts_after_retryable_error(self):
        error = WaiterError(
            name="InstanceRunning",
            reason="Max attempts exceeded. Previously accepted state: Matched expected service error code",
            last_response={"Error": {"Code": "InvalidInstanceID.NotFound", "Message": "not found"}},
        )
        assert translate_waiter_error(Mock(), "describe_instances", error) is None

    def test_failure_state(self):
        error = WaiterError(
            name="InstanceStopped",
            reason="Waiter encountered a terminal failure state",
            last_response={"Reservations": []},
        )
        assert translate_waiter_error(Mock(), "describe_instances", error) is None
