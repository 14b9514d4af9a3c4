# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import os
from typing import Optional
from unittest.mock import MagicMock

import boto3
import pytest
from botocore.exceptions import ClientError
from moto import mock_glue, mock_iam, mock_s3, mock_sts


def client_error(code: str, message: str = "", operation_name: str = "ListPermissions") -> ClientError:
    """Builds the botocore error that a service returns for (code, message)"""
    return ClientError(operation_name=operation_name, error_response={"Error": {"Code": code, "Message": message}})


class FakeClock:
    """Replaces the 'time' module of a module under test, sleeping only advances the clock."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps = []

    def monotonic(self) -> float:
        return self.now

    def time(self) -> float:
        return self.now

    def sleep(self, secs: float) -> None:
        self.sleeps.append(secs)
        self.now += secs


class AWSTestBase:
    testing_keyname = "testing"
    region = "us-east-1"
    # default moto acc id
    account_id = "123456789012"

    @pytest.fixture(scope="class")
    def aws_credentials(self):
        os.environ["AWS_ACCESS_KEY_ID"] = self.testing_keyname
        os.environ["AWS_SECRET_ACCESS_KEY"] = self.testing_keyname
        os.environ["AWS_SECURITY_TOKEN"] = self.testing_keyname
        os.environ["AWS_SESSION_TOKEN"] = self.testing_keyname
        os.environ["AWS_DEFAULT_REGION"] = self.region

    @pytest.fixture(scope="class")
    def glue_client(self, aws_credentials):
        with mock_glue():
            yield boto3.client(service_name="glue", region_name=self.region)

    @pytest.fixture(scope="class")
    def s3_resource(self, aws_credentials):
        with mock_s3():
            yield boto3.resource(service_name="s3", region_name=self.region)

    @pytest.fixture(scope="class")
    def iam_session(self, aws_credentials):
        with mock_iam(), mock_sts():
            yield boto3.Session(region_name=self.region)

    @pytest.fixture()
    def lakeformation_client(self):
        """Lake Formation is always stubbed, each test drives the ListPermissions responses itself."""
        return MagicMock()

    @pytest.fixture()
    def clock(self, monkeypatch):
        import lfgrants.core.platform.definitions.aws.lakeformation.verification as verification

        fake_clock = FakeClock()
        monkeypatch.setattr(verification, "time", fake_clock)
        return fake_clock

    @pytest.fixture()
    def retry_clock(self, monkeypatch):
        import lfgrants.core.platform.definitions.aws.common as common

        fake_clock = FakeClock()
        monkeypatch.setattr(common, "time", fake_clock)
        return fake_clock

    @staticmethod
    def list_permissions_response(entries: Optional[list] = None, next_token: Optional[str] = None):
        response = {"PrincipalResourcePermissions": entries if entries else []}
        if next_token:
            response.update({"NextToken": next_token})
        return response
