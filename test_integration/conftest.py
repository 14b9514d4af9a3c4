# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import logging
import os

import boto3
import pytest

from lfgrants.mixins.aws.integ_test import LakeFormationIntegTestMixin

APP_NAME = "LFGrants"


@pytest.fixture(scope="session", autouse=True)
def global_init():
    import lfgrants.api as lfgrants

    lfgrants.init_basic_logging(root_level=logging.CRITICAL)

    # Configuration to be used by all of the integ-tests in this folder that extends <LakeFormationIntegTestMixin>
    stage_key = LakeFormationIntegTestMixin.create_stage_key(APP_NAME)
    if not os.getenv(stage_key):
        os.environ[stage_key] = "dev"

    aws_region_key = LakeFormationIntegTestMixin.create_aws_region(APP_NAME)
    if not os.getenv(aws_region_key):
        os.environ[aws_region_key] = "us-east-1"

    aws_acc_id_key = LakeFormationIntegTestMixin.create_aws_account_id_key(APP_NAME)
    if not os.getenv(aws_acc_id_key):
        # resolve from the default credentials
        os.environ[aws_acc_id_key] = lfgrants.get_aws_account_id(boto3.Session(), os.environ[aws_region_key])


def pytest_collection_modifyitems(config, items):
    if boto3.Session().get_credentials() is None:
        skip_integ = pytest.mark.skip(reason="AWS credentials are not configured")
        integ_dir = os.path.dirname(os.path.abspath(__file__))
        for item in items:
            if str(item.path).startswith(integ_dir + os.sep):
                item.add_marker(skip_integ)
