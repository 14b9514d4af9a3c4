# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import logging

import pytest


@pytest.fixture(scope="session", autouse=True)
def global_init():
    import lfgrants.api as lfgrants

    lfgrants.init_basic_logging(root_level=logging.WARNING)
