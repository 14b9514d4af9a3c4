# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from setuptools import find_packages, setup
from src.lfgrants import __version__ as version

REQUIRED_PACKAGES = [
    'boto3 >= 1.41.1',
    'python-dateutil >= 2.9.0',
    'shortuuid >= 1.0.13',
    'overrides >= 3.1.0',
]

# moto 5 replaced the per-service mocks (mock_glue, mock_s3, ...) used by the test mixins
TEST_PACKAGES = [
    'moto[glue] >= 4.2, < 5',
    'pytest',
    'mock'
]

setup(
    name="lfgrants",
    python_requires=">=3.10",
    version=version,
    description="lfgrants grants, verifies and revokes AWS Lake Formation permissions under eventual consistency.",
    keywords="aws lake formation glue s3 iam permissions grant verification eventual consistency",
    author="Amazon.com Inc.",
    license="Apache 2.0",

    packages=find_packages(where="src", exclude=("test", "test_integration")),
    package_dir={"": "src"},
    install_requires=REQUIRED_PACKAGES,
    tests_require=TEST_PACKAGES,
    extras_require={"test": TEST_PACKAGES},
    test_suite='test',
    include_package_data=True,
)
