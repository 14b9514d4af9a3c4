# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from ._logging_config import init_basic_logging
from .core.grant import DataLocation, GrantDescriptor, Permission, PermissionsRecord, ResourceKind, TableResource
from .core.platform.definitions.aws.common import get_aws_account_id, get_caller_identity, get_session
from .core.platform.definitions.aws.lakeformation.permissions import LakeFormationPermissions
from .core.platform.definitions.aws.lakeformation.verification import (
    TRANSIENT_ERROR_SIGNATURES,
    ExistenceVerifier,
    GrantStillRegisteredError,
    GrantVerificationError,
    RetryOutcome,
    RetryOutcomeType,
    RevocationVerifier,
    VerificationConfig,
    VerificationResult,
)
