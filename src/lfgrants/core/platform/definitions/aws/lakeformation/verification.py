# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Verification of Lake Formation grants against the ListPermissions API.

Lake Formation is eventually consistent with IAM and S3. A grant that has just been created might not be visible yet,
or the principal/the S3 registration behind it might still be propagating, which surfaces as a short list of
well-known authorization errors. ExistenceVerifier polls through those (and only those) until the grant is visible or
the time budget runs out. Any other error is terminal and reported right away.
"""
import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from enum import Enum, unique
from typing import Any, Dict, Optional, Tuple

from dateutil.tz import tzlocal
from overrides import overrides

from lfgrants.core.entity import CoreData
from lfgrants.core.grant import GrantDescriptor, ResourceKind
from lfgrants.core.platform.definitions.aws.common import get_code_for_exception, is_aws_error
from lfgrants.core.platform.definitions.aws.lakeformation.client_wrapper import build_principal, build_resource, resource_matches

logger = logging.getLogger(__name__)

DEFAULT_VERIFICATION_BUDGET = timedelta(minutes=2)
DEFAULT_POLL_INTERVAL_IN_SECS = 5

# (error code, message substring) pairs, empty substring matches any message
TRANSIENT_ERROR_SIGNATURES: Tuple[Tuple[str, str], ...] = (
    ("InvalidInputException", "Invalid principal"),
    ("InvalidInputException", "Grantee has no permissions"),
    ("InvalidInputException", "register the S3 path"),
    ("ConcurrentModificationException", ""),
    ("OperationTimeoutException", ""),
    ("AccessDeniedException", "is not authorized to access requested permissions"),
)


def is_transient_error(error: Exception) -> bool:
    for code, message in TRANSIENT_ERROR_SIGNATURES:
        if is_aws_error(error, code, message):
            return True
    return False


# Lake Formation refuses to list permissions of a principal or a resource that no longer exists
REVOKED_ERROR_CODES = ["InvalidInputException", "EntityNotFoundException"]


def resource_of(descriptor: GrantDescriptor, exact: bool = False) -> Optional[Dict[str, Any]]:
    """'Resource' filter for the descriptor. Database and table grants are only located when 'exact' is set and the
    descriptor names them, otherwise they are scoped by type alone.
    """
    kind = descriptor.resource_kind
    if kind == ResourceKind.CATALOG:
        return build_resource(catalog_resource=True)
    if kind == ResourceKind.DATA_LOCATION:
        return build_resource(
            data_location_arn=descriptor.data_location.resource_arn,
            data_location_catalog_id=descriptor.data_location.catalog_id,
        )
    if not exact:
        return None
    if kind == ResourceKind.DATABASE and descriptor.database:
        return build_resource(database=descriptor.database)
    if kind == ResourceKind.TABLE and descriptor.table:
        return build_resource(table_database=descriptor.table.database, table_name=descriptor.table.name)
    if kind == ResourceKind.TABLE_WITH_COLUMNS and descriptor.table and descriptor.table.column_names:
        return build_resource(
            table_database=descriptor.table.database,
            table_name=descriptor.table.name,
            column_names=descriptor.table.column_names,
        )
    return None


@unique
class RetryOutcomeType(str, Enum):
    SUCCESS = "SUCCESS"
    RETRYABLE_FAILURE = "RETRYABLE_FAILURE"
    TERMINAL_FAILURE = "TERMINAL_FAILURE"


class RetryOutcome(CoreData):
    def __init__(self, type: RetryOutcomeType, cause: Optional[Exception] = None) -> None:
        self.type = type
        self.cause = cause

    @classmethod
    def classify(cls, error: Optional[Exception]) -> "RetryOutcome":
        if error is None:
            return cls(RetryOutcomeType.SUCCESS)
        if is_transient_error(error):
            return cls(RetryOutcomeType.RETRYABLE_FAILURE, error)
        return cls(RetryOutcomeType.TERMINAL_FAILURE, error)

    @property
    def is_success(self) -> bool:
        return self.type == RetryOutcomeType.SUCCESS

    @property
    def is_retryable(self) -> bool:
        return self.type == RetryOutcomeType.RETRYABLE_FAILURE


class VerificationConfig(CoreData):
    """Explicit settings for verifiers.

    :param budget: max wall-clock time to keep polling through transient errors
    :param poll_interval_in_secs: fixed delay between two consecutive attempts
    :param max_results: page size of each ListPermissions query (existence only needs one entry)
    """

    def __init__(
        self,
        budget: timedelta = DEFAULT_VERIFICATION_BUDGET,
        poll_interval_in_secs: float = DEFAULT_POLL_INTERVAL_IN_SECS,
        max_results: int = 1,
    ) -> None:
        if budget < timedelta(0):
            raise ValueError(f"Verification budget cannot be negative: {budget!r}")
        if poll_interval_in_secs < 0:
            raise ValueError(f"Poll interval cannot be negative: {poll_interval_in_secs!r}")
        self.budget = budget
        self.poll_interval_in_secs = poll_interval_in_secs
        self.max_results = max_results


class GrantVerificationError(Exception):
    def __init__(self, descriptor: GrantDescriptor, cause: Optional[Exception], message: Optional[str] = None) -> None:
        super().__init__(
            message
            or f"unable to get Lake Formation permissions ({descriptor.principal}, {descriptor.resource_kind.value}): "
            f"{cause if cause is not None else 'grant is not visible'}"
        )
        self.descriptor = descriptor
        self.cause = cause


class GrantStillRegisteredError(GrantVerificationError):
    def __init__(self, descriptor: GrantDescriptor, entries: int) -> None:
        super().__init__(
            descriptor,
            None,
            f"Lake Formation permissions still registered: {descriptor.catalog_id or '<default catalog>'} "
            f"{descriptor.principal} ({entries} entries)",
        )
        self.entries = entries


class VerificationResult(CoreData):
    def __init__(
        self,
        descriptor: GrantDescriptor,
        success: bool,
        attempt_count: int,
        elapsed: timedelta,
        started_at: datetime,
        last_error: Optional[Exception] = None,
    ) -> None:
        self.descriptor = descriptor
        self.success = success
        self.attempt_count = attempt_count
        self.elapsed = elapsed
        self.started_at = started_at
        self.last_error = last_error

    def __bool__(self) -> bool:
        return self.success

    def raise_for_failure(self) -> "VerificationResult":
        if not self.success:
            if isinstance(self.last_error, GrantVerificationError):
                raise self.last_error
            raise GrantVerificationError(self.descriptor, self.last_error) from self.last_error
        return self


class PermissionsVerifier(ABC):
    def __init__(self, lakeformation_client, config: Optional[VerificationConfig] = None) -> None:
        self._lakeformation = lakeformation_client
        self._config = config if config else VerificationConfig()

    @property
    def config(self) -> VerificationConfig:
        return self._config

    @abstractmethod
    def verify(self, descriptor: GrantDescriptor, budget: Optional[timedelta] = None) -> VerificationResult: ...

    def _query(self, query: Dict[str, Any]) -> Tuple[Optional[Dict[str, Any]], Optional[Exception]]:
        """Issues exactly one ListPermissions call and hands back either the response or the error."""
        try:
            return self._lakeformation.list_permissions(**query), None
        except Exception as error:
            return None, error

    def _scope_by_resource(self, descriptor: GrantDescriptor, query: Dict[str, Any], exact: bool = False) -> None:
        query.update({"ResourceType": descriptor.resource_kind.resource_type})
        resource = resource_of(descriptor, exact)
        if resource:
            query.update({"Resource": resource})


class ExistenceVerifier(PermissionsVerifier):
    """Confirms that the grant described by a GrantDescriptor is visible in Lake Formation."""

    def build_query(self, descriptor: GrantDescriptor) -> Dict[str, Any]:
        query: Dict[str, Any] = {"MaxResults": self._config.max_results, "Principal": build_principal(descriptor.principal)}
        self._scope_by_resource(descriptor, query)
        return query

    @overrides
    def verify(self, descriptor: GrantDescriptor, budget: Optional[timedelta] = None) -> VerificationResult:
        budget_in_secs = (budget if budget is not None else self._config.budget).total_seconds()
        query = self.build_query(descriptor)
        started_at = datetime.now(tzlocal())
        start = time.monotonic()

        def _result(success: bool, attempt_count: int, error: Optional[Exception]) -> VerificationResult:
            return VerificationResult(
                descriptor, success, attempt_count, timedelta(seconds=time.monotonic() - start), started_at, error
            )

        attempt_count = 0
        while True:
            attempt_count += 1
            _, error = self._query(query)
            outcome = RetryOutcome.classify(error)
            if outcome.is_success:
                logger.debug(
                    "Grant for %s (%s) is visible after %d attempt(s)",
                    descriptor.principal,
                    descriptor.resource_kind.value,
                    attempt_count,
                )
                return _result(True, attempt_count, None)

            if not outcome.is_retryable:
                logger.error(
                    "Non-retryable error while checking grant for %s (%s): %s",
                    descriptor.principal,
                    descriptor.resource_kind.value,
                    error,
                )
                return _result(False, attempt_count, error)

            elapsed = time.monotonic() - start
            if elapsed >= budget_in_secs:
                break

            logger.info(
                "Grant for %s (%s) not visible yet (attempt %d, error_code=%r), retrying...",
                descriptor.principal,
                descriptor.resource_kind.value,
                attempt_count,
                get_code_for_exception(error),
            )
            time.sleep(min(self._config.poll_interval_in_secs, budget_in_secs - elapsed))

        # budget is exhausted on a transient error, give it one last unconditional try
        logger.warning(
            "Verification budget (%ss) exhausted for %s (%s) on transient error %r, issuing a final query...",
            budget_in_secs,
            descriptor.principal,
            descriptor.resource_kind.value,
            get_code_for_exception(error),
        )
        attempt_count += 1
        _, error = self._query(query)
        if error is not None:
            logger.error(
                "Final query for grant %s (%s) failed: %s",
                descriptor.principal,
                descriptor.resource_kind.value,
                error,
            )
        return _result(error is None, attempt_count, error)

    def check_exists(self, descriptor: GrantDescriptor, budget: Optional[timedelta] = None) -> VerificationResult:
        return self.verify(descriptor, budget).raise_for_failure()


class RevocationVerifier(PermissionsVerifier):
    """Confirms that a principal has no grant left on the resource of a descriptor (e.g after teardown).

    The listing is narrowed down to the exact resource when the descriptor names it, so that other grants of the same
    principal (e.g on the columns of the same table) do not count. A query that Lake Formation rejects because the
    principal or the resource is gone counts as revoked, any other error is a failure.
    """

    def build_query(self, descriptor: GrantDescriptor) -> Dict[str, Any]:
        query: Dict[str, Any] = {"Principal": build_principal(descriptor.principal)}
        if descriptor.catalog_id:
            query.update({"CatalogId": descriptor.catalog_id})
        self._scope_by_resource(descriptor, query, exact=True)
        return query

    @overrides
    def verify(self, descriptor: GrantDescriptor, budget: Optional[timedelta] = None) -> VerificationResult:
        started_at = datetime.now(tzlocal())
        start = time.monotonic()
        query = self.build_query(descriptor)
        response, error = self._query(query)
        elapsed = timedelta(seconds=time.monotonic() - start)
        if error is not None:
            if any(is_aws_error(error, code) for code in REVOKED_ERROR_CODES):
                logger.info(
                    "Permissions of %s cannot be listed anymore (error_code=%r)", descriptor.principal, get_code_for_exception(error)
                )
                return VerificationResult(descriptor, True, 1, elapsed, started_at)
            logger.warning("Could not check revocation of grant for %s: %s", descriptor.principal, error)
            return VerificationResult(descriptor, False, 1, elapsed, started_at, error)

        # the service might still return neighbouring grants of the same type (e.g table vs columns)
        resource = query.get("Resource")
        entries = [
            entry
            for entry in response.get("PrincipalResourcePermissions", [])
            if resource is None or resource_matches(entry.get("Resource", {}), resource)
        ]
        if entries:
            logger.error("Lake Formation permissions still registered for %s: %s", descriptor.principal, entries)
            return VerificationResult(descriptor, False, 1, elapsed, started_at, GrantStillRegisteredError(descriptor, len(entries)))
        return VerificationResult(descriptor, True, 1, elapsed, started_at)

    def check_revoked(self, descriptor: GrantDescriptor) -> VerificationResult:
        return self.verify(descriptor).raise_for_failure()
