# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import json
import logging
import time
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union

import boto3
from botocore.exceptions import ClientError, WaiterError

module_logger = logging.getLogger(__name__)

AWS_MAX_ROLE_NAME_SIZE = 64

AWS_ROLE_ARN_FORMAT = "arn:{0}:iam::{1}:role/{2}"

# service-linked role that Lake Formation uses to access registered data locations
LAKE_FORMATION_SERVICE_LINKED_ROLE_NAME = "AWSServiceRoleForLakeFormationDataAccess"

IAM_NOT_FOUND_ERROR_CODES = ["NoSuchEntity", "NoSuchEntityException"]


def get_code_for_exception(error):
    if isinstance(error, ClientError) and "Code" in error.response["Error"]:
        return error.response["Error"]["Code"]
    elif isinstance(error, WaiterError) and "Error" in error.last_response:
        return error.last_response["Error"]["Code"]
    elif hasattr(error, "error_code"):
        return error.error_code

    return error.__class__.__name__


def get_message_for_exception(error) -> str:
    if isinstance(error, ClientError):
        return error.response["Error"].get("Message", "")
    return str(error)


def is_aws_error(error: Exception, code: str, message: str = "") -> bool:
    """Checks whether 'error' is an AWS service error with the given code and (if not empty) whose message contains
    the given text. Matching is case-sensitive.
    """
    if not isinstance(error, ClientError):
        return False
    return get_code_for_exception(error) == code and (not message or message in get_message_for_exception(error))


def get_aws_account_id_from_arn(arn: str) -> str:
    return arn.split(":")[4]


def get_aws_partition_from_arn(arn: str) -> str:
    return arn.split(":")[1]


def is_waiter_timeout(error: WaiterError) -> bool:
    return isinstance(error, WaiterError) and "Error" not in error.last_response


# throttling and service-side failures, safe to retry for any call
AWS_COMMON_RETRYABLE_ERRORS = [
    "TooManyRequestsException",
    "Throttling",
    "ThrottlingException",
    "RequestLimitExceeded",
    "InternalFailure",
    "InternalServiceException",
    "ServiceUnavailable",
    "ServiceUnavailableException",
    "ConnectTimeoutError",
    "ReadTimeoutError",
]

MAX_SLEEP_INTERVAL_IN_SECS = 64 + 1


def _is_retryable(error: Exception, error_code: str, retryables: Sequence[Union[str, Tuple[str, str]]]) -> bool:
    for retryable in retryables:
        if isinstance(retryable, tuple):
            if is_aws_error(error, *retryable):
                return True
        elif error_code == retryable:
            return True
    return False


def exponential_retry(func, service_retryable_errors, *func_args, **func_kwargs):
    """
    Retries the specified function with a simple exponential backoff algorithm (1, 2, 4 ... 64 secs).
    :param func: The function to retry.
    :param service_retryable_errors: service specific retryable error codes or (error code, message substring) pairs,
                                    on top of AWS_COMMON_RETRYABLE_ERRORS. Anything else is raised without a retry.
    :return: The return value of the retried function.
    """
    retryables = AWS_COMMON_RETRYABLE_ERRORS + list(service_retryable_errors)
    sleepy_time = 1
    while True:
        try:
            func_return = func(*func_args, **func_kwargs)
            module_logger.debug("Ran %s, got %s.", getattr(func, "__name__", str(func)), func_return)
            return func_return
        except Exception as error:
            error_code = get_code_for_exception(error)
            if not _is_retryable(error, error_code, retryables) or sleepy_time >= MAX_SLEEP_INTERVAL_IN_SECS:
                raise
            module_logger.critical(f"Sleeping for {sleepy_time} to give AWS time to connect resources. Retryable error_code={error_code!r}")
            time.sleep(sleepy_time)
            sleepy_time = sleepy_time * 2


def get_session(profile_name: Optional[str] = None, region: Optional[str] = None) -> boto3.Session:
    """Named profile from the shared credentials if provided, system defaults (~/.aws, env, etc) otherwise."""
    if not profile_name:
        module_logger.warning("Creating boto3.Session with system defaults.")
        return boto3.Session(region_name=region)

    module_logger.warning(f"Creating boto3.Session with profile {profile_name!r}.")
    return boto3.Session(profile_name=profile_name, region_name=region)


def get_caller_identity(session: boto3.Session, region: str) -> str:
    sts = session.client(service_name="sts", region_name=region)
    return exponential_retry(sts.get_caller_identity, ["AccessDenied"])["Arn"]


def get_aws_account_id(session: boto3.Session, region: str) -> str:
    return get_aws_account_id_from_arn(get_caller_identity(session, region))


def get_role_arn(account_id: str, role_name: str, partition: str = "aws") -> str:
    return AWS_ROLE_ARN_FORMAT.format(partition, account_id, role_name)


def get_lake_formation_service_linked_role_arn(account_id: str, partition: str = "aws") -> str:
    return get_role_arn(account_id, f"aws-service-role/lakeformation.amazonaws.com/{LAKE_FORMATION_SERVICE_LINKED_ROLE_NAME}", partition)


def create_role(role_name: str, base_session: boto3.Session, allowed_services: Sequence[str]) -> Dict[str, Any]:
    """Creates a role that the given services (e.g 'glue.amazonaws.com') can assume and waits for it to become visible.

    :return: The newly created role.
    """
    if len(role_name) > AWS_MAX_ROLE_NAME_SIZE:
        raise ValueError(f"Role name {role_name!r} exceeds the max length {AWS_MAX_ROLE_NAME_SIZE}!")

    trust_policy = {
        "Version": "2012-10-17",
        "Statement": [{"Effect": "Allow", "Principal": {"Service": service}, "Action": "sts:AssumeRole"} for service in allowed_services],
    }
    iam = base_session.client("iam")
    try:
        role = exponential_retry(
            iam.create_role,
            ["AccessDenied", "ServiceFailureException"],
            RoleName=role_name,
            AssumeRolePolicyDocument=json.dumps(trust_policy),
        )
        iam.get_waiter("role_exists").wait(RoleName=role_name)
        # visible to IAM does not mean visible to the services that will assume it
        time.sleep(3)
        module_logger.info(f"Created role {role_name} for services {allowed_services}")
    except ClientError:
        module_logger.exception("Couldn't create role %s.", role_name)
        raise
    return role


def put_inlined_policy(role_name: str, policy_name: str, statements: List[Dict[str, Any]], base_session: boto3.Session) -> None:
    iam = base_session.client("iam")
    try:
        exponential_retry(
            iam.put_role_policy,
            ["ServiceFailureException", "AccessDenied"],
            PolicyDocument=json.dumps({"Version": "2012-10-17", "Statement": statements}),
            PolicyName=policy_name,
            RoleName=role_name,
        )
        module_logger.info(f"Put inline policy {policy_name!r} on role {role_name!r}")
    except ClientError:
        module_logger.exception("Couldn't put inline policy %s on role %s.", policy_name, role_name)
        raise


def list_inlined_policies(role_name: str, iam) -> Iterator[str]:
    """Refer
         https://boto3.amazonaws.com/v1/documentation/api/latest/reference/services/iam.html#IAM.Client.list_role_policies

    with implicit pagination support. Yields nothing if the role does not exist.
    """
    args = {"RoleName": role_name}
    try:
        while True:
            response = exponential_retry(iam.list_role_policies, ["ServiceFailureException"], **args)
            yield from response["PolicyNames"]
            if not response.get("IsTruncated", False):
                break
            args.update({"Marker": response["Marker"]})
    except ClientError as error:
        if get_code_for_exception(error) not in IAM_NOT_FOUND_ERROR_CODES:
            raise


def delete_role(role_name: str, base_session: boto3.Session) -> bool:
    """Deletes the inline policies of a role created by `create_role` and then the role itself.

    :returns False if the role did not exist.
    """
    iam = base_session.client("iam")

    for policy_name in list(list_inlined_policies(role_name, iam)):
        exponential_retry(iam.delete_role_policy, ["ServiceFailureException"], RoleName=role_name, PolicyName=policy_name)

    try:
        exponential_retry(iam.delete_role, ["ServiceFailureException", "ConcurrentModificationException"], RoleName=role_name)
        module_logger.info(f"Deleted role {role_name!r}")
        return True
    except ClientError as error:
        if get_code_for_exception(error) not in IAM_NOT_FOUND_ERROR_CODES:
            raise
        return False
