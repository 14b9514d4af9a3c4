# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import logging
from typing import Any, Dict, Iterator, List, Optional, Sequence

from botocore.exceptions import ClientError

from lfgrants.core.platform.definitions.aws.common import exponential_retry, get_code_for_exception, is_aws_error

logger = logging.getLogger(__name__)

# Lake Formation grants and registrations are eventually consistent with IAM and S3, these codes are safe to retry
# for mutating calls.
LAKE_FORMATION_COMMON_RETRYABLE_ERRORS = ["ConcurrentModificationException", "OperationTimeoutException"]

LIST_PERMISSIONS_MAX_RESULTS = 1000

# the principal or the S3 registration might not be visible to Lake Formation yet
GRANT_RETRYABLE_ERRORS = LAKE_FORMATION_COMMON_RETRYABLE_ERRORS + [
    ("InvalidInputException", "Invalid principal"),
    ("InvalidInputException", "register the S3 path"),
]


def build_principal(principal: str) -> Dict[str, str]:
    return {"DataLakePrincipalIdentifier": principal}


def build_resource(
    catalog_resource: bool = False,
    data_location_arn: Optional[str] = None,
    data_location_catalog_id: Optional[str] = None,
    database: Optional[str] = None,
    table_database: Optional[str] = None,
    table_name: Optional[str] = None,
    column_names: Optional[Sequence[str]] = None,
    catalog_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Builds the 'Resource' structure of Lake Formation APIs from exactly one locator.

    Refer
        https://boto3.amazonaws.com/v1/documentation/api/latest/reference/services/lakeformation/client/grant_permissions.html
    """
    if catalog_resource:
        return {"Catalog": {}}

    if data_location_arn:
        data_location = {"ResourceArn": data_location_arn}
        if data_location_catalog_id:
            data_location.update({"CatalogId": data_location_catalog_id})
        return {"DataLocation": data_location}

    if database:
        database_resource = {"Name": database}
        if catalog_id:
            database_resource.update({"CatalogId": catalog_id})
        return {"Database": database_resource}

    if table_database and table_name:
        if column_names:
            table_resource = {"DatabaseName": table_database, "Name": table_name, "ColumnNames": list(column_names)}
            key = "TableWithColumns"
        else:
            table_resource = {"DatabaseName": table_database, "Name": table_name}
            key = "Table"
        if catalog_id:
            table_resource.update({"CatalogId": catalog_id})
        return {key: table_resource}

    raise ValueError("Lake Formation resource requires one of catalog, data location, database or table locators!")


def resource_matches(listed: Dict[str, Any], expected: Dict[str, Any]) -> bool:
    """Compares a 'Resource' returned by ListPermissions against one built by `build_resource`.

    Catalog ids are ignored (listings are already scoped by catalog) and column names are compared as sets.
    """
    for key, expected_value in expected.items():
        listed_value = listed.get(key)
        if listed_value is None:
            return False
        for field, value in expected_value.items():
            if field == "CatalogId":
                continue
            if field == "ColumnNames":
                if set(listed_value.get(field, [])) != set(value):
                    return False
            elif listed_value.get(field) != value:
                return False
    return True


def list_permissions(
    lakeformation_client,
    principal: Optional[str] = None,
    resource_type: Optional[str] = None,
    resource: Optional[Dict[str, Any]] = None,
    catalog_id: Optional[str] = None,
    max_results: int = LIST_PERMISSIONS_MAX_RESULTS,
) -> Iterator[Dict[str, Any]]:
    """Refer
        https://boto3.amazonaws.com/v1/documentation/api/latest/reference/services/lakeformation/client/list_permissions.html

    with implicit pagination support.

    :returns an iterator of 'PrincipalResourcePermissions' entries.
    """
    args: Dict[str, Any] = {"MaxResults": max_results}
    if principal:
        args.update({"Principal": build_principal(principal)})
    if resource_type:
        args.update({"ResourceType": resource_type})
    if resource:
        args.update({"Resource": resource})
    if catalog_id:
        args.update({"CatalogId": catalog_id})

    next_token: str = None
    while True:
        if next_token:
            response = exponential_retry(lakeformation_client.list_permissions, [], NextToken=next_token, **args)
        else:
            response = exponential_retry(lakeformation_client.list_permissions, [], **args)

        yield from response.get("PrincipalResourcePermissions", [])

        next_token = response.get("NextToken", None)
        if not next_token:
            break


def grant_permissions(
    lakeformation_client,
    principal: str,
    resource: Dict[str, Any],
    permissions: List[str],
    permissions_with_grant_option: Optional[List[str]] = None,
    catalog_id: Optional[str] = None,
) -> None:
    """Refer
    https://boto3.amazonaws.com/v1/documentation/api/latest/reference/services/lakeformation/client/grant_permissions.html
    """
    args: Dict[str, Any] = {
        "Principal": build_principal(principal),
        "Resource": resource,
        "Permissions": list(permissions),
    }
    if permissions_with_grant_option:
        args.update({"PermissionsWithGrantOption": list(permissions_with_grant_option)})
    if catalog_id:
        args.update({"CatalogId": catalog_id})

    try:
        exponential_retry(
            lakeformation_client.grant_permissions,
            GRANT_RETRYABLE_ERRORS,
            **args,
        )
        logger.info(
            "Granted %s (grantable: %s) on %s to principal %s", permissions, permissions_with_grant_option or [], resource, principal
        )
    except ClientError:
        logger.exception("Couldn't grant %s on %s to principal %s", permissions, resource, principal)
        raise


def revoke_permissions(
    lakeformation_client,
    principal: str,
    resource: Dict[str, Any],
    permissions: List[str],
    permissions_with_grant_option: Optional[List[str]] = None,
    catalog_id: Optional[str] = None,
) -> bool:
    """Refer
    https://boto3.amazonaws.com/v1/documentation/api/latest/reference/services/lakeformation/client/revoke_permissions.html

    :returns False if there was nothing to revoke (grant or the resource itself is already gone), True otherwise.
    """
    args: Dict[str, Any] = {
        "Principal": build_principal(principal),
        "Resource": resource,
        "Permissions": list(permissions),
    }
    if permissions_with_grant_option:
        args.update({"PermissionsWithGrantOption": list(permissions_with_grant_option)})
    if catalog_id:
        args.update({"CatalogId": catalog_id})

    try:
        exponential_retry(lakeformation_client.revoke_permissions, LAKE_FORMATION_COMMON_RETRYABLE_ERRORS, **args)
        logger.info("Revoked %s on %s from principal %s", permissions, resource, principal)
        return True
    except ClientError as error:
        error_code = get_code_for_exception(error)
        if error_code == "EntityNotFoundException" or is_aws_error(error, "InvalidInputException", "Grantee has no permissions"):
            logger.warning("Nothing to revoke on %s for principal %s (%s)", resource, principal, error_code)
            return False
        logger.exception("Couldn't revoke %s on %s from principal %s", permissions, resource, principal)
        raise


def register_resource(lakeformation_client, resource_arn: str, role_arn: Optional[str] = None) -> None:
    """Registers an S3 location with Lake Formation. Service-linked role is used when 'role_arn' is not provided.

    Refer
    https://boto3.amazonaws.com/v1/documentation/api/latest/reference/services/lakeformation/client/register_resource.html
    """
    args: Dict[str, Any] = {"ResourceArn": resource_arn}
    if role_arn:
        args.update({"RoleArn": role_arn})
    else:
        args.update({"UseServiceLinkedRole": True})

    try:
        exponential_retry(lakeformation_client.register_resource, LAKE_FORMATION_COMMON_RETRYABLE_ERRORS, **args)
        logger.info("Registered resource %s with Lake Formation", resource_arn)
    except ClientError as error:
        if get_code_for_exception(error) == "AlreadyExistsException":
            logger.warning("Resource %s is already registered with Lake Formation", resource_arn)
            return
        logger.exception("Couldn't register resource %s with Lake Formation", resource_arn)
        raise


def deregister_resource(lakeformation_client, resource_arn: str) -> bool:
    try:
        exponential_retry(lakeformation_client.deregister_resource, LAKE_FORMATION_COMMON_RETRYABLE_ERRORS, ResourceArn=resource_arn)
        logger.info("Deregistered resource %s from Lake Formation", resource_arn)
        return True
    except ClientError as error:
        if get_code_for_exception(error) == "EntityNotFoundException":
            return False
        raise


def get_data_lake_settings(lakeformation_client, catalog_id: Optional[str] = None) -> Dict[str, Any]:
    args = {"CatalogId": catalog_id} if catalog_id else {}
    return exponential_retry(lakeformation_client.get_data_lake_settings, [], **args)["DataLakeSettings"]


def put_data_lake_admins(lakeformation_client, admins: List[str], catalog_id: Optional[str] = None) -> Dict[str, Any]:
    """Sets data lake admins while keeping the rest of the settings as is.

    :returns the settings before the update so that callers can restore them.
    """
    previous_settings = get_data_lake_settings(lakeformation_client, catalog_id)
    new_settings = dict(previous_settings)
    new_settings.update({"DataLakeAdmins": [build_principal(admin) for admin in admins]})
    put_data_lake_settings(lakeformation_client, new_settings, catalog_id)
    return previous_settings


def put_data_lake_settings(lakeformation_client, settings: Dict[str, Any], catalog_id: Optional[str] = None) -> None:
    args: Dict[str, Any] = {"DataLakeSettings": settings}
    if catalog_id:
        args.update({"CatalogId": catalog_id})
    try:
        exponential_retry(lakeformation_client.put_data_lake_settings, LAKE_FORMATION_COMMON_RETRYABLE_ERRORS, **args)
        admins = [admin.get("DataLakePrincipalIdentifier") for admin in settings.get("DataLakeAdmins", [])]
        logger.info("Updated data lake settings (admins: %s)", admins)
    except ClientError:
        logger.exception("Couldn't update data lake settings")
        raise
