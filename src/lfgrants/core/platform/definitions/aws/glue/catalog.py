# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
import logging
from typing import Any, Dict, Optional, Sequence, Tuple

from botocore.exceptions import ClientError

from lfgrants.core.platform.definitions.aws.common import exponential_retry

logger = logging.getLogger(__name__)


CATALOG_COMMON_RETRYABLE_ERRORS = {"OperationTimeoutException", "InternalServiceException", "ConcurrentModificationException"}


def create_database(glue_client, database_name: str, catalog_id: Optional[str] = None, description: Optional[str] = None) -> None:
    """Refer
    https://boto3.amazonaws.com/v1/documentation/api/latest/reference/services/glue/client/create_database.html
    """
    database_input: Dict[str, Any] = {"Name": database_name}
    if description:
        database_input.update({"Description": description})
    args: Dict[str, Any] = {"DatabaseInput": database_input}
    if catalog_id:
        args.update({"CatalogId": catalog_id})

    try:
        exponential_retry(glue_client.create_database, list(CATALOG_COMMON_RETRYABLE_ERRORS), **args)
        logger.info("Created Glue database %s", database_name)
    except ClientError:
        logger.exception("Couldn't create Glue database %s", database_name)
        raise


def delete_database(glue_client, database_name: str, catalog_id: Optional[str] = None) -> bool:
    args: Dict[str, Any] = {"Name": database_name}
    if catalog_id:
        args.update({"CatalogId": catalog_id})
    try:
        exponential_retry(glue_client.delete_database, list(CATALOG_COMMON_RETRYABLE_ERRORS), **args)
        logger.info("Deleted Glue database %s", database_name)
        return True
    except ClientError as ex:
        if ex.response["Error"]["Code"] == "EntityNotFoundException":
            return False
        logger.exception("Couldn't delete Glue database %s", database_name)
        raise


def create_table(
    glue_client,
    database_name: str,
    table_name: str,
    columns: Optional[Sequence[Tuple[str, str]]] = None,
    location: Optional[str] = None,
    catalog_id: Optional[str] = None,
) -> None:
    """Creates a bare catalog table, with a storage descriptor only if columns or a location is provided.

    :param columns: (name, type) pairs, e.g [("event", "string"), ("timestamp", "date")]
    """
    table_input: Dict[str, Any] = {"Name": table_name}
    if columns or location:
        storage_descriptor: Dict[str, Any] = {}
        if columns:
            storage_descriptor.update({"Columns": [{"Name": name, "Type": type} for name, type in columns]})
        if location:
            storage_descriptor.update({"Location": location})
        table_input.update({"StorageDescriptor": storage_descriptor})
    args: Dict[str, Any] = {"DatabaseName": database_name, "TableInput": table_input}
    if catalog_id:
        args.update({"CatalogId": catalog_id})

    try:
        exponential_retry(glue_client.create_table, list(CATALOG_COMMON_RETRYABLE_ERRORS), **args)
        logger.info("Created Glue table %s.%s", database_name, table_name)
    except ClientError:
        logger.exception("Couldn't create Glue table %s.%s", database_name, table_name)
        raise


def delete_table(glue_client, database_name: str, table_name: str) -> bool:
    try:
        exponential_retry(glue_client.delete_table, list(CATALOG_COMMON_RETRYABLE_ERRORS), DatabaseName=database_name, Name=table_name)
        logger.info("Deleted Glue table %s.%s", database_name, table_name)
        return True
    except ClientError as ex:
        if ex.response["Error"]["Code"] == "EntityNotFoundException":
            return False
        logger.exception("Couldn't delete Glue table %s.%s", database_name, table_name)
        raise
