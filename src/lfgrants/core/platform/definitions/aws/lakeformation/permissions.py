# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""CRUD-style management of a Lake Formation permissions record (principal x resource x permission sets)."""
import hashlib
import json
import logging
from typing import Any, Dict, List, Optional

from lfgrants.core.grant import PermissionsRecord
from lfgrants.core.platform.definitions.aws.lakeformation.client_wrapper import (
    build_resource,
    grant_permissions,
    list_permissions,
    resource_matches,
    revoke_permissions,
)

logger = logging.getLogger(__name__)


def to_api_resource(record: PermissionsRecord) -> Dict[str, Any]:
    if record.table is not None:
        return build_resource(
            table_database=record.table.database,
            table_name=record.table.name,
            column_names=record.table.column_names,
            catalog_id=record.catalog_id,
        )
    return build_resource(
        catalog_resource=record.catalog_resource,
        data_location_arn=record.data_location.resource_arn if record.data_location else None,
        data_location_catalog_id=record.data_location.catalog_id if record.data_location else None,
        database=record.database,
        catalog_id=record.catalog_id,
    )


def resource_id(record: PermissionsRecord) -> str:
    """Deterministic id of the grant: catalog, principal and resource identify it, permission sets do not."""
    seed = json.dumps([record.catalog_id or "", record.principal, to_api_resource(record)], sort_keys=True)
    return hashlib.sha256(seed.encode("utf-8")).hexdigest()[:16]


class LakeFormationPermissions:
    """Grant, read back and revoke permissions records through the Lake Formation API."""

    def __init__(self, lakeformation_client) -> None:
        self._lakeformation = lakeformation_client

    def create(self, record: PermissionsRecord) -> str:
        grant_permissions(
            self._lakeformation,
            record.principal,
            to_api_resource(record),
            [p.value for p in record.permissions],
            [p.value for p in record.permissions_with_grant_option],
            record.catalog_id,
        )
        return resource_id(record)

    def read(self, record: PermissionsRecord) -> Optional[PermissionsRecord]:
        """Returns what Lake Formation currently has for the principal and the resource of 'record' (permission sets
        in lexical order), None if the grant is gone.
        """
        api_resource = to_api_resource(record)
        permissions: List[str] = []
        grantable: List[str] = []
        for entry in list_permissions(
            self._lakeformation,
            principal=record.principal,
            resource_type=record.resource_kind.resource_type,
            catalog_id=record.catalog_id,
        ):
            if not resource_matches(entry.get("Resource", {}), api_resource):
                continue
            permissions.extend(entry.get("Permissions", []))
            grantable.extend(entry.get("PermissionsWithGrantOption", []))

        if not permissions:
            logger.info("No Lake Formation grant found for %s on %s", record.principal, api_resource)
            return None

        return PermissionsRecord(
            record.principal,
            sorted(permissions),
            sorted(grantable),
            catalog_id=record.catalog_id,
            catalog_resource=record.catalog_resource,
            data_location=record.data_location,
            database=record.database,
            table=record.table,
        )

    def update(self, old_record: PermissionsRecord, new_record: PermissionsRecord) -> str:
        """Permissions records are replaced rather than modified in place"""
        self.delete(old_record)
        return self.create(new_record)

    def delete(self, record: PermissionsRecord) -> bool:
        return revoke_permissions(
            self._lakeformation,
            record.principal,
            to_api_resource(record),
            [p.value for p in record.permissions],
            [p.value for p in record.permissions_with_grant_option],
            record.catalog_id,
        )
