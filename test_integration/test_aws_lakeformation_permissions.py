# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from lfgrants.core.grant import DataLocation, Permission, PermissionsRecord, ResourceKind, TableResource
from lfgrants.mixins.aws.integ_test import LakeFormationIntegTestMixin

GLUE_SERVICE = "glue.amazonaws.com"


class TestAWSLakeFormationPermissions(LakeFormationIntegTestMixin):
    def setup_method(self, method):
        super().setup("LFGrants")
        self.provision_data_lake_admin()

    def teardown_method(self, method):
        self.teardown_resources()

    def test_permissions_basic(self):
        role_arn = self.provision_role(self.random_name("lfgrants-role"), [GLUE_SERVICE])

        record = self.grant(PermissionsRecord(role_arn, [Permission.CREATE_DATABASE], catalog_resource=True))

        result = self.assert_exists(record)
        assert result.descriptor.resource_kind == ResourceKind.CATALOG
        assert self.permissions.read(record) == record

    def test_permissions_disappears(self):
        role_arn = self.provision_role(self.random_name("lfgrants-role"), [GLUE_SERVICE])
        record = self.grant(PermissionsRecord(role_arn, [Permission.CREATE_DATABASE], catalog_resource=True))
        self.assert_exists(record)

        # revoked behind the back of the test, teardown has nothing left to do
        assert self.permissions.delete(record)

        self.assert_revoked(record)
        assert self.permissions.read(record) is None

    def test_permissions_data_location(self):
        bucket_arn = self.provision_bucket(self.random_name("lfgrants-bucket"))
        role_arn = self.provision_role(self.random_name("lfgrants-role"), [GLUE_SERVICE], bucket_arn)
        self.register_location(bucket_arn)

        record = self.grant(PermissionsRecord(role_arn, [Permission.DATA_LOCATION_ACCESS], data_location=DataLocation(bucket_arn)))

        result = self.assert_exists(record)
        assert result.descriptor.data_location.resource_arn == bucket_arn
        assert self.permissions.read(record) == record

    def test_permissions_full(self):
        bucket_arn = self.provision_bucket(self.random_name("lfgrants-bucket"))
        role_arn = self.provision_role(self.random_name("lfgrants-role"), [GLUE_SERVICE], bucket_arn)
        database_name = self.random_name("lfgrants_db").replace("-", "_")
        table_name = self.random_name("lfgrants_table").replace("-", "_")
        self.provision_database(database_name)
        self.provision_table(database_name, table_name, [("event", "string"), ("timestamp", "date"), ("value", "double")])
        # registration without an explicit role creates the service-linked role
        self.register_location(bucket_arn)

        # catalog
        catalog_record = self.grant(PermissionsRecord(self.service_linked_role_arn, [Permission.CREATE_DATABASE], catalog_resource=True))
        self.assert_exists(catalog_record)

        # location
        location_record = self.grant(
            PermissionsRecord(role_arn, [Permission.DATA_LOCATION_ACCESS], data_location=DataLocation(bucket_arn))
        )
        self.assert_exists(location_record)

        # database
        database_record = self.grant(
            PermissionsRecord(
                role_arn,
                [Permission.ALTER, Permission.CREATE_TABLE, Permission.DROP],
                [Permission.CREATE_TABLE],
                database=database_name,
            )
        )
        self.assert_exists(database_record)
        assert self.permissions.read(database_record) == database_record

        # table
        table_record = self.grant(PermissionsRecord(role_arn, [Permission.ALL], table=TableResource(database_name, table_name)))
        self.assert_exists(table_record)

        table_record = self.update_grant(
            table_record, PermissionsRecord(role_arn, [Permission.ALL, Permission.SELECT], table=TableResource(database_name, table_name))
        )
        self.assert_exists(table_record)
        assert self.permissions.read(table_record).permissions == (Permission.ALL, Permission.SELECT)

        # table with columns
        columns_record = self.grant(
            PermissionsRecord(role_arn, [Permission.SELECT], table=TableResource(database_name, table_name, ["event", "timestamp"]))
        )
        result = self.assert_exists(columns_record)
        assert result.descriptor.resource_kind == ResourceKind.TABLE_WITH_COLUMNS
        assert self.permissions.read(columns_record).permissions == (Permission.SELECT,)
