# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import pytest
from mock import MagicMock, call

from lfgrants.core.platform.definitions.aws.lakeformation.client_wrapper import (
    build_resource,
    deregister_resource,
    grant_permissions,
    list_permissions,
    put_data_lake_admins,
    register_resource,
    resource_matches,
    revoke_permissions,
)
from lfgrants.mixins.aws.test import AWSTestBase, client_error


class TestClientWrapperForLakeFormation(AWSTestBase):
    principal = "arn:aws:iam::123456789012:role/test"
    bucket_arn = "arn:aws:s3:::lfgrants-test-bucket"

    @pytest.fixture()
    def mock_grant_permissions(self, monkeypatch, lakeformation_client):
        mock_grant_permissions = MagicMock()
        monkeypatch.setattr(lakeformation_client, "grant_permissions", mock_grant_permissions)
        return mock_grant_permissions

    @pytest.fixture()
    def mock_grant_permissions_exception(self, monkeypatch, lakeformation_client):
        mock_grant_permissions = MagicMock(side_effect=client_error("InvalidInputException", "Table not found", "GrantPermissions"))
        monkeypatch.setattr(lakeformation_client, "grant_permissions", mock_grant_permissions)
        return mock_grant_permissions

    def test_build_resource(self):
        assert build_resource(catalog_resource=True) == {"Catalog": {}}
        assert build_resource(data_location_arn=self.bucket_arn) == {"DataLocation": {"ResourceArn": self.bucket_arn}}
        assert build_resource(database="db", catalog_id="123456789012") == {"Database": {"Name": "db", "CatalogId": "123456789012"}}
        assert build_resource(table_database="db", table_name="t") == {"Table": {"DatabaseName": "db", "Name": "t"}}
        assert build_resource(table_database="db", table_name="t", column_names=("event", "timestamp")) == {
            "TableWithColumns": {"DatabaseName": "db", "Name": "t", "ColumnNames": ["event", "timestamp"]}
        }

    def test_build_resource_without_locator(self):
        with pytest.raises(ValueError):
            build_resource(table_database="db")

    def test_resource_matches_same_table(self):
        expected = build_resource(table_database="db", table_name="t", catalog_id="123456789012")
        assert resource_matches({"Table": {"DatabaseName": "db", "Name": "t"}}, expected)
        assert not resource_matches({"Table": {"DatabaseName": "db", "Name": "other"}}, expected)
        assert not resource_matches({"Database": {"Name": "db"}}, expected)

    def test_resource_matches_tells_table_and_columns_apart(self):
        table = build_resource(table_database="db", table_name="t")
        columns = build_resource(table_database="db", table_name="t", column_names=["event", "timestamp"])
        listed_table = {"Table": {"CatalogId": "123456789012", "DatabaseName": "db", "Name": "t"}}
        listed_columns = {"TableWithColumns": {"DatabaseName": "db", "Name": "t", "ColumnNames": ["timestamp", "event"]}}

        assert resource_matches(listed_columns, columns)
        assert not resource_matches(listed_table, columns)
        assert not resource_matches(listed_columns, table)
        assert not resource_matches({"TableWithColumns": {"DatabaseName": "db", "Name": "t", "ColumnNames": ["event"]}}, columns)

    def test_list_permissions_pagination(self, lakeformation_client):
        lakeformation_client.list_permissions = MagicMock(
            side_effect=[
                self.list_permissions_response([{"Permissions": ["ALTER"]}], next_token="token"),
                self.list_permissions_response([{"Permissions": ["DROP"]}]),
            ]
        )

        entries = list(
            list_permissions(lakeformation_client, principal=self.principal, resource_type="DATABASE", catalog_id="123456789012")
        )

        assert entries == [{"Permissions": ["ALTER"]}, {"Permissions": ["DROP"]}]
        expected_args = {
            "MaxResults": 1000,
            "Principal": {"DataLakePrincipalIdentifier": self.principal},
            "ResourceType": "DATABASE",
            "CatalogId": "123456789012",
        }
        assert lakeformation_client.list_permissions.call_args_list == [call(**expected_args), call(NextToken="token", **expected_args)]

    def test_grant_permissions(self, lakeformation_client, mock_grant_permissions):
        grant_permissions(lakeformation_client, self.principal, {"Database": {"Name": "db"}}, ["ALTER", "DROP"], ["CREATE_TABLE"])

        mock_grant_permissions.assert_called_once_with(
            Principal={"DataLakePrincipalIdentifier": self.principal},
            Resource={"Database": {"Name": "db"}},
            Permissions=["ALTER", "DROP"],
            PermissionsWithGrantOption=["CREATE_TABLE"],
        )

    def test_grant_permissions_retries_propagation(self, lakeformation_client, retry_clock):
        lakeformation_client.grant_permissions = MagicMock(
            side_effect=[client_error("InvalidInputException", "Invalid principal", "GrantPermissions"), {}]
        )

        grant_permissions(lakeformation_client, self.principal, {"Catalog": {}}, ["CREATE_DATABASE"], catalog_id="123456789012")

        assert lakeformation_client.grant_permissions.call_count == 2
        assert retry_clock.sleeps == [1]

    def test_grant_permissions_exception(self, lakeformation_client, mock_grant_permissions_exception):
        with pytest.raises(Exception) as error:
            grant_permissions(lakeformation_client, self.principal, {"Table": {"DatabaseName": "db", "Name": "t"}}, ["ALL"])

        assert error.typename == "ClientError"
        assert mock_grant_permissions_exception.call_count == 1

    def test_revoke_permissions(self, lakeformation_client):
        lakeformation_client.revoke_permissions = MagicMock()
        assert revoke_permissions(lakeformation_client, self.principal, {"Catalog": {}}, ["CREATE_DATABASE"])

    @pytest.mark.parametrize(
        "code, message",
        [
            ("EntityNotFoundException", "Database not found"),
            ("InvalidInputException", "Grantee has no permissions and no grantable permissions"),
        ],
    )
    def test_revoke_permissions_nothing_to_revoke(self, lakeformation_client, code, message):
        lakeformation_client.revoke_permissions = MagicMock(side_effect=client_error(code, message, "RevokePermissions"))
        assert not revoke_permissions(lakeformation_client, self.principal, {"Database": {"Name": "db"}}, ["ALTER"])

    def test_revoke_permissions_exception(self, lakeformation_client):
        lakeformation_client.revoke_permissions = MagicMock(side_effect=client_error("AccessDeniedException", "", "RevokePermissions"))
        with pytest.raises(Exception) as error:
            revoke_permissions(lakeformation_client, self.principal, {"Database": {"Name": "db"}}, ["ALTER"])
        assert error.typename == "ClientError"

    def test_register_resource(self, lakeformation_client):
        lakeformation_client.register_resource = MagicMock()

        register_resource(lakeformation_client, self.bucket_arn)
        lakeformation_client.register_resource.assert_called_with(ResourceArn=self.bucket_arn, UseServiceLinkedRole=True)

        role_arn = "arn:aws:iam::123456789012:role/lf"
        register_resource(lakeformation_client, self.bucket_arn, role_arn)
        lakeformation_client.register_resource.assert_called_with(ResourceArn=self.bucket_arn, RoleArn=role_arn)

    def test_register_resource_already_exists(self, lakeformation_client):
        lakeformation_client.register_resource = MagicMock(side_effect=client_error("AlreadyExistsException", "", "RegisterResource"))
        register_resource(lakeformation_client, self.bucket_arn)

    def test_deregister_resource(self, lakeformation_client):
        lakeformation_client.deregister_resource = MagicMock()
        assert deregister_resource(lakeformation_client, self.bucket_arn)

        lakeformation_client.deregister_resource = MagicMock(side_effect=client_error("EntityNotFoundException", "", "DeregisterResource"))
        assert not deregister_resource(lakeformation_client, self.bucket_arn)

    def test_put_data_lake_admins(self, lakeformation_client):
        previous = {
            "DataLakeAdmins": [{"DataLakePrincipalIdentifier": "arn:aws:iam::123456789012:role/admin"}],
            "TrustedResourceOwners": [],
        }
        lakeformation_client.get_data_lake_settings = MagicMock(return_value={"DataLakeSettings": previous})
        lakeformation_client.put_data_lake_settings = MagicMock()

        assert put_data_lake_admins(lakeformation_client, [self.principal]) == previous

        lakeformation_client.put_data_lake_settings.assert_called_once_with(
            DataLakeSettings={"DataLakeAdmins": [{"DataLakePrincipalIdentifier": self.principal}], "TrustedResourceOwners": []}
        )
