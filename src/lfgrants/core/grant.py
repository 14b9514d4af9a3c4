# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Grant entities: what a Lake Formation permissions record looks like once it is recorded (flattened attribute map)
and the descriptor that is derived from it to check the grant against the Lake Formation API.
"""
from enum import Enum, unique
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Union

from lfgrants.core.entity import FrozenCoreData

# recorded attribute keys
PRINCIPAL_KEY = "principal"
CATALOG_ID_KEY = "catalog_id"
CATALOG_RESOURCE_KEY = "catalog_resource"
PERMISSIONS_KEY = "permissions"
PERMISSIONS_WITH_GRANT_OPTION_KEY = "permissions_with_grant_option"
DATA_LOCATION_KEY = "data_location"
DATABASE_KEY = "database"
TABLE_KEY = "table"
TABLE_WITH_COLUMNS_KEY = "table_with_columns"
COUNT_SUFFIX = "#"


@unique
class ResourceKind(str, Enum):
    CATALOG = "CATALOG"
    DATA_LOCATION = "DATA_LOCATION"
    DATABASE = "DATABASE"
    TABLE = "TABLE"
    TABLE_WITH_COLUMNS = "TABLE_WITH_COLUMNS"

    @property
    def resource_type(self) -> str:
        """Lake Formation 'DataLakeResourceType' used to scope a ListPermissions query"""
        if self == ResourceKind.TABLE_WITH_COLUMNS:
            return ResourceKind.TABLE.value
        return self.value


@unique
class Permission(str, Enum):
    ALL = "ALL"
    ALTER = "ALTER"
    CREATE_DATABASE = "CREATE_DATABASE"
    CREATE_TABLE = "CREATE_TABLE"
    DATA_LOCATION_ACCESS = "DATA_LOCATION_ACCESS"
    DELETE = "DELETE"
    DESCRIBE = "DESCRIBE"
    DROP = "DROP"
    INSERT = "INSERT"
    SELECT = "SELECT"


def block_key(*parts: Union[str, int]) -> str:
    return ".".join(str(part) for part in parts)


def _count(attributes: Mapping[str, str], *block: Union[str, int]) -> int:
    raw = attributes.get(block_key(*block, COUNT_SUFFIX), "0")
    try:
        return int(raw) if raw else 0
    except ValueError:
        raise ValueError(f"Recorded attribute {block_key(*block, COUNT_SUFFIX)!r} is not a count: {raw!r}")


def _read_list(attributes: Mapping[str, str], *block: Union[str, int]) -> List[str]:
    values: List[str] = []
    for i in range(_count(attributes, *block)):
        value = attributes.get(block_key(*block, i))
        if value is None:
            raise ValueError(
                f"Recorded attribute {block_key(*block, i)!r} is missing, {block_key(*block, COUNT_SUFFIX)!r} is out of range!"
            )
        values.append(value)
    return values


def _read_table(attributes: Mapping[str, str], block: str) -> Optional["TableResource"]:
    """Table locator of a recorded table block, None if the block does not name the table."""
    database = attributes.get(block_key(block, 0, "database"))
    name = attributes.get(block_key(block, 0, "name"))
    if not database or not name:
        return None
    return TableResource(database, name, _read_list(attributes, block, 0, "column_names"))


def _normalize_permissions(permissions: Optional[Iterable[Union[str, Permission]]]) -> Sequence[Permission]:
    """Maps raw values to Permission and drops duplicates while keeping the order of first appearance."""
    normalized: List[Permission] = []
    for permission in permissions or []:
        permission = Permission(permission)
        if permission not in normalized:
            normalized.append(permission)
    return tuple(normalized)


class DataLocation(FrozenCoreData):
    def __init__(self, resource_arn: str, catalog_id: Optional[str] = None) -> None:
        if not resource_arn:
            raise ValueError("DataLocation requires a resource ARN!")
        self.resource_arn = resource_arn
        self.catalog_id = catalog_id if catalog_id else None
        self._freeze()


class TableResource(FrozenCoreData):
    def __init__(self, database: str, name: str, column_names: Optional[Iterable[str]] = None) -> None:
        if not database or not name:
            raise ValueError(f"Table locator requires both database and table names! database={database!r}, name={name!r}")
        self.database = database
        self.name = name
        self.column_names = tuple(column_names) if column_names else None
        self._freeze()


class GrantDescriptor(FrozenCoreData):
    """Logical identity of a grant: who (principal) and what kind of resource, plus the locator fields that the kind
    requires to scope the query.

    Database and table locators are optional. Existence checks never use them (a database or table grant is looked up
    by type), revocation checks narrow down to the exact resource when they are available.
    """

    def __init__(
        self,
        principal: str,
        resource_kind: ResourceKind,
        data_location: Optional[DataLocation] = None,
        catalog_id: Optional[str] = None,
        database: Optional[str] = None,
        table: Optional[TableResource] = None,
    ) -> None:
        if not principal:
            raise ValueError("GrantDescriptor requires a principal!")
        resource_kind = ResourceKind(resource_kind)
        if resource_kind == ResourceKind.DATA_LOCATION and data_location is None:
            raise ValueError(f"GrantDescriptor for principal {principal!r} of kind DATA_LOCATION requires a data location!")
        self.principal = principal
        self.resource_kind = resource_kind
        self.data_location = data_location if resource_kind == ResourceKind.DATA_LOCATION else None
        self.catalog_id = catalog_id if catalog_id else None
        self.database = database if database and resource_kind == ResourceKind.DATABASE else None
        self.table = table if resource_kind in (ResourceKind.TABLE, ResourceKind.TABLE_WITH_COLUMNS) else None
        self._freeze()

    @classmethod
    def from_attributes(cls, attributes: Mapping[str, str]) -> "GrantDescriptor":
        """Build a descriptor from the recorded (flattened) attributes of a permissions record.

        Locator blocks are evaluated in the order they are recorded (catalog, data location, database, table, table
        with columns) and the last one present determines the kind.
        """
        principal = attributes.get(PRINCIPAL_KEY)
        if not principal:
            raise ValueError(f"Recorded attributes do not contain a {PRINCIPAL_KEY!r}!")

        resource_kind: Optional[ResourceKind] = None
        data_location: Optional[DataLocation] = None
        database: Optional[str] = None
        table: Optional[TableResource] = None

        if attributes.get(CATALOG_RESOURCE_KEY) == "true":
            resource_kind = ResourceKind.CATALOG

        if _count(attributes, DATA_LOCATION_KEY) > 0:
            resource_kind = ResourceKind.DATA_LOCATION
            data_location = DataLocation(
                attributes.get(block_key(DATA_LOCATION_KEY, 0, "resource_arn")),
                attributes.get(block_key(DATA_LOCATION_KEY, 0, CATALOG_ID_KEY)),
            )

        if _count(attributes, DATABASE_KEY) > 0:
            resource_kind = ResourceKind.DATABASE
            database = attributes.get(block_key(DATABASE_KEY, 0, "name"))

        if _count(attributes, TABLE_KEY) > 0:
            table = _read_table(attributes, TABLE_KEY)
            if _count(attributes, TABLE_KEY, 0, "column_names") > 0:
                resource_kind = ResourceKind.TABLE_WITH_COLUMNS
            else:
                resource_kind = ResourceKind.TABLE

        if _count(attributes, TABLE_WITH_COLUMNS_KEY) > 0:
            resource_kind = ResourceKind.TABLE_WITH_COLUMNS
            table = _read_table(attributes, TABLE_WITH_COLUMNS_KEY)

        if resource_kind is None:
            raise ValueError(f"Recorded attributes for principal {principal!r} do not contain a resource locator!")

        return cls(principal, resource_kind, data_location, attributes.get(CATALOG_ID_KEY), database, table)


class PermissionsRecord(FrozenCoreData):
    """A Lake Formation permissions record: principal x exactly one resource locator x permission sets."""

    def __init__(
        self,
        principal: str,
        permissions: Iterable[Union[str, Permission]],
        permissions_with_grant_option: Optional[Iterable[Union[str, Permission]]] = None,
        catalog_id: Optional[str] = None,
        catalog_resource: bool = False,
        data_location: Optional[DataLocation] = None,
        database: Optional[str] = None,
        table: Optional[TableResource] = None,
    ) -> None:
        if not principal:
            raise ValueError("PermissionsRecord requires a principal!")
        locators = [bool(catalog_resource), data_location is not None, database is not None, table is not None]
        if locators.count(True) != 1:
            raise ValueError(
                f"PermissionsRecord for principal {principal!r} must define exactly one of "
                f"catalog_resource, data_location, database, table!"
            )
        self.principal = principal
        self.permissions = _normalize_permissions(permissions)
        if not self.permissions:
            raise ValueError(f"PermissionsRecord for principal {principal!r} requires at least one permission!")
        self.permissions_with_grant_option = _normalize_permissions(permissions_with_grant_option)
        self.catalog_id = catalog_id if catalog_id else None
        self.catalog_resource = bool(catalog_resource)
        self.data_location = data_location
        self.database = database
        self.table = table
        self._freeze()

    @property
    def resource_kind(self) -> ResourceKind:
        if self.catalog_resource:
            return ResourceKind.CATALOG
        elif self.data_location is not None:
            return ResourceKind.DATA_LOCATION
        elif self.database is not None:
            return ResourceKind.DATABASE
        elif self.table.column_names:
            return ResourceKind.TABLE_WITH_COLUMNS
        return ResourceKind.TABLE

    def to_attributes(self) -> Dict[str, str]:
        """Flatten the record into its recorded attribute map (lists as '<key>.#' plus '<key>.<index>')"""
        attributes: Dict[str, str] = {
            PRINCIPAL_KEY: self.principal,
            CATALOG_ID_KEY: self.catalog_id or "",
            CATALOG_RESOURCE_KEY: "true" if self.catalog_resource else "false",
        }

        def put_list(values: Sequence[str], *block) -> None:
            attributes[block_key(*block, COUNT_SUFFIX)] = str(len(values))
            for i, value in enumerate(values):
                attributes[block_key(*block, i)] = value

        put_list([p.value for p in self.permissions], PERMISSIONS_KEY)
        put_list([p.value for p in self.permissions_with_grant_option], PERMISSIONS_WITH_GRANT_OPTION_KEY)

        attributes[block_key(DATA_LOCATION_KEY, COUNT_SUFFIX)] = "1" if self.data_location else "0"
        if self.data_location:
            attributes[block_key(DATA_LOCATION_KEY, 0, "resource_arn")] = self.data_location.resource_arn
            attributes[block_key(DATA_LOCATION_KEY, 0, CATALOG_ID_KEY)] = self.data_location.catalog_id or ""

        attributes[block_key(DATABASE_KEY, COUNT_SUFFIX)] = "1" if self.database is not None else "0"
        if self.database is not None:
            attributes[block_key(DATABASE_KEY, 0, "name")] = self.database

        attributes[block_key(TABLE_KEY, COUNT_SUFFIX)] = "1" if self.table else "0"
        if self.table:
            attributes[block_key(TABLE_KEY, 0, "database")] = self.table.database
            attributes[block_key(TABLE_KEY, 0, "name")] = self.table.name
            put_list(list(self.table.column_names or []), TABLE_KEY, 0, "column_names")

        return attributes

    @classmethod
    def from_attributes(cls, attributes: Mapping[str, str]) -> "PermissionsRecord":
        data_location = None
        if _count(attributes, DATA_LOCATION_KEY) > 0:
            data_location = DataLocation(
                attributes.get(block_key(DATA_LOCATION_KEY, 0, "resource_arn")),
                attributes.get(block_key(DATA_LOCATION_KEY, 0, CATALOG_ID_KEY)),
            )
        database = attributes.get(block_key(DATABASE_KEY, 0, "name")) if _count(attributes, DATABASE_KEY) > 0 else None
        table = None
        if _count(attributes, TABLE_KEY) > 0:
            table = _read_table(attributes, TABLE_KEY)
            if table is None:
                raise ValueError(f"Recorded {TABLE_KEY!r} block does not name a database and a table!")
        return cls(
            attributes.get(PRINCIPAL_KEY),
            _read_list(attributes, PERMISSIONS_KEY),
            _read_list(attributes, PERMISSIONS_WITH_GRANT_OPTION_KEY),
            catalog_id=attributes.get(CATALOG_ID_KEY),
            catalog_resource=attributes.get(CATALOG_RESOURCE_KEY) == "true",
            data_location=data_location,
            database=database,
            table=table,
        )

    def to_descriptor(self) -> GrantDescriptor:
        return GrantDescriptor.from_attributes(self.to_attributes())
