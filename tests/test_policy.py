import pytest
from schemakit.core.errors import ForbiddenError, InvalidInputError
from schemakit.models.column_types import ColumnType
from schemakit.sql.policy import SystemSchemaPolicy


@pytest.fixture
def policy() -> SystemSchemaPolicy:
    return SystemSchemaPolicy()


def test_system_tables_are_recognised_by_prefix(policy: SystemSchemaPolicy) -> None:
    assert policy.is_system_table("_internal")
    assert not policy.is_system_table("internal")
    assert SystemSchemaPolicy(system_prefix="sys_").is_system_table("sys_config")


@pytest.mark.parametrize("action", ["create", "modify", "delete"])
def test_system_tables_are_forbidden_for_every_action(
    policy: SystemSchemaPolicy,
    action: str,
) -> None:
    with pytest.raises(ForbiddenError) as exc:
        policy.ensure_user_table_name("_internal", action)
    assert exc.value.status_code == 403
    assert action in exc.value.message


def test_user_table_name_is_validated_after_prefix_check(policy: SystemSchemaPolicy) -> None:
    assert policy.ensure_user_table_name("products", "create") == "products"
    with pytest.raises(InvalidInputError):
        policy.ensure_user_table_name("bad-name", "create")


def test_reserved_and_frozen_columns_cannot_change(policy: SystemSchemaPolicy) -> None:
    with pytest.raises(ForbiddenError):
        policy.ensure_column_mutable("products", "id", "drop")
    with pytest.raises(ForbiddenError) as exc:
        policy.ensure_column_mutable("users", "nickname", "drop")
    assert "users" in exc.value.message

    policy.ensure_column_mutable("users", "bio", "drop")
    policy.ensure_column_mutable("products", "nickname", "drop")


def test_protected_tables(policy: SystemSchemaPolicy) -> None:
    assert policy.is_protected_table("users")
    assert not policy.is_protected_table("products")


def test_reconcile_reserved_skips_matching_system_columns(policy: SystemSchemaPolicy) -> None:
    kept = policy.reconcile_reserved(
        [
            ("id", ColumnType.UUID),
            ("title", ColumnType.STRING),
            ("created_at", ColumnType.DATETIME),
            ("price", ColumnType.FLOAT),
        ]
    )
    assert kept == [1, 3]


def test_reconcile_reserved_rejects_type_mismatch(policy: SystemSchemaPolicy) -> None:
    with pytest.raises(InvalidInputError) as exc:
        policy.reconcile_reserved([("title", ColumnType.STRING), ("id", ColumnType.INTEGER)])
    assert "'id'" in exc.value.message
    assert exc.value.details["expected_type"] == "uuid"
