"""Tests for the account registry service."""

from decimal import Decimal
from uuid import uuid4

import pytest

from ledger.models import AccountType, NormalBalance
from ledger.schemas.account import AccountCreate, AccountUpdate
from ledger.services import accounts as account_service
from ledger.services.errors import (
    DuplicateCodeError,
    HasActiveChildrenError,
    NotFoundError,
    ValidationError,
)
from ledger.services.ledger import create_transaction
from tests.factories import AccountFactory, TransactionCreateFactory


async def _create(db, entity_id, code, name=None, account_type=AccountType.ASSET, **kwargs):
    data = AccountCreate(code=code, name=name or f"Account {code}", type=account_type, **kwargs)
    return await account_service.create_account(db, entity_id, data)


@pytest.mark.asyncio
async def test_create_root_account_derives_path_level_and_normal_balance(db, entity_id):
    """Root accounts sit at level 0 with path equal to their code."""
    cash = await _create(db, entity_id, "1000", "Cash")

    assert cash.level == 0
    assert cash.path == "1000"
    assert cash.normal_balance == NormalBalance.DEBIT
    assert cash.current_balance == Decimal("0.00")
    assert cash.is_active is True


@pytest.mark.asyncio
async def test_create_child_account_extends_parent_path(db, entity_id):
    assets = await _create(db, entity_id, "1000", "Assets")
    current = await _create(db, entity_id, "1100", "Current Assets", parent_id=assets.id)
    bank = await _create(db, entity_id, "1110", "Bank", parent_id=current.id)

    assert current.level == 1
    assert current.path == "1000/1100"
    assert bank.level == 2
    assert bank.path == "1000/1100/1110"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("account_type", "expected"),
    [
        (AccountType.ASSET, NormalBalance.DEBIT),
        (AccountType.EXPENSE, NormalBalance.DEBIT),
        (AccountType.LIABILITY, NormalBalance.CREDIT),
        (AccountType.EQUITY, NormalBalance.CREDIT),
        (AccountType.REVENUE, NormalBalance.CREDIT),
    ],
)
async def test_normal_balance_follows_type(db, entity_id, account_type, expected):
    account = await _create(db, entity_id, "5000", account_type=account_type)
    assert account.normal_balance == expected


@pytest.mark.asyncio
async def test_contradicting_normal_balance_rejected(db, entity_id):
    with pytest.raises(ValidationError, match="normal balance"):
        await _create(
            db, entity_id, "4000", "Revenue", AccountType.REVENUE, normal_balance=NormalBalance.DEBIT
        )


@pytest.mark.asyncio
async def test_duplicate_code_rejected(db, entity_id):
    await _create(db, entity_id, "1000", "Cash")
    with pytest.raises(DuplicateCodeError):
        await _create(db, entity_id, "1000", "Other Cash")


@pytest.mark.asyncio
async def test_same_code_allowed_in_other_entity(db, entity_id):
    await _create(db, entity_id, "1000", "Cash")
    other = await _create(db, "another-entity", "1000", "Cash")
    assert other.entity_id == "another-entity"


@pytest.mark.asyncio
async def test_child_type_must_match_parent(db, entity_id):
    assets = await _create(db, entity_id, "1000", "Assets")
    with pytest.raises(ValidationError, match="does not match parent"):
        await _create(db, entity_id, "2000", "Loans", AccountType.LIABILITY, parent_id=assets.id)


@pytest.mark.asyncio
async def test_missing_parent_rejected(db, entity_id):
    with pytest.raises(ValidationError, match="Parent account"):
        await _create(db, entity_id, "1100", "Orphan", parent_id=uuid4())


@pytest.mark.asyncio
async def test_get_account_by_id_and_code(db, entity_id):
    cash = await _create(db, entity_id, "1000", "Cash")

    by_id = await account_service.get_account(db, entity_id, cash.id)
    by_code = await account_service.get_account(db, entity_id, "1000")
    by_str_id = await account_service.get_account(db, entity_id, str(cash.id))

    assert by_id.id == by_code.id == by_str_id.id == cash.id


@pytest.mark.asyncio
async def test_get_account_scoped_to_entity(db, entity_id):
    cash = await _create(db, entity_id, "1000", "Cash")
    with pytest.raises(NotFoundError):
        await account_service.get_account(db, "someone-else", cash.id)
    with pytest.raises(NotFoundError):
        await account_service.get_account(db, entity_id, "9999")


@pytest.mark.asyncio
async def test_list_accounts_filters_and_search(db, entity_id):
    await _create(db, entity_id, "1000", "Petty Cash")
    await _create(db, entity_id, "1010", "Bank Account")
    await _create(db, entity_id, "4000", "Sales Revenue", AccountType.REVENUE)
    inactive = await _create(db, entity_id, "1020", "Old Cash Box")
    await account_service.deactivate_account(db, entity_id, inactive.id)

    items, total = await account_service.list_accounts(db, entity_id, account_type=AccountType.ASSET)
    assert total == 3
    assert [a.code for a in items] == ["1000", "1010", "1020"]

    items, total = await account_service.list_accounts(db, entity_id, search="cash")
    assert {a.code for a in items} == {"1000", "1020"}

    items, total = await account_service.list_accounts(db, entity_id, search="10")
    assert {a.code for a in items} == {"1000", "1010", "1020"}

    items, total = await account_service.list_accounts(db, entity_id, is_active=False)
    assert [a.code for a in items] == ["1020"]


@pytest.mark.asyncio
async def test_list_accounts_pagination_reports_full_total(db, entity_id):
    for n in range(5):
        await _create(db, entity_id, f"60{n}0", account_type=AccountType.EXPENSE)

    items, total = await account_service.list_accounts(db, entity_id, limit=2, offset=2)
    assert total == 5
    assert [a.code for a in items] == ["6020", "6030"]


@pytest.mark.asyncio
async def test_list_children_ordered_by_code(db, entity_id):
    parent = await _create(db, entity_id, "1000", "Assets")
    await _create(db, entity_id, "1200", "Receivables", parent_id=parent.id)
    await _create(db, entity_id, "1100", "Cash", parent_id=parent.id)

    children = await account_service.list_children(db, entity_id, parent.id)
    assert [c.code for c in children] == ["1100", "1200"]

    with pytest.raises(NotFoundError):
        await account_service.list_children(db, entity_id, uuid4())


@pytest.mark.asyncio
async def test_list_descendants_uses_path_prefix(db, entity_id):
    root = await _create(db, entity_id, "1000", "Assets")
    child = await _create(db, entity_id, "1100", "Current", parent_id=root.id)
    await _create(db, entity_id, "1110", "Bank", parent_id=child.id)
    # Shares the textual prefix "1000" but is not in the subtree
    await _create(db, entity_id, "10000", "Unrelated")

    descendants = await account_service.list_descendants(db, entity_id, root)
    assert [d.path for d in descendants] == ["1000/1100", "1000/1100/1110"]


@pytest.mark.asyncio
async def test_update_name_and_metadata(db, entity_id):
    cash = await _create(db, entity_id, "1000", "Cash")
    updated = await account_service.update_account(
        db, entity_id, cash.id, AccountUpdate(name="Cash on Hand", category="Cash")
    )
    assert updated.name == "Cash on Hand"
    assert updated.category == "Cash"


@pytest.mark.asyncio
async def test_code_change_rewrites_subtree_paths(db, entity_id):
    root = await _create(db, entity_id, "1000", "Assets")
    child = await _create(db, entity_id, "1100", "Current", parent_id=root.id)
    grandchild = await _create(db, entity_id, "1110", "Bank", parent_id=child.id)

    await account_service.update_account(db, entity_id, child.id, AccountUpdate(code="1150"))
    await db.refresh(grandchild)

    assert child.path == "1000/1150"
    assert grandchild.path == "1000/1150/1110"


@pytest.mark.asyncio
async def test_code_change_rejected_once_posted(db, entity_id):
    cash = await _create(db, entity_id, "1000", "Cash")
    revenue = await _create(db, entity_id, "4000", "Revenue", AccountType.REVENUE)
    await TransactionCreateFactory.create_posted_async(db, entity_id, cash, revenue)

    with pytest.raises(ValidationError, match="posted transactions"):
        await account_service.update_account(db, entity_id, cash.id, AccountUpdate(code="1001"))
    with pytest.raises(ValidationError, match="posted transactions"):
        await account_service.update_account(
            db, entity_id, cash.id, AccountUpdate(type=AccountType.EXPENSE)
        )

    # Cosmetic changes are still allowed
    updated = await account_service.update_account(db, entity_id, cash.id, AccountUpdate(name="Main Cash"))
    assert updated.name == "Main Cash"


@pytest.mark.asyncio
async def test_system_account_code_and_type_frozen(db, entity_id):
    system = await _create(db, entity_id, "3900", "Opening Balance", AccountType.EQUITY, is_system=True)
    with pytest.raises(ValidationError, match="system account"):
        await account_service.update_account(db, entity_id, system.id, AccountUpdate(code="3901"))


@pytest.mark.asyncio
async def test_type_change_rederives_normal_balance(db, entity_id):
    account = await _create(db, entity_id, "5000", "Misc")
    updated = await account_service.update_account(
        db, entity_id, account.id, AccountUpdate(type=AccountType.LIABILITY)
    )
    assert updated.type == AccountType.LIABILITY
    assert updated.normal_balance == NormalBalance.CREDIT


@pytest.mark.asyncio
async def test_null_for_required_field_rejected(db, entity_id):
    account = await _create(db, entity_id, "5000", "Misc")
    with pytest.raises(ValidationError, match="cannot be null"):
        await account_service.update_account(db, entity_id, account.id, AccountUpdate(name=None))


@pytest.mark.asyncio
async def test_deactivate_with_active_children_fails(db, entity_id):
    parent = await _create(db, entity_id, "1000", "Assets")
    child = await _create(db, entity_id, "1100", "Cash", parent_id=parent.id)

    with pytest.raises(HasActiveChildrenError):
        await account_service.deactivate_account(db, entity_id, parent.id)

    await account_service.deactivate_account(db, entity_id, child.id)
    deactivated = await account_service.deactivate_account(db, entity_id, parent.id)
    assert deactivated.is_active is False


@pytest.mark.asyncio
async def test_system_account_cannot_be_deactivated_or_deleted(db, entity_id):
    system = await AccountFactory.create_async(db, entity_id, code="3900", is_system=True)

    with pytest.raises(ValidationError, match="cannot be deactivated"):
        await account_service.deactivate_account(db, entity_id, system.id)
    with pytest.raises(ValidationError, match="cannot be deleted"):
        await account_service.delete_account(db, entity_id, system.id)


@pytest.mark.asyncio
async def test_delete_unused_account(db, entity_id):
    account = await _create(db, entity_id, "5000", "Temp")
    await account_service.delete_account(db, entity_id, account.id)

    with pytest.raises(NotFoundError):
        await account_service.get_account(db, entity_id, account.id)


@pytest.mark.asyncio
async def test_delete_account_with_entries_rejected(db, entity_id):
    cash = await _create(db, entity_id, "1000", "Cash")
    revenue = await _create(db, entity_id, "4000", "Revenue", AccountType.REVENUE)
    # Even a draft reference blocks physical deletion
    await create_transaction(db, entity_id, TransactionCreateFactory.balanced(cash.id, revenue.id))

    with pytest.raises(ValidationError, match="deactivate it instead"):
        await account_service.delete_account(db, entity_id, cash.id)


@pytest.mark.asyncio
async def test_account_stats(db, entity_id):
    await _create(db, entity_id, "1000", "Cash")
    await _create(db, entity_id, "4000", "Revenue", AccountType.REVENUE)
    old = await _create(db, entity_id, "1010", "Old Bank")
    await account_service.deactivate_account(db, entity_id, old.id)
    await AccountFactory.create_async(db, entity_id, code="3900", type=AccountType.EQUITY, is_system=True)

    stats = await account_service.get_account_stats(db, entity_id)

    assert stats["total"] == 4
    assert stats["active"] == 3
    assert stats["inactive"] == 1
    assert stats["system"] == 1
    assert stats["by_type"][AccountType.ASSET] == 2
    assert stats["by_type"][AccountType.LIABILITY] == 0
