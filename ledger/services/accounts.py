"""Account registry: chart-of-accounts management.

Accounts form a tree per entity. Each account stores its materialized
``path`` (ancestor codes joined by ``settings.account_path_separator``) and
its ``level`` so subtrees can be fetched with a single prefix query.
"""

from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ledger.config import settings
from ledger.logger import get_logger
from ledger.models import (
    LEDGER_STATUSES,
    NORMAL_BALANCE_BY_TYPE,
    Account,
    AccountType,
    JournalEntry,
    Transaction,
)
from ledger.schemas.account import AccountCreate, AccountUpdate
from ledger.services.errors import (
    DuplicateCodeError,
    HasActiveChildrenError,
    NotFoundError,
    ValidationError,
)

logger = get_logger(__name__)

# Fields that may be patched but never set to null
_NON_NULLABLE_FIELDS = frozenset({"code", "name", "type", "report_order", "allow_transactions"})


def _child_path(parent_path: str | None, code: str) -> str:
    if parent_path is None:
        return code
    return f"{parent_path}{settings.account_path_separator}{code}"


async def _code_exists(db: AsyncSession, entity_id: str, code: str) -> bool:
    result = await db.execute(
        select(Account.id).where(Account.entity_id == entity_id).where(Account.code == code)
    )
    return result.first() is not None


async def _get_by_id(db: AsyncSession, entity_id: str, account_id: UUID) -> Account | None:
    result = await db.execute(
        select(Account).where(Account.id == account_id).where(Account.entity_id == entity_id)
    )
    return result.scalar_one_or_none()


async def _has_ledger_entries(db: AsyncSession, account_id: UUID) -> bool:
    """True when a posted (or since reversed) transaction references the account."""
    result = await db.execute(
        select(JournalEntry.id)
        .join(Transaction, JournalEntry.transaction_id == Transaction.id)
        .where(JournalEntry.account_id == account_id)
        .where(Transaction.status.in_(LEDGER_STATUSES))
        .limit(1)
    )
    return result.first() is not None


async def _has_any_entries(db: AsyncSession, account_id: UUID) -> bool:
    result = await db.execute(
        select(JournalEntry.id).where(JournalEntry.account_id == account_id).limit(1)
    )
    return result.first() is not None


async def _count_children(
    db: AsyncSession, entity_id: str, account_id: UUID, *, active_only: bool = False
) -> int:
    query = (
        select(func.count(Account.id))
        .where(Account.entity_id == entity_id)
        .where(Account.parent_id == account_id)
    )
    if active_only:
        query = query.where(Account.is_active.is_(True))
    result = await db.execute(query)
    return result.scalar() or 0


async def create_account(
    db: AsyncSession,
    entity_id: str,
    account_data: AccountCreate,
    created_by: str | None = None,
) -> Account:
    """Create an account, deriving ``normal_balance``, ``level`` and ``path``.

    Raises:
        ValidationError: normal balance contradicts the type, or the parent is
            missing or of a different type
        DuplicateCodeError: the code is already used within the entity
    """
    expected_normal = NORMAL_BALANCE_BY_TYPE[account_data.type]
    if account_data.normal_balance is not None and account_data.normal_balance != expected_normal:
        raise ValidationError(
            f"{account_data.type.value} accounts must have a {expected_normal.value} normal balance",
            field="normal_balance",
        )

    if await _code_exists(db, entity_id, account_data.code):
        logger.warning("Duplicate account code rejected", entity_id=entity_id, code=account_data.code)
        raise DuplicateCodeError(f"Account code {account_data.code} already exists", account_code=account_data.code)

    level = 0
    parent_path: str | None = None
    if account_data.parent_id is not None:
        parent = await _get_by_id(db, entity_id, account_data.parent_id)
        if parent is None:
            raise ValidationError(
                f"Parent account {account_data.parent_id} not found", field="parent_id"
            )
        if parent.type != account_data.type:
            raise ValidationError(
                f"Child account type {account_data.type.value} does not match parent type {parent.type.value}",
                field="type",
            )
        level = parent.level + 1
        parent_path = parent.path

    account = Account(
        entity_id=entity_id,
        code=account_data.code,
        name=account_data.name,
        description=account_data.description,
        type=account_data.type,
        subtype=account_data.subtype,
        category=account_data.category,
        parent_id=account_data.parent_id,
        level=level,
        path=_child_path(parent_path, account_data.code),
        is_system=account_data.is_system,
        allow_transactions=account_data.allow_transactions,
        normal_balance=expected_normal,
        report_category=account_data.report_category,
        report_order=account_data.report_order,
        created_by=created_by,
        updated_by=created_by,
    )
    db.add(account)
    try:
        await db.flush()
    except IntegrityError as exc:
        raise DuplicateCodeError(
            f"Account code {account_data.code} already exists", account_code=account_data.code
        ) from exc
    await db.refresh(account)

    logger.info(
        "Account created",
        entity_id=entity_id,
        account_id=str(account.id),
        code=account.code,
        type=account.type.value,
        path=account.path,
    )
    return account


async def get_account(db: AsyncSession, entity_id: str, key: UUID | str) -> Account:
    """Fetch an account by id or by code."""
    account_id: UUID | None = key if isinstance(key, UUID) else None
    if account_id is None:
        try:
            account_id = UUID(str(key))
        except ValueError:
            account_id = None

    query = select(Account).where(Account.entity_id == entity_id)
    if account_id is not None:
        query = query.where(Account.id == account_id)
    else:
        query = query.where(Account.code == str(key))

    result = await db.execute(query)
    account = result.scalar_one_or_none()
    if not account:
        raise NotFoundError(f"Account {key} not found", key=str(key))
    return account


async def list_accounts(
    db: AsyncSession,
    entity_id: str,
    account_type: AccountType | None = None,
    is_active: bool | None = None,
    search: str | None = None,
    parent_id: UUID | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[Account], int]:
    base_query = select(Account).where(Account.entity_id == entity_id)

    if account_type:
        base_query = base_query.where(Account.type == account_type)
    if is_active is not None:
        base_query = base_query.where(Account.is_active.is_(is_active))
    if parent_id is not None:
        base_query = base_query.where(Account.parent_id == parent_id)
    if search:
        term = search.strip()
        base_query = base_query.where(
            or_(
                func.lower(Account.name).contains(term.lower(), autoescape=True),
                Account.code.startswith(term, autoescape=True),
            )
        )

    count_query = select(func.count()).select_from(base_query.subquery())
    total_result = await db.execute(count_query)
    total = total_result.scalar() or 0

    query = base_query.order_by(Account.code).limit(limit).offset(offset)
    result = await db.execute(query)
    accounts = list(result.scalars().all())

    return accounts, total


async def list_children(db: AsyncSession, entity_id: str, parent_id: UUID) -> list[Account]:
    """Direct children of an account, ordered by code."""
    if await _get_by_id(db, entity_id, parent_id) is None:
        raise NotFoundError(f"Account {parent_id} not found", key=str(parent_id))

    result = await db.execute(
        select(Account)
        .where(Account.entity_id == entity_id)
        .where(Account.parent_id == parent_id)
        .order_by(Account.code)
    )
    return list(result.scalars().all())


async def list_descendants(db: AsyncSession, entity_id: str, account: Account) -> list[Account]:
    """All accounts below ``account`` in the tree, ordered by path."""
    prefix = f"{account.path}{settings.account_path_separator}"
    result = await db.execute(
        select(Account)
        .where(Account.entity_id == entity_id)
        .where(Account.path.startswith(prefix, autoescape=True))
        .order_by(Account.path)
    )
    return list(result.scalars().all())


async def _rename_subtree(db: AsyncSession, entity_id: str, account: Account, new_code: str) -> None:
    if await _code_exists(db, entity_id, new_code):
        raise DuplicateCodeError(f"Account code {new_code} already exists", account_code=new_code)

    descendants = await list_descendants(db, entity_id, account)
    old_path = account.path
    parent_path, sep, _ = old_path.rpartition(settings.account_path_separator)
    new_path = _child_path(parent_path if sep else None, new_code)

    account.code = new_code
    account.path = new_path
    for child in descendants:
        child.path = new_path + child.path[len(old_path) :]


async def update_account(
    db: AsyncSession,
    entity_id: str,
    account_id: UUID,
    account_data: AccountUpdate,
    updated_by: str | None = None,
) -> Account:
    """Apply a partial update.

    ``code`` and ``type`` are frozen for system accounts and for accounts
    referenced by posted transactions. A code change rewrites the path of the
    whole subtree; a type change re-derives the normal balance.
    """
    account = await get_account(db, entity_id, account_id)
    update_data = account_data.model_dump(exclude_unset=True)

    for field, value in update_data.items():
        if value is None and field in _NON_NULLABLE_FIELDS:
            raise ValidationError(f"{field} cannot be null", field=field)

    new_code = update_data.pop("code", None)
    new_type = update_data.pop("type", None)
    changes_code = new_code is not None and new_code != account.code
    changes_type = new_type is not None and new_type != account.type

    if changes_code or changes_type:
        field = "code" if changes_code else "type"
        if account.is_system:
            raise ValidationError(f"Cannot change {field} of a system account", field=field)
        if await _has_ledger_entries(db, account.id):
            raise ValidationError(
                f"Cannot change {field} of an account referenced by posted transactions",
                field=field,
            )

    if changes_type:
        if await _count_children(db, entity_id, account.id):
            raise ValidationError("Cannot change type of an account with children", field="type")
        if account.parent_id is not None:
            parent = await _get_by_id(db, entity_id, account.parent_id)
            if parent is not None and parent.type != new_type:
                raise ValidationError(
                    f"Account type {new_type.value} does not match parent type {parent.type.value}",
                    field="type",
                )
        account.type = new_type
        account.normal_balance = NORMAL_BALANCE_BY_TYPE[new_type]

    if changes_code:
        await _rename_subtree(db, entity_id, account, new_code)

    for field, value in update_data.items():
        setattr(account, field, value)
    account.updated_by = updated_by

    try:
        await db.flush()
    except IntegrityError as exc:
        raise DuplicateCodeError(f"Account code {new_code} already exists", account_code=new_code) from exc
    await db.refresh(account)

    logger.info(
        "Account updated",
        entity_id=entity_id,
        account_id=str(account.id),
        fields=sorted(account_data.model_dump(exclude_unset=True)),
    )
    return account


async def deactivate_account(
    db: AsyncSession, entity_id: str, account_id: UUID, updated_by: str | None = None
) -> Account:
    """Soft-delete an account. Fails while any direct child is still active."""
    account = await get_account(db, entity_id, account_id)
    if account.is_system:
        raise ValidationError("System accounts cannot be deactivated")
    if not account.is_active:
        return account

    active_children = await _count_children(db, entity_id, account.id, active_only=True)
    if active_children:
        logger.warning(
            "Deactivation rejected",
            entity_id=entity_id,
            account_id=str(account.id),
            active_children=active_children,
        )
        raise HasActiveChildrenError(
            f"Account {account.code} has {active_children} active child account(s)",
            active_children=active_children,
        )

    account.is_active = False
    account.updated_by = updated_by
    await db.flush()
    await db.refresh(account)

    logger.info("Account deactivated", entity_id=entity_id, account_id=str(account.id), code=account.code)
    return account


async def delete_account(db: AsyncSession, entity_id: str, account_id: UUID) -> None:
    """Physically remove an unused, non-system leaf account."""
    account = await get_account(db, entity_id, account_id)
    if account.is_system:
        raise ValidationError("System accounts cannot be deleted")
    if await _has_any_entries(db, account.id):
        raise ValidationError("Account has journal entries; deactivate it instead")
    if await _count_children(db, entity_id, account.id):
        raise ValidationError("Account has child accounts; deactivate it instead")

    await db.delete(account)
    await db.flush()
    logger.info("Account deleted", entity_id=entity_id, account_id=str(account_id), code=account.code)


async def get_account_stats(db: AsyncSession, entity_id: str) -> dict:
    by_type_result = await db.execute(
        select(Account.type, func.count(Account.id))
        .where(Account.entity_id == entity_id)
        .group_by(Account.type)
    )
    by_type = {account_type: 0 for account_type in AccountType}
    for account_type, count in by_type_result.all():
        by_type[account_type] = count

    flags_result = await db.execute(
        select(Account.is_active, Account.is_system).where(Account.entity_id == entity_id)
    )
    rows = flags_result.all()

    return {
        "total": len(rows),
        "active": sum(1 for row in rows if row.is_active),
        "inactive": sum(1 for row in rows if not row.is_active),
        "system": sum(1 for row in rows if row.is_system),
        "by_type": by_type,
    }
