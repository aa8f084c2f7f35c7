# Overview: Service-layer operations for vouchers; allocation, preview and confirmation of voucher numbers.

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Account, Transaction, VoucherSequence
from ..validation import ConflictError, NotFoundError, ValidationError
from possync.time_utils import utcnow
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry

"""
Voucher numbering invariants

- Format: {company_code}-{YYYYMMDD}-{sequence:04d}; the sequence widens past 9999.
- voucher_number is unique per user (database constraint uq_transactions_user_voucher).
- Sequences are monotonically increasing per (user_id, company_code, date_key)
  and come from a VoucherSequence counter row incremented by a single UPDATE.
  The counter is seeded from the highest voucher already stored for the prefix.
- Numbers already taken (client-supplied or confirmed vouchers) are skipped.
"""

COMPANY_CODE_LENGTH = 3


def company_code_for(user_id: str) -> str:
    """First three letters of the user's company name, uppercased."""
    account = db.session.get(Account, user_id)
    name = (account.company_name or "") if account else ""
    letters = "".join(ch for ch in name if ch.isalpha())
    if not letters:
        return current_app.config.get("DEFAULT_COMPANY_CODE", "GUR")
    return letters[:COMPANY_CODE_LENGTH].upper()


def date_key_for(value: datetime) -> str:
    return value.strftime("%Y%m%d")


def format_voucher(company_code: str, date_key: str, sequence: int) -> str:
    return f"{company_code}-{date_key}-{sequence:04d}"


def _parse_sequence(voucher_number: str) -> int | None:
    suffix = voucher_number.rsplit("-", 1)[-1]
    return int(suffix) if suffix.isdigit() else None


def _highest_existing_sequence(user_id: str, prefix: str) -> int:
    rows = (
        db.session.query(Transaction.voucher_number)
        .filter(
            Transaction.user_id == user_id,
            Transaction.voucher_number.startswith(prefix, autoescape=True),
        )
        .all()
    )
    sequences = [_parse_sequence(v) for (v,) in rows if v]
    return max((s for s in sequences if s is not None), default=0)


def is_voucher_taken(user_id: str, voucher_number: str) -> bool:
    return (
        db.session.query(Transaction.id)
        .filter_by(user_id=user_id, voucher_number=voucher_number)
        .first()
        is not None
    )


def _next_sequence(user_id: str, company_code: str, date_key: str) -> int:
    """
    Atomically take the next sequence number for a user/company/day.

    The UPDATE locks the counter row until the surrounding transaction ends,
    so concurrent pushes for the same day are serialized on it.
    """
    stmt = (
        update(VoucherSequence)
        .where(
            VoucherSequence.user_id == user_id,
            VoucherSequence.company_code == company_code,
            VoucherSequence.date_key == date_key,
        )
        .values(next_number=VoucherSequence.next_number + 1)
    )

    def _current() -> int:
        db.session.flush()
        current = (
            db.session.query(VoucherSequence.next_number)
            .filter_by(user_id=user_id, company_code=company_code, date_key=date_key)
            .scalar()
        )
        return current - 1

    result = db.session.execute(stmt)
    if result.rowcount:
        return _current()

    start = _highest_existing_sequence(user_id, f"{company_code}-{date_key}-") + 1
    try:
        with db.session.begin_nested():
            db.session.add(VoucherSequence(
                user_id=user_id,
                company_code=company_code,
                date_key=date_key,
                next_number=start + 1,
            ))
            db.session.flush()
        return start
    except IntegrityError:
        # Another writer created the counter first
        result = db.session.execute(stmt)
        if not result.rowcount:
            raise
        return _current()


def allocate_voucher_number(
    user_id: str,
    *,
    on_date: datetime,
    company_code: str | None = None,
) -> str:
    """
    Allocate the next free voucher number for a new transaction.

    Must run inside the caller's write transaction: the counter increment
    commits or rolls back together with the transaction insert.
    """
    code = company_code or company_code_for(user_id)
    date_key = date_key_for(on_date)

    while True:
        voucher = format_voucher(code, date_key, _next_sequence(user_id, code, date_key))
        if not is_voucher_taken(user_id, voucher):
            return voucher


def _validate_date_key(date_key) -> str:
    date_key = str(date_key).strip()
    try:
        datetime.strptime(date_key, "%Y%m%d")
    except ValueError:
        raise ValidationError("date must be formatted YYYYMMDD")
    return date_key


def _validate_company_code(company_code) -> str:
    code = str(company_code).strip().upper()
    if not code.isalnum() or len(code) > 16:
        raise ValidationError("company_code must be alphanumeric")
    return code


def peek_next_voucher(user_id: str, company_code: str, date_key: str) -> dict:
    """
    Preview the next sequence for a prefix without allocating it.

    Lets a client seed its offline provisional numbering for the day.
    """
    code = _validate_company_code(company_code)
    date_key = _validate_date_key(date_key)
    prefix = f"{code}-{date_key}"

    counter = (
        db.session.query(VoucherSequence.next_number)
        .filter_by(user_id=user_id, company_code=code, date_key=date_key)
        .scalar()
    )
    next_sequence = max(counter or 1, _highest_existing_sequence(user_id, f"{prefix}-") + 1)

    return {
        "company_code": code,
        "date": date_key,
        "prefix": prefix,
        "next_sequence": next_sequence,
    }


def check_voucher_available(user_id: str, company_code: str, date_key: str, sequence) -> str:
    """Return the candidate voucher number, or raise ConflictError if it is in use."""
    code = _validate_company_code(company_code)
    date_key = _validate_date_key(date_key)
    try:
        seq = int(str(sequence).strip())
    except ValueError:
        raise ValidationError("sequence must be an integer")
    if seq < 1:
        raise ValidationError("sequence must be >= 1")

    voucher = format_voucher(code, date_key, seq)
    if is_voucher_taken(user_id, voucher):
        raise ConflictError("Voucher number already exists")
    return voucher


def confirm_voucher(
    *,
    user_id: str,
    transaction_id: str,
    provisional_voucher: str,
    voucher_number: str,
) -> Transaction:
    """
    Upgrade a transaction's provisional voucher to a final voucher number.

    Raises NotFoundError when the transaction does not exist for this user,
    ConflictError when another transaction of the user holds the number.
    """
    voucher_number = str(voucher_number).strip()
    if len(voucher_number) > 64:
        raise ValidationError("voucher_number exceeds max length 64")

    def _op():
        begin_write_transaction()
        tx = lock_for_update(
            db.session.query(Transaction).filter_by(id=str(transaction_id), user_id=user_id)
        ).first()
        if not tx:
            db.session.rollback()
            raise NotFoundError("Transaction not found")

        if tx.voucher_number != voucher_number and is_voucher_taken(user_id, voucher_number):
            db.session.rollback()
            raise ConflictError("Voucher number already exists")

        tx.voucher_number = voucher_number
        tx.provisional_voucher = None
        tx.updated_at = utcnow()

        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError("Voucher number already exists")

        current_app.logger.info(
            "Confirmed voucher %s (provisional %s) for transaction %s",
            voucher_number, provisional_voucher, tx.id,
        )
        return tx

    return run_with_retry(_op, attempts=current_app.config.get("SYNC_RETRY_ATTEMPTS", 3))
