# ============ IMPORTS ============
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session, joinedload
from typing import List
import logging

import models
import schemas
from database import get_db
from routers.utils import get_current_user

router = APIRouter()
logger = logging.getLogger(__name__)

NULLABLE_EXPENSE_FIELDS = {"receipt_url"}

# ============ HELPER FUNCTIONS ============

def log_activity(db: Session, user_id: int, action: str) -> None:
    """Append an audit line for the user (committed with the caller's transaction)."""
    db.add(models.ActivityLog(user_id=user_id, action=action))


def get_owned_expense(db: Session, expense_id: int, user: models.User) -> models.Expense:
    """
    Load an expense the user may act on.

    Raises:
        HTTPException: 404 if missing, 403 if it belongs to someone else and the user is not an admin
    """
    expense = (
        db.query(models.Expense)
        .options(joinedload(models.Expense.category))
        .filter(models.Expense.expense_id == expense_id)
        .first()
    )
    if not expense:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Expense not found")
    if expense.user_id != user.user_id and user.role != schemas.RoleEnum.admin.value:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unauthorized")
    return expense


def get_owned_category(db: Session, category_id: int, user: models.User) -> models.Category:
    category = db.query(models.Category).filter(
        models.Category.category_id == category_id,
        models.Category.user_id == user.user_id
    ).first()
    if not category:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unknown category")
    return category

# ============ EXPENSE ENDPOINTS ============

@router.get("", response_model=List[schemas.ExpenseResponse])
def list_expenses(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """All expenses of the current user, newest first"""
    return (
        db.query(models.Expense)
        .options(joinedload(models.Expense.category))
        .filter(models.Expense.user_id == current_user.user_id)
        .order_by(models.Expense.date_spent.desc(), models.Expense.expense_id.desc())
        .all()
    )


@router.post("", response_model=schemas.ExpenseResponse, status_code=status.HTTP_201_CREATED)
def create_expense(
    expense: schemas.ExpenseCreate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Record a new expense against one of the user's categories"""
    get_owned_category(db, expense.category_id, current_user)

    db_expense = models.Expense(user_id=current_user.user_id, **expense.model_dump())
    db.add(db_expense)
    log_activity(db, current_user.user_id, f"Created expense: {expense.description} - ${expense.amount:.2f}")
    db.commit()
    db.refresh(db_expense)
    return db_expense


@router.get("/{expense_id}", response_model=schemas.ExpenseResponse)
def get_expense(
    expense_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return get_owned_expense(db, expense_id, current_user)


@router.patch("/{expense_id}", response_model=schemas.ExpenseResponse)
def update_expense(
    expense_id: int,
    expense_update: schemas.ExpenseUpdate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Update only the fields provided in the request body"""
    db_expense = get_owned_expense(db, expense_id, current_user)
    changes = expense_update.model_dump(exclude_unset=True)

    if changes.get("category_id") is not None:
        get_owned_category(db, changes["category_id"], current_user)

    for key, value in changes.items():
        # An explicit null clears nullable columns; required columns keep their value
        if value is not None or key in NULLABLE_EXPENSE_FIELDS:
            setattr(db_expense, key, value)

    log_activity(db, current_user.user_id, f"Updated expense: {db_expense.description} - ${db_expense.amount:.2f}")
    db.commit()
    db.refresh(db_expense)
    return db_expense


@router.delete("/{expense_id}")
def delete_expense(
    expense_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    db_expense = get_owned_expense(db, expense_id, current_user)
    log_activity(db, current_user.user_id, f"Deleted expense: {db_expense.description} - ${db_expense.amount:.2f}")
    db.delete(db_expense)
    db.commit()
    return {"message": "Expense deleted successfully"}
