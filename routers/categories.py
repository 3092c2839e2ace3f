from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List

import models
import schemas
from database import get_db
from routers.utils import get_current_user

router = APIRouter()


@router.get("", response_model=List[schemas.CategoryResponse])
def list_categories(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List the current user's expense categories"""
    return (
        db.query(models.Category)
        .filter(models.Category.user_id == current_user.user_id)
        .order_by(models.Category.name)
        .all()
    )


@router.post("", response_model=schemas.CategoryResponse, status_code=status.HTTP_201_CREATED)
def create_category(
    category: schemas.CategoryCreate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Create a new expense category; names are unique per user"""
    existing = db.query(models.Category).filter(
        models.Category.user_id == current_user.user_id,
        models.Category.name == category.name
    ).first()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Category already exists"
        )

    db_category = models.Category(user_id=current_user.user_id, name=category.name)
    db.add(db_category)
    db.commit()
    db.refresh(db_category)
    return db_category
