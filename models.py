from sqlalchemy import Column, Integer, String, Float, Date, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from database import Base

class User(Base):
    __tablename__ = "user"

    user_id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, nullable=False, index=True)
    password = Column(String, nullable=False)  # bcrypt hash
    role = Column(String, nullable=False, default="USER")  # "USER" or "ADMIN"
    created = Column(DateTime, nullable=False, server_default=func.now())

    # Relationships
    categories = relationship("Category", back_populates="user")
    expenses = relationship("Expense", back_populates="user")
    incomes = relationship("Income", back_populates="user")
    logs = relationship("ActivityLog", back_populates="user")


class Category(Base):
    __tablename__ = "category"
    __table_args__ = (UniqueConstraint("user_id", "name", name="uq_category_user_name"),)

    category_id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("user.user_id"), nullable=False)
    name = Column(String, nullable=False)
    created = Column(DateTime, nullable=False, server_default=func.now())

    # Relationships
    user = relationship("User", back_populates="categories")
    expenses = relationship("Expense", back_populates="category")


class Expense(Base):
    __tablename__ = "expense"

    expense_id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("user.user_id"), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("category.category_id"), nullable=False)
    amount = Column(Float, nullable=False)
    description = Column(String, nullable=False)
    date_spent = Column(Date, nullable=False)
    receipt_url = Column(String, nullable=True)  # Stored as given, no upload handling
    created = Column(DateTime, nullable=False, server_default=func.now())

    # Relationships
    user = relationship("User", back_populates="expenses")
    category = relationship("Category", back_populates="expenses")


class Income(Base):
    __tablename__ = "income"

    income_id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("user.user_id"), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    source = Column(String, nullable=False, default="Monthly Income")
    date_received = Column(DateTime, nullable=False)
    created = Column(DateTime, nullable=False, server_default=func.now())

    # Relationships
    user = relationship("User", back_populates="incomes")


class ActivityLog(Base):
    __tablename__ = "activity_log"

    log_id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("user.user_id"), nullable=False)
    action = Column(String, nullable=False)  # "Created expense: Lunch - $12.50"
    created = Column(DateTime, nullable=False, server_default=func.now())

    # Relationships
    user = relationship("User", back_populates="logs")
