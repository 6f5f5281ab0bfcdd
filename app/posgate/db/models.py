from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


class Role(Base):
    __tablename__ = "role"

    role_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)

    users = relationship("UserAccount", back_populates="role")


class Module(Base):
    __tablename__ = "module"

    module_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    group_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    sort_index: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    menus = relationship("Menu", back_populates="module")


class Menu(Base):
    __tablename__ = "menu"
    __table_args__ = (Index("ix_menu_module_sort", "module_id", "sort_index"),)

    menu_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    module_id: Mapped[int] = mapped_column(Integer, ForeignKey("module.module_id"), index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    path: Mapped[str] = mapped_column(String(255), nullable=False)
    sort_index: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    visibility: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    module = relationship("Module", back_populates="menus")


class RoleModuleAccess(Base):
    __tablename__ = "module_access"
    __table_args__ = (UniqueConstraint("role_id", "module_id", name="uq_module_access_role_module"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    role_id: Mapped[int] = mapped_column(Integer, ForeignKey("role.role_id"), index=True, nullable=False)
    module_id: Mapped[int] = mapped_column(Integer, ForeignKey("module.module_id"), index=True, nullable=False)


class MenuAccess(Base):
    __tablename__ = "menu_access"
    __table_args__ = (UniqueConstraint("role_id", "menu_id", name="uq_menu_access_role_menu"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    role_id: Mapped[int] = mapped_column(Integer, ForeignKey("role.role_id"), index=True, nullable=False)
    menu_id: Mapped[int] = mapped_column(Integer, ForeignKey("menu.menu_id"), index=True, nullable=False)
    can_create: Mapped[bool] = mapped_column("create", Boolean, default=False, nullable=False)
    can_edit: Mapped[bool] = mapped_column("edit", Boolean, default=False, nullable=False)
    can_delete: Mapped[bool] = mapped_column("delete", Boolean, default=False, nullable=False)
    can_pdf: Mapped[bool] = mapped_column("pdf", Boolean, default=False, nullable=False)
    can_export: Mapped[bool] = mapped_column("export", Boolean, default=False, nullable=False)


class UserAccount(Base):
    __tablename__ = "user_account"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(150), nullable=False, unique=True, index=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    role_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("role.role_id"), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    role = relationship("Role", back_populates="users")


class RevokedToken(Base):
    __tablename__ = "revoked_token"

    jti: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    revoked_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
