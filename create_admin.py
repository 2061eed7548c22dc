#!/usr/bin/env python3
"""
Script to create admin users for the Store Ratings backend
Usage: python create_admin.py [--default]
"""

import sys
import os
import getpass

# Add the backend directory to the Python path
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from pydantic import ValidationError

from core.exceptions import BaseCustomException
from database.connection import SessionLocal, create_tables
from models.user import User, UserRole
from schemas.user import UserCreate
from services.user import create_user_from_schema, ensure_default_admin

def create_admin_user():
    """Create an admin user interactively"""
    print("🔧 Store Ratings Admin User Creation")
    print("=" * 40)

    print("📧 Enter admin details:")
    try:
        admin_data = UserCreate(
            name=input("Name: ").strip(),
            email=input("Email: ").strip(),
            password=getpass.getpass("Password: "),
            address=input("Address (optional): ").strip() or None,
            role=UserRole.ADMIN
        )
    except ValidationError as e:
        for error in e.errors():
            print(f"❌ {'.'.join(str(x) for x in error['loc'])}: {error['msg']}")
        return False

    db = SessionLocal()
    try:
        user = create_user_from_schema(db, admin_data)
    except BaseCustomException as e:
        print(f"❌ Error creating admin user: {e.message}")
        return False
    finally:
        db.close()

    print("✅ Admin user created successfully!")
    print(f"📧 Email: {user.email}")
    print(f"👤 Name: {user.name}")
    print(f"🆔 ID: {user.id}")
    return True

def create_default_admin():
    """Create the configured default admin when none exists"""
    db = SessionLocal()
    try:
        admin = ensure_default_admin(db)
    finally:
        db.close()

    if admin:
        print(f"✅ Default admin created: {admin.email}")
    else:
        print("ℹ️  An admin user already exists; nothing to do.")
    return True

def list_admin_users():
    """List all admin users"""
    print("👥 Current Admin Users")
    print("=" * 40)

    db = SessionLocal()
    try:
        admins = db.query(User).filter(User.role == UserRole.ADMIN).order_by(User.created_at).all()
        if not admins:
            print("No admin users found.")
        for admin in admins:
            print(f"📧 {admin.email}")
            print(f"👤 {admin.name}")
            print(f"📅 Created: {admin.created_at}")
            print("-" * 30)
    finally:
        db.close()
    return True

def main():
    create_tables()

    if "--default" in sys.argv[1:]:
        return create_default_admin()

    print("1. Create Admin User")
    print("2. List Admin Users")
    print("3. Exit")

    while True:
        choice = input("\nSelect option (1-3): ").strip()

        if choice == "1":
            return create_admin_user()
        elif choice == "2":
            return list_admin_users()
        elif choice == "3":
            print("👋 Goodbye!")
            return True
        else:
            print("❌ Invalid choice. Please select 1, 2, or 3.")

if __name__ == "__main__":
    sys.exit(0 if main() else 1)
