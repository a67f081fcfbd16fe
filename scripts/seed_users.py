"""
Seed one active user per role and print a bearer token for each.

Usage: python -m scripts.seed_users
"""
from app.database import SessionLocal, init_db
from app.models.user import User, UserRole, UserStatus
from app.services.auth import create_token_for_user

SEED_USERS = [
    ("admin@example.com", "System Admin", UserRole.ADMIN, None),
    ("hr@example.com", "HR Officer", UserRole.HR, "People"),
    ("manager@example.com", "Team Manager", UserRole.MANAGER, "Engineering"),
    ("employee@example.com", "Test Employee", UserRole.EMPLOYEE, "Engineering"),
]


def create_user(db, email, full_name, role, department):
    # Check if user already exists to avoid unique constraint errors
    user = db.query(User).filter(User.email == email).first()
    if user:
        print(f"User {email} already exists. Skipping.")
        return user

    user = User(
        email=email,
        full_name=full_name,
        role=role,
        status=UserStatus.ACTIVE.value,
        department=department,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    print(f"Created {role.value} -> {email}")
    return user


def main():
    init_db()
    db = SessionLocal()
    try:
        for email, full_name, role, department in SEED_USERS:
            user = create_user(db, email, full_name, role, department)
            print(f"  {email}: {create_token_for_user(user)}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
