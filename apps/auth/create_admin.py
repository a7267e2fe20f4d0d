from getpass import getpass
from core.database import SessionLocal
from apps.auth.models import UserModel, Role
from apps.auth.services import get_password_hash

ROLES = [
    ("admin", "Administrator"),
    ("super-user", "Super user"),
    ("user", "Dashboard user"),
]


def ensure_roles(db):
    for role_name, description in ROLES:
        role = db.query(Role).filter(Role.name == role_name).first()
        if not role:
            db.add(Role(name=role_name, description=description))
            print(f"Created role: {role_name}")
    db.commit()


def create_admin():
    db = SessionLocal()
    try:
        ensure_roles(db)

        username = input("Admin username: ")
        name = input("Admin name: ")
        dept = input("Department [Administrator]: ") or "Administrator"
        position = input("Position (e.g. Mis Officer): ") or None
        password = getpass("Admin password: ")

        admin_role = db.query(Role).filter(Role.name == "admin").first()
        admin = UserModel(
            username=username,
            name=name,
            dept=dept,
            position=position,
            hashed_password=get_password_hash(password),
            role=admin_role,
        )
        db.add(admin)
        db.commit()
        print("Admin account created with admin role.")
    finally:
        db.close()


if __name__ == "__main__":
    create_admin()
