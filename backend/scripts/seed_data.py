#!/usr/bin/env python3
"""
Database Seeding Script
Creates the membership tiers, the starter categories and an admin account
"""
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy.exc import SQLAlchemyError

from core.config import settings
from core.database import SessionLocal, init_db
from core.security import hash_password
from models.user import User, UserRole
from models.membership import Membership, BillingCycle
from models.video import Category


# ANSI color codes
class Colors:
    GREEN = '\033[92m'
    RED = '\033[91m'
    YELLOW = '\033[93m'
    BLUE = '\033[94m'
    CYAN = '\033[96m'
    RESET = '\033[0m'
    BOLD = '\033[1m'


def print_header():
    print(f"\n{Colors.BOLD}{Colors.CYAN}{'='*60}{Colors.RESET}")
    print(f"{Colors.BOLD}{Colors.CYAN}  {settings.APP_NAME} - Database Seeding{Colors.RESET}")
    print(f"{Colors.BOLD}{Colors.CYAN}{'='*60}{Colors.RESET}\n")


def print_success(message: str):
    print(f"{Colors.GREEN}✓{Colors.RESET} {message}")


def print_info(message: str):
    print(f"{Colors.BLUE}ℹ{Colors.RESET} {message}")


def print_warning(message: str):
    print(f"{Colors.YELLOW}⚠{Colors.RESET} {message}")


def print_error(message: str):
    print(f"{Colors.RED}✗{Colors.RESET} {message}")


MEMBERSHIPS = [
    {
        "name": "Monthly",
        "price": 3499,
        "billing_cycle": BillingCycle.MONTHLY,
        "download_limit": 200,
        "features": ["200 downloads per month", "Full HD quality videos", "Cancel anytime", "Basic support"],
        "is_popular": False,
    },
    {
        "name": "Quarterly",
        "price": 9999,
        "billing_cycle": BillingCycle.QUARTERLY,
        "download_limit": 250,
        "features": ["250 downloads per month", "4K video content", "Priority downloads",
                     "Priority support", "Early access to new content"],
        "is_popular": True,
    },
    {
        "name": "Annual",
        "price": 29999,
        "billing_cycle": BillingCycle.ANNUAL,
        "download_limit": 300,
        "features": ["300 downloads per month", "8K video content (where available)",
                     "Bulk download capability", "24/7 priority support"],
        "is_popular": False,
    },
]

CATEGORIES = [
    ("Visuals", "visuals", "Sparkles"),
    ("Transitions", "transitions", "ArrowsUpFromLine"),
    ("Audio React", "audio-react", "Waves"),
    ("3D Elements", "3d-elements", "Cube"),
    ("Loops", "loops", "Film"),
    ("Effects", "effects", "Zap"),
]


def create_memberships(session):
    print(f"\n{Colors.BOLD}Creating Membership Tiers...{Colors.RESET}")

    for data in MEMBERSHIPS:
        if session.query(Membership).filter_by(name=data["name"]).first():
            print_warning(f"Tier already exists: {data['name']}")
            continue
        session.add(Membership(**data))
        print_success(f"Created tier: {data['name']} (${data['price'] / 100:.2f}, {data['download_limit']} downloads)")

    session.commit()


def create_categories(session):
    print(f"\n{Colors.BOLD}Creating Categories...{Colors.RESET}")

    for name, slug, icon in CATEGORIES:
        if session.query(Category).filter_by(slug=slug).first():
            print_warning(f"Category already exists: {name}")
            continue
        session.add(Category(name=name, slug=slug, icon_name=icon, item_count=0))
        print_success(f"Created category: {name}")

    session.commit()


def create_admin(session, username: str, email: str, password: str):
    print(f"\n{Colors.BOLD}Creating Admin User...{Colors.RESET}")

    if session.query(User).filter((User.username == username) | (User.email == email)).first():
        print_warning(f"User already exists: {username}")
        return

    session.add(User(
        username=username,
        email=email,
        password=hash_password(password),
        role=UserRole.ADMIN,
        downloads_used=0,
    ))
    session.commit()
    print_success(f"Created admin: {username} <{email}>")


def seed_database():
    print_header()
    print_info(f"Database: {settings.DATABASE_URL.split('@')[-1]}")

    init_db()
    session = SessionLocal()
    try:
        create_memberships(session)
        create_categories(session)
        create_admin(
            session,
            os.getenv("SEED_ADMIN_USERNAME", "admin"),
            os.getenv("SEED_ADMIN_EMAIL", "admin@thevideopool.com"),
            os.getenv("SEED_ADMIN_PASSWORD", "adminpass"),
        )
    except SQLAlchemyError as e:
        session.rollback()
        print_error(f"Seeding failed: {str(e)}")
        sys.exit(1)
    finally:
        session.close()

    print(f"\n{Colors.BOLD}{Colors.CYAN}{'='*60}{Colors.RESET}")
    print(f"{Colors.BOLD}{Colors.GREEN}✓ Database seeding completed successfully!{Colors.RESET}\n")
    print(f"{Colors.YELLOW}Change the admin password after the first login.{Colors.RESET}\n")


def main():
    try:
        seed_database()
    except KeyboardInterrupt:
        print(f"\n{Colors.YELLOW}Seeding interrupted by user.{Colors.RESET}\n")
        sys.exit(130)


if __name__ == "__main__":
    main()
