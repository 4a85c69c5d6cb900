"""
Seed script to populate the database with a demo university, users, and listings.

Run with: python seed_marketplace.py

Features:
- Creates a demo university (idempotent, matched by domain)
- Creates demo students (idempotent, matched by email)
- Creates a handful of active listings for the first student
- Prints a bearer token per user for trying the API
"""
import sys
from pathlib import Path

# Add app to path
sys.path.insert(0, str(Path(__file__).parent))

from app.database import SessionLocal, init_db
from app.core.security import create_access_token
from app.models.user import User, University
from app.services.listing_service import ListingService
from app.services.user_service import UserService


DEMO_UNIVERSITY = {
    "name": "State University",
    "domain": "state.edu",
    "city": "College Town",
    "state": "CA",
}

DEMO_USERS = [
    {"email": "alice@state.edu", "first_name": "Alice", "last_name": "Nguyen"},
    {"email": "bob@state.edu", "first_name": "Bob", "last_name": "Martinez"},
]

DEMO_LISTINGS = [
    {
        "title": "Calculus: Early Transcendentals 8th Ed",
        "description": "Lightly highlighted, no torn pages. Used for MATH 101.",
        "category": "Textbooks",
        "condition": "Good",
        "price": 45,
        "original_price": 180,
        "tags": ["math", "calculus"],
        "location_pickup": "Main library entrance",
    },
    {
        "title": "IKEA desk lamp",
        "description": "Works perfectly, bulb included. Moving out sale.",
        "category": "Furniture",
        "condition": "Like New",
        "price": 10,
        "tags": ["lamp", "dorm"],
    },
    {
        "title": "TI-84 Plus graphing calculator",
        "description": "Fresh batteries, comes with cover and USB cable.",
        "category": "Electronics",
        "condition": "Good",
        "price": 60,
        "original_price": 120,
        "is_negotiable": False,
    },
]


def get_or_create_university(db) -> University:
    university = db.query(University).filter(University.domain == DEMO_UNIVERSITY["domain"]).first()
    if university:
        print(f"[OK] Using existing university: {university.name}")
        return university

    university = University(**DEMO_UNIVERSITY)
    db.add(university)
    db.commit()
    db.refresh(university)
    print(f"[CREATED] University: {university.name}")
    return university


def get_or_create_user(db, university: University, data: dict) -> User:
    user = UserService(db).find_by_email(data["email"])
    if user:
        print(f"[OK] Using existing user: {user.email}")
        return user

    user = User(university_id=university.id, email_verified=True, **data)
    db.add(user)
    db.commit()
    db.refresh(user)
    print(f"[CREATED] User: {user.email}")
    return user


def seed():
    print("=" * 60)
    print("Campus Marketplace - Seed Demo Data")
    print("=" * 60)

    init_db()
    db = SessionLocal()

    try:
        university = get_or_create_university(db)
        users = [get_or_create_user(db, university, data) for data in DEMO_USERS]

        seller = users[0]
        service = ListingService(db)
        existing, _ = service.get_user_listings(seller.id)
        existing_titles = {listing.title for listing in existing}

        for data in DEMO_LISTINGS:
            if data["title"] in existing_titles:
                print(f"[SKIP] Listing exists: {data['title']}")
                continue
            listing = service.create_listing(seller.id, university.id, data)
            print(f"[CREATED] Listing: {listing.title} (${listing.price})")

        print()
        print("Bearer tokens:")
        print("-" * 40)
        for user in users:
            print(f"  {user.email}: {create_access_token(user.id)}")
        print("=" * 60)

    finally:
        db.close()


if __name__ == "__main__":
    seed()
