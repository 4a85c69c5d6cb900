"""
Wipe all marketplace rows and hosted images, keeping the schema.
Run with: python clear_database.py [--yes]
"""
import argparse
import sys
from pathlib import Path

import httpx

sys.path.insert(0, str(Path(__file__).parent))

from app.config import settings
from app.database import SessionLocal
from app.models import (
    University,
    User,
    Listing,
    ListingImage,
    ListingViewDay,
    Message,
    Transaction,
    Review,
    Notification,
)

IMAGE_FOLDERS = ["listings", "profiles"]

# Children before parents
MODELS_IN_DELETE_ORDER = [
    Notification,
    Review,
    Transaction,
    Message,
    ListingViewDay,
    ListingImage,
    Listing,
    User,
    University,
]


def delete_hosted_images() -> None:
    if not settings.IMAGE_HOST_API_KEY:
        print("[SKIP] IMAGE_HOST_API_KEY not set, hosted images left in place")
        return

    with httpx.Client(
        base_url=settings.IMAGE_HOST_BASE_URL.rstrip("/"),
        headers={"X-API-Key": settings.IMAGE_HOST_API_KEY},
        timeout=30.0
    ) as client:
        for folder in IMAGE_FOLDERS:
            try:
                response = client.post("/api/folders/delete", json={"folder_path": folder})
            except httpx.HTTPError as e:
                print(f"[ERROR] {folder}: {e}")
                continue
            if response.status_code == 200:
                print(f"[DELETED] {folder}: {response.json().get('deleted_count', 0)} files")
            else:
                print(f"[WARN] {folder}: HTTP {response.status_code}")


def delete_rows() -> None:
    db = SessionLocal()
    try:
        for model in MODELS_IN_DELETE_ORDER:
            count = db.query(model).delete()
            print(f"[DELETED] {model.__tablename__}: {count} rows")
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Clear all Campus Marketplace data")
    parser.add_argument("--yes", "-y", action="store_true", help="Skip confirmation prompt")
    args = parser.parse_args()

    if not args.yes and input("Type 'DELETE ALL' to confirm: ") != "DELETE ALL":
        print("Cancelled.")
        sys.exit(1)

    delete_hosted_images()
    delete_rows()
