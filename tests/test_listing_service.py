from datetime import timedelta
from decimal import Decimal
import uuid

import pytest

from app.core.exceptions import AuthorizationError, InvalidStateError, NotFoundError, ValidationError
from app.models.listing import Listing, ListingViewDay
from app.services.listing_service import ListingService, correct_expired_status
from app.utils.time_utils import start_of_day, utc_now


def _fields(**overrides):
    fields = {
        "title": "Mini fridge for dorm",
        "description": "Works great, keeps drinks cold.",
        "category": "Appliances",
        "condition": "Good",
        "price": 50,
    }
    fields.update(overrides)
    return fields


def test_create_listing_defaults_to_thirty_day_window(db, seller, university):
    listing = ListingService(db).create_listing(seller.id, university.id, _fields())

    assert listing.status == "active"
    assert listing.views == 0
    window = listing.available_until - listing.available_from
    assert window == timedelta(days=30)

    db.refresh(seller)
    assert seller.total_listings == 1


def test_create_listing_uses_university_duration(db, seller, university):
    university.max_listing_duration_days = 14
    db.commit()

    listing = ListingService(db).create_listing(seller.id, university.id, _fields())

    assert listing.available_until - listing.available_from == timedelta(days=14)


@pytest.mark.parametrize("overrides,field", [
    ({"price": -1}, "price"),
    ({"price": 10001}, "price"),
    ({"title": "abc"}, "title"),
    ({"description": "short"}, "description"),
    ({"category": "Weapons"}, "category"),
    ({"condition": "Broken"}, "condition"),
])
def test_create_listing_rejects_invalid_fields(db, seller, university, overrides, field):
    with pytest.raises(ValidationError) as exc_info:
        ListingService(db).create_listing(seller.id, university.id, _fields(**overrides))

    assert any(error["field"] == field for error in exc_info.value.errors)


def test_create_listing_unknown_seller(db, university):
    with pytest.raises(NotFoundError):
        ListingService(db).create_listing("00000000-0000-0000-0000-000000000000", university.id, _fields())


def test_correct_expired_status_is_pure_and_one_way(make_listing):
    now = utc_now()
    listing = make_listing(available_until=now - timedelta(minutes=1))

    assert correct_expired_status(listing, now) is True
    assert listing.status == "expired"
    # Never flips back on its own
    assert correct_expired_status(listing, now - timedelta(days=10)) is False
    assert listing.status == "expired"


def test_get_listing_applies_and_persists_expiry(db, make_listing):
    listing = make_listing(available_until=utc_now() - timedelta(hours=1))

    loaded = ListingService(db).get_listing(str(listing.id))

    assert loaded.status == "expired"
    db.expire_all()
    assert ListingService(db).get_listing(listing.id).status == "expired"


def test_get_listing_malformed_id_is_not_found(db):
    with pytest.raises(NotFoundError):
        ListingService(db).get_listing("not-a-uuid")


def test_update_cannot_resurrect_expired_listing(db, seller, make_listing):
    listing = make_listing(available_until=utc_now() - timedelta(hours=1))

    updated = ListingService(db).update_listing(listing.id, seller.id, {"status": "active", "price": 35})

    assert updated.status == "expired"
    assert updated.price == Decimal("35.00")


def test_update_reactivates_expired_listing_with_future_window(db, seller, make_listing):
    listing = make_listing(available_until=utc_now() - timedelta(hours=1))

    updated = ListingService(db).update_listing(
        listing.id,
        seller.id,
        {"status": "active", "available_until": utc_now() + timedelta(days=7)}
    )

    assert updated.status == "active"


def test_update_strips_protected_fields(db, seller, buyer, listing):
    original_university = listing.university_id

    updated = ListingService(db).update_listing(listing.id, seller.id, {
        "title": "Algorithms textbook, 3rd edition",
        "views": 999,
        "seller_id": buyer.id,
        "university_id": "00000000-0000-0000-0000-000000000000",
        "sold_to_id": buyer.id,
    })

    assert updated.title == "Algorithms textbook, 3rd edition"
    assert updated.views == 0
    assert updated.seller_id == seller.id
    assert updated.university_id == original_university
    assert updated.sold_to_id is None


def test_update_by_non_seller_is_rejected(db, buyer, listing):
    with pytest.raises(AuthorizationError):
        ListingService(db).update_listing(listing.id, buyer.id, {"price": 1})


def test_update_validates_merged_listing(db, seller, listing):
    with pytest.raises(ValidationError):
        ListingService(db).update_listing(listing.id, seller.id, {"price": -5})

    with pytest.raises(ValidationError):
        ListingService(db).update_listing(
            listing.id, seller.id, {"available_until": listing.available_from - timedelta(days=1)}
        )


def test_update_sold_listing_is_invalid_state(db, seller, buyer, listing):
    service = ListingService(db)
    service.mark_sold(listing.id, buyer.id)

    with pytest.raises(InvalidStateError):
        service.update_listing(listing.id, seller.id, {"price": 10})


def test_update_rejects_disallowed_status_change(db, seller, listing):
    with pytest.raises(InvalidStateError):
        ListingService(db).update_listing(listing.id, seller.id, {"status": "expired"})


def test_mark_sold_twice_is_invalid_state(db, buyer, listing):
    service = ListingService(db)
    sold = service.mark_sold(listing.id, buyer.id)

    assert sold.status == "sold"
    assert sold.sold_to_id == buyer.id
    assert sold.sold_at is not None

    with pytest.raises(InvalidStateError):
        service.mark_sold(listing.id, buyer.id)


def test_mark_sold_unknown_buyer_is_not_found(db, listing):
    with pytest.raises(NotFoundError):
        ListingService(db).mark_sold(listing.id, uuid.uuid4())

    db.refresh(listing)
    assert listing.status == "active"
    assert listing.sold_to_id is None


def test_mark_sold_to_seller_is_rejected(db, seller, listing):
    with pytest.raises(ValidationError) as exc_info:
        ListingService(db).mark_sold(listing.id, seller.id)

    assert exc_info.value.errors[0]["field"] == "buyer_id"
    db.refresh(listing)
    assert listing.status == "active"


def test_delete_is_soft_and_not_repeatable(db, seller, listing):
    service = ListingService(db)
    deleted = service.delete_listing(listing.id, seller.id)

    assert deleted.status == "deleted"
    with pytest.raises(InvalidStateError):
        service.delete_listing(listing.id, seller.id)


def test_add_images_limit(db, seller, listing):
    service = ListingService(db)
    service.add_images(listing.id, seller.id, [f"https://img.test/{i}.jpg" for i in range(3)])

    with pytest.raises(ValidationError):
        service.add_images(listing.id, seller.id, [f"https://img.test/x{i}.jpg" for i in range(3)])

    updated = service.add_images(listing.id, seller.id, ["https://img.test/3.jpg", "https://img.test/4.jpg"])
    assert [image.display_order for image in updated.images] == [0, 1, 2, 3, 4]


def test_seller_views_are_not_counted(db, seller, listing):
    service = ListingService(db)

    assert service.record_view(listing.id, seller.id) is False

    db.refresh(listing)
    assert listing.views == 0
    assert db.query(ListingViewDay).count() == 0


def test_views_increment_counter_and_daily_bucket(db, buyer, listing):
    service = ListingService(db)

    assert service.record_view(listing.id, buyer.id) is True
    assert service.record_view(listing.id, None) is True
    assert service.record_view(listing.id, buyer.id) is True

    db.refresh(listing)
    assert listing.views == 3

    buckets = db.query(ListingViewDay).filter(ListingViewDay.listing_id == listing.id).all()
    assert len(buckets) == 1
    assert buckets[0].count == 3
    assert buckets[0].day == start_of_day(utc_now())


def test_view_history_keeps_most_recent_days(db, buyer, listing):
    today = start_of_day(utc_now())
    for days_ago in range(1, 31):
        db.add(ListingViewDay(listing_id=listing.id, day=today - timedelta(days=days_ago), count=1))
    db.commit()

    ListingService(db).record_view(listing.id, buyer.id)

    days = [
        row.day for row in db.query(ListingViewDay).filter(
            ListingViewDay.listing_id == listing.id
        ).order_by(ListingViewDay.day).all()
    ]
    assert len(days) == 30
    assert days[-1] == today
    assert today - timedelta(days=30) not in days


def test_record_view_unknown_listing(db, buyer):
    assert ListingService(db).record_view("00000000-0000-0000-0000-000000000000", buyer.id) is False


def test_search_filters_and_sorts(db, make_listing):
    make_listing(title="Cheap desk chair", category="Furniture", price=Decimal("15.00"))
    make_listing(title="Standing desk frame", category="Furniture", price=Decimal("120.00"))
    make_listing(title="Biology lab coat", category="Clothing", price=Decimal("20.00"))
    make_listing(title="Old desk, window closed", category="Furniture", price=Decimal("5.00"),
                 available_until=utc_now() - timedelta(days=1))

    listings, total = ListingService(db).search_listings(
        category="Furniture", search="desk", sort_by="price_desc"
    )

    assert total == 2
    assert [listing.title for listing in listings] == ["Standing desk frame", "Cheap desk chair"]


def test_search_expired_includes_uncorrected_rows(db, make_listing):
    stale = make_listing(title="Desk lamp", available_until=utc_now() - timedelta(hours=2))
    make_listing(title="Floor lamp")
    assert stale.status == "active"

    listings, total = ListingService(db).search_listings(status="expired")

    assert total == 1
    assert listings[0].id == stale.id
    assert listings[0].status == "expired"

    db.expire_all()
    assert db.get(Listing, stale.id).status == "expired"


def test_get_user_listings_corrects_expired_rows(db, seller, make_listing):
    make_listing(available_until=utc_now() - timedelta(hours=2))
    make_listing()

    expired, total = ListingService(db).get_user_listings(seller.id, status="expired")

    assert total == 1
    assert expired[0].status == "expired"
