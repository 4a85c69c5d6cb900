from decimal import Decimal
from unittest.mock import AsyncMock, patch

from app.core.dependencies import get_current_user
from app.core.security import create_access_token
from app.main import app as fastapi_app
from app.services.image_host_service import ImageHostError, image_host_service

API = "/api/v1"


def _auth(user):
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


def test_health_check(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_create_listing_requires_auth(client):
    response = client.post(f"{API}/listings", json={"title": "Anything"})

    assert response.status_code == 401


def test_create_listing(client, seller, university):
    client.login(seller)

    response = client.post(f"{API}/listings", json={
        "title": "Graphing calculator TI-84",
        "description": "Fresh batteries and a protective cover.",
        "category": "Electronics",
        "condition": "Good",
        "price": 60,
        "tags": ["Calculator", " Math "],
    })

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "active"
    assert data["seller_id"] == str(seller.id)
    assert data["university_id"] == str(university.id)
    assert data["tags"] == ["calculator", "math"]
    assert Decimal(data["price"]) == Decimal("60")
    assert data["created_at"].endswith("Z")


def test_invalid_body_returns_field_errors(client, seller):
    client.login(seller)

    response = client.post(f"{API}/listings", json={
        "title": "Graphing calculator TI-84",
        "description": "Fresh batteries and a protective cover.",
        "category": "Electronics",
        "condition": "Good",
        "price": -3,
    })

    assert response.status_code == 400
    assert any(error["field"] == "price" for error in response.json()["errors"])


def test_update_listing_by_other_user_is_forbidden(client, buyer, listing):
    client.login(buyer)

    response = client.patch(f"{API}/listings/{listing.id}", json={"price": 1})

    assert response.status_code == 403


def test_unknown_listing_is_404(client):
    assert client.get(f"{API}/listings/not-a-real-id").status_code == 404


def test_listing_views_skip_seller(client, db, seller, buyer, listing):
    client.get(f"{API}/listings/{listing.id}")
    client.get(f"{API}/listings/{listing.id}", headers=_auth(buyer))
    seller_view = client.get(f"{API}/listings/{listing.id}", headers=_auth(seller))

    data = seller_view.json()
    assert data["views"] == 2
    assert len(data["view_history"]) == 1
    assert data["view_history"][0]["count"] == 2

    public_view = client.get(f"{API}/listings/{listing.id}", params={"count_view": False})
    assert public_view.json()["view_history"] == []


def test_search_listings(client, make_listing):
    make_listing(title="Mechanical keyboard", category="Electronics", price=Decimal("70.00"))
    make_listing(title="Wireless mouse", category="Electronics", price=Decimal("15.00"))

    response = client.get(f"{API}/listings", params={"category": "Electronics", "sort_by": "price_asc"})

    data = response.json()
    assert data["total"] == 2
    assert [item["title"] for item in data["listings"]] == ["Wireless mouse", "Mechanical keyboard"]


def test_upload_listing_images(client, seller, listing):
    client.login(seller)
    upload = AsyncMock(side_effect=["https://img.test/a.jpg", "https://img.test/b.jpg"])

    with patch.object(image_host_service, "upload_image", upload):
        response = client.post(
            f"{API}/listings/{listing.id}/images",
            files=[
                ("images", ("a.jpg", b"fake-jpeg-a", "image/jpeg")),
                ("images", ("b.jpg", b"fake-jpeg-b", "image/jpeg")),
            ]
        )

    assert response.status_code == 200
    assert [image["url"] for image in response.json()["images"]] == [
        "https://img.test/a.jpg",
        "https://img.test/b.jpg",
    ]
    assert upload.await_count == 2


def test_upload_listing_images_host_failure(client, seller, listing):
    client.login(seller)
    upload = AsyncMock(side_effect=ImageHostError("host down"))

    with patch.object(image_host_service, "upload_image", upload):
        response = client.post(
            f"{API}/listings/{listing.id}/images",
            files=[("images", ("a.jpg", b"fake-jpeg-a", "image/jpeg"))]
        )

    assert response.status_code == 502


def test_upload_listing_images_over_limit_skips_host(client, seller, listing):
    client.login(seller)
    upload = AsyncMock(return_value="https://img.test/a.jpg")

    with patch.object(image_host_service, "upload_image", upload):
        response = client.post(
            f"{API}/listings/{listing.id}/images",
            files=[("images", (f"{i}.jpg", b"fake-jpeg", "image/jpeg")) for i in range(6)]
        )

    assert response.status_code == 400
    upload.assert_not_awaited()


def test_upload_profile_image_replaces_previous(client, db, seller):
    client.login(seller)
    upload = AsyncMock(side_effect=["https://img.test/me-1.jpg", "https://img.test/me-2.jpg"])

    with patch.object(image_host_service, "upload_image", upload):
        first = client.post(
            f"{API}/users/{seller.id}/profile-image",
            files={"image": ("me.png", b"fake-png", "image/png")}
        )
        second = client.post(
            f"{API}/users/{seller.id}/profile-image",
            files={"image": ("me.png", b"fake-png-2", "image/png")}
        )

    assert first.status_code == 200
    assert second.status_code == 200
    assert second.json()["profile_image_url"] == "https://img.test/me-2.jpg"
    assert upload.call_args.kwargs["folder"] == "profiles"

    db.refresh(seller)
    assert seller.profile_image_url == "https://img.test/me-2.jpg"


def test_upload_profile_image_for_other_user_is_forbidden(client, db, seller, buyer):
    client.login(buyer)
    upload = AsyncMock(return_value="https://img.test/x.jpg")

    with patch.object(image_host_service, "upload_image", upload):
        response = client.post(
            f"{API}/users/{seller.id}/profile-image",
            files={"image": ("x.png", b"fake-png", "image/png")}
        )

    assert response.status_code == 403
    upload.assert_not_awaited()
    db.refresh(seller)
    assert seller.profile_image_url is None


def test_upload_profile_image_host_failure(client, seller):
    client.login(seller)
    upload = AsyncMock(side_effect=ImageHostError("host down"))

    with patch.object(image_host_service, "upload_image", upload):
        response = client.post(
            f"{API}/users/{seller.id}/profile-image",
            files={"image": ("me.png", b"fake-png", "image/png")}
        )

    assert response.status_code == 502


def test_mark_sold_to_unknown_buyer_is_not_found(client, seller, listing):
    client.login(seller)

    response = client.post(
        f"{API}/listings/{listing.id}/sold",
        json={"buyer_id": "00000000-0000-0000-0000-000000000000"}
    )

    assert response.status_code == 404
    assert response.json()["detail"] == "Buyer not found"


def test_messaging_flow(client, seller, buyer, listing):
    client.login(buyer)
    with patch("app.api.v1.messages.email_service.send_new_message_email") as send_email:
        sent = client.post(f"{API}/messages", json={
            "recipient_id": str(seller.id),
            "listing_id": str(listing.id),
            "message_text": "Is this still available?",
        })

    assert sent.status_code == 201
    conversation_id = sent.json()["conversation_id"]
    send_email.assert_called_once()
    assert send_email.call_args.kwargs["recipient"] == seller.email

    client.login(seller)
    inbox = client.get(f"{API}/messages/conversations").json()
    assert inbox["total"] == 1
    assert inbox["conversations"][0]["unread_count"] == 1
    assert inbox["conversations"][0]["other_user"]["id"] == str(buyer.id)
    assert client.get(f"{API}/notifications/unread-count").json()["unread_count"] == 1

    thread = client.get(f"{API}/messages/conversations/{conversation_id}").json()
    assert thread["total"] == 1
    assert thread["messages"][0]["message_text"] == "Is this still available?"
    assert client.get(f"{API}/messages/unread-count").json()["unread_count"] == 0

    repeat = client.post(f"{API}/messages/conversations/{conversation_id}/read")
    assert repeat.json()["modified"] == 0


def test_message_to_self_is_rejected(client, seller, listing):
    client.login(seller)

    response = client.post(f"{API}/messages", json={
        "recipient_id": str(seller.id),
        "listing_id": str(listing.id),
        "message_text": "Note to self",
    })

    assert response.status_code == 400


def test_conversation_hidden_from_outsiders(client, make_user, seller, buyer, listing):
    client.login(buyer)
    with patch("app.api.v1.messages.email_service.send_new_message_email"):
        sent = client.post(f"{API}/messages", json={
            "recipient_id": str(seller.id),
            "listing_id": str(listing.id),
            "message_text": "Hello there",
        })

    client.login(make_user("Mallory"))
    response = client.get(f"{API}/messages/conversations/{sent.json()['conversation_id']}")

    assert response.status_code == 403


def test_transaction_flow_with_review(client, seller, buyer, listing):
    client.login(buyer)
    opened = client.post(f"{API}/transactions", json={"listing_id": str(listing.id), "final_price": "35.00"})
    assert opened.status_code == 201
    transaction_id = opened.json()["id"]
    assert opened.json()["seller_id"] == str(seller.id)

    duplicate = client.post(f"{API}/transactions", json={"listing_id": str(listing.id), "final_price": "30.00"})
    assert duplicate.status_code == 409

    client.login(seller)
    assert client.post(f"{API}/transactions/{transaction_id}/confirm").json()["transaction_status"] == "confirmed"

    client.login(buyer)
    meetup = client.post(f"{API}/transactions/{transaction_id}/meetup", json={
        "location": "Library steps",
        "scheduled_time": "2030-01-15T15:00:00Z",
    })
    assert meetup.json()["transaction_status"] == "meetup_scheduled"

    early_review = client.post(f"{API}/transactions/{transaction_id}/review", json={"rating": 5})
    assert early_review.status_code == 409

    client.login(seller)
    completed = client.post(f"{API}/transactions/{transaction_id}/complete")
    assert completed.json()["transaction_status"] == "completed"

    listing_data = client.get(f"{API}/listings/{listing.id}", params={"count_view": False}).json()
    assert listing_data["status"] == "sold"
    assert listing_data["sold_to_id"] == str(buyer.id)

    client.login(buyer)
    review = client.post(f"{API}/transactions/{transaction_id}/review", json={
        "rating": 4,
        "review_text": "Friendly and on time",
        "communication_rating": 5,
    })
    assert review.status_code == 201
    assert review.json()["reviewee_id"] == str(seller.id)

    again = client.post(f"{API}/transactions/{transaction_id}/review", json={"rating": 1})
    assert again.status_code == 409

    reviews = client.get(f"{API}/users/{seller.id}/reviews").json()
    assert reviews["total"] == 1
    assert reviews["reputation_score"] == 4.0
    assert reviews["rating_distribution"]["4"] == 1
    assert reviews["rating_distribution"]["1"] == 0

    profile = client.get(f"{API}/users/{seller.id}").json()
    assert profile["user"]["total_sales"] == 1
    assert profile["user"]["reputation_score"] == 4.0


def test_transaction_visible_to_participants_only(client, make_user, seller, buyer, listing):
    client.login(buyer)
    transaction_id = client.post(
        f"{API}/transactions", json={"listing_id": str(listing.id), "final_price": "35.00"}
    ).json()["id"]

    client.login(make_user("Nosy"))
    assert client.get(f"{API}/transactions/{transaction_id}").status_code == 403

    client.login(seller)
    mine = client.get(f"{API}/transactions", params={"role": "seller"}).json()
    assert mine["total"] == 1


def test_profile_update(client, seller):
    client.login(seller)

    response = client.patch(f"{API}/users/me", json={"bio": "Selling my textbooks", "email": "hacker@evil.com"})

    assert response.status_code == 200
    assert response.json()["bio"] == "Selling my textbooks"
    assert response.json()["email"] == seller.email


def test_user_listings(client, seller, make_listing):
    make_listing()
    make_listing(status="draft")

    response = client.get(f"{API}/users/{seller.id}/listings", params={"status": "draft"})

    assert response.json()["total"] == 1


def test_notifications_endpoints(client, db, seller):
    from app.services.notification_service import NotificationService

    service = NotificationService(db)
    first = service.notify(seller.id, "system_announcement", "Hello", "Welcome aboard")
    service.notify(seller.id, "system_announcement", "Again", "Second notice")

    client.login(seller)
    listing = client.get(f"{API}/notifications").json()
    assert listing["total"] == 2
    assert listing["unread_count"] == 2

    assert client.post(f"{API}/notifications/{first.id}/read").json()["is_read"] is True
    assert client.post(f"{API}/notifications/read-all").json()["modified"] == 1
    assert client.get(f"{API}/notifications/unread-count").json()["unread_count"] == 0


def test_suspended_account_is_forbidden(client, make_user):
    suspended = make_user("Sam", account_status="suspended")
    fastapi_app.dependency_overrides.pop(get_current_user)

    response = client.get(f"{API}/users/me", headers=_auth(suspended))

    assert response.status_code == 403


def test_bearer_token_authenticates(client, seller):
    fastapi_app.dependency_overrides.pop(get_current_user)

    assert client.get(f"{API}/users/me", headers=_auth(seller)).json()["id"] == str(seller.id)
    assert client.get(f"{API}/users/me", headers={"Authorization": "Bearer garbage"}).status_code == 401
