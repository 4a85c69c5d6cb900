from datetime import timedelta
import uuid

import pytest

from app.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from app.models.message import Message
from app.models.notification import Notification
from app.services.conversation_service import ConversationService, conversation_id_for
from app.utils.time_utils import utc_now


def test_conversation_id_is_order_independent():
    a, b, listing_id = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()

    assert conversation_id_for(a, b, listing_id) == conversation_id_for(b, a, listing_id)
    assert conversation_id_for(str(a), b, str(listing_id)) == conversation_id_for(a, str(b), listing_id)


def test_conversation_id_depends_on_listing():
    a, b = uuid.uuid4(), uuid.uuid4()

    assert conversation_id_for(a, b, uuid.uuid4()) != conversation_id_for(a, b, uuid.uuid4())


def test_conversation_id_format():
    a = uuid.UUID("22222222-2222-2222-2222-222222222222")
    b = uuid.UUID("11111111-1111-1111-1111-111111111111")
    listing_id = uuid.UUID("33333333-3333-3333-3333-333333333333")

    assert conversation_id_for(a, b, listing_id) == f"{b}_{a}_{listing_id}"


def test_send_message_stores_unread_and_notifies(db, buyer, seller, listing):
    message = ConversationService(db).send_message(buyer.id, seller.id, listing.id, "  Is this still available?  ")

    assert message.is_read is False
    assert message.message_text == "Is this still available?"
    assert message.conversation_id == conversation_id_for(buyer.id, seller.id, listing.id)

    notification = db.query(Notification).filter(Notification.user_id == seller.id).one()
    assert notification.type == "new_message"
    assert notification.action_url == f"/messages/{message.conversation_id}"


def test_both_directions_share_one_conversation(db, buyer, seller, listing):
    service = ConversationService(db)
    first = service.send_message(buyer.id, seller.id, listing.id, "Hi!")
    reply = service.send_message(seller.id, buyer.id, listing.id, "Hello!")

    assert first.conversation_id == reply.conversation_id


def test_send_message_validation(db, buyer, seller, listing):
    service = ConversationService(db)

    with pytest.raises(ValidationError):
        service.send_message(buyer.id, buyer.id, listing.id, "Talking to myself")
    with pytest.raises(ValidationError):
        service.send_message(buyer.id, seller.id, listing.id, "   ")
    with pytest.raises(ValidationError):
        service.send_message(buyer.id, seller.id, listing.id, "x" * 1001)
    with pytest.raises(NotFoundError):
        service.send_message(buyer.id, seller.id, uuid.uuid4(), "Hi")
    with pytest.raises(NotFoundError):
        service.send_message(buyer.id, uuid.uuid4(), listing.id, "Hi")

    assert db.query(Message).count() == 0


def test_notification_failure_does_not_fail_send(db, buyer, seller, listing):
    service = ConversationService(db)
    original_notify = service.notifications.notify

    def failing_notify(**kwargs):
        kwargs["notification_type"] = "not_a_real_type"
        return original_notify(**kwargs)

    service.notifications.notify = failing_notify
    message = service.send_message(buyer.id, seller.id, listing.id, "Still there?")

    assert db.query(Message).filter(Message.id == message.id).count() == 1
    assert db.query(Notification).count() == 0


def test_get_conversations_groups_and_counts_unread(db, make_user, seller, buyer, make_listing):
    other_buyer = make_user("Olga")
    desk = make_listing(title="Standing desk frame")
    lamp = make_listing(title="Desk lamp with bulb")
    service = ConversationService(db)

    service.send_message(buyer.id, seller.id, desk.id, "Is the desk available?")
    service.send_message(buyer.id, seller.id, desk.id, "I can pick it up today")
    service.send_message(other_buyer.id, seller.id, lamp.id, "Would you take $5?")
    latest = service.send_message(seller.id, other_buyer.id, lamp.id, "Sure, $5 works")

    conversations = service.get_conversations(seller.id)

    assert len(conversations) == 2
    assert conversations[0]["conversation_id"] == latest.conversation_id
    assert conversations[0]["last_message"].id == latest.id
    assert conversations[0]["unread_count"] == 1
    assert conversations[0]["other_user"].id == other_buyer.id
    assert conversations[0]["listing"].id == lamp.id
    assert conversations[1]["unread_count"] == 2
    assert conversations[1]["other_user"].id == buyer.id


def _add_messages(db, sender, recipient, listing, count):
    conversation_id = conversation_id_for(sender.id, recipient.id, listing.id)
    start = utc_now() - timedelta(hours=1)
    for i in range(count):
        db.add(Message(
            conversation_id=conversation_id,
            sender_id=sender.id,
            recipient_id=recipient.id,
            listing_id=listing.id,
            message_text=f"message {i}",
            created_at=start + timedelta(seconds=i),
        ))
    db.commit()
    return conversation_id


def test_get_messages_pages_newest_first_in_chronological_order(db, buyer, seller, listing):
    conversation_id = _add_messages(db, buyer, seller, listing, 5)
    service = ConversationService(db)

    page_one, total = service.get_messages(conversation_id, seller.id, page=1, page_size=2)
    page_three, _ = service.get_messages(conversation_id, seller.id, page=3, page_size=2)

    assert total == 5
    assert [m.message_text for m in page_one] == ["message 3", "message 4"]
    assert [m.message_text for m in page_three] == ["message 0"]


def test_get_messages_marks_requester_messages_read(db, buyer, seller, listing):
    conversation_id = _add_messages(db, buyer, seller, listing, 3)
    service = ConversationService(db)

    # The sender reading does not mark anything
    service.get_messages(conversation_id, buyer.id)
    assert service.get_unread_count(seller.id) == 3

    service.get_messages(conversation_id, seller.id)
    assert service.get_unread_count(seller.id) == 0


def test_get_messages_access_control(db, make_user, buyer, seller, listing):
    conversation_id = _add_messages(db, buyer, seller, listing, 1)
    outsider = make_user("Oscar")
    service = ConversationService(db)

    with pytest.raises(AuthorizationError):
        service.get_messages(conversation_id, outsider.id)
    with pytest.raises(NotFoundError):
        service.get_messages("missing_conversation", buyer.id)
    with pytest.raises(ValidationError):
        service.get_messages(conversation_id, buyer.id, page=0)


def test_get_messages_access_uses_id_to_break_timestamp_ties(db, make_user, buyer, seller, listing):
    outsider = make_user("Oscar")
    conversation_id = conversation_id_for(buyer.id, seller.id, listing.id)
    sent_at = utc_now() - timedelta(minutes=5)

    # Same timestamp; the lower id anchors the conversation
    db.add_all([
        Message(
            id=uuid.UUID(int=2), conversation_id=conversation_id, sender_id=outsider.id,
            recipient_id=seller.id, listing_id=listing.id, message_text="Late arrival", created_at=sent_at
        ),
        Message(
            id=uuid.UUID(int=1), conversation_id=conversation_id, sender_id=buyer.id,
            recipient_id=seller.id, listing_id=listing.id, message_text="First!", created_at=sent_at
        ),
    ])
    db.commit()

    service = ConversationService(db)
    messages, total = service.get_messages(conversation_id, buyer.id)
    assert total == 2
    with pytest.raises(AuthorizationError):
        service.get_messages(conversation_id, outsider.id)


def test_mark_conversation_read_is_idempotent(db, buyer, seller, listing):
    conversation_id = _add_messages(db, buyer, seller, listing, 4)
    service = ConversationService(db)

    assert service.mark_conversation_read(conversation_id, seller.id) == 4
    assert service.mark_conversation_read(conversation_id, seller.id) == 0

    messages = db.query(Message).filter(Message.conversation_id == conversation_id).all()
    assert all(m.is_read and m.read_at is not None for m in messages)
