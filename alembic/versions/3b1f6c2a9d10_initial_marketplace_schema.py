"""initial_marketplace_schema

Revision ID: 3b1f6c2a9d10
Revises:
Create Date: 2026-10-19 10:12:44.418207

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '3b1f6c2a9d10'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Universities
    op.create_table(
        'universities',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('domain', sa.String(255), nullable=False),
        sa.Column('city', sa.String(100), nullable=False),
        sa.Column('state', sa.String(100), nullable=False),
        sa.Column('country', sa.String(100), nullable=False),
        sa.Column('max_listing_duration_days', sa.Integer(), nullable=False),
        sa.Column('moderation_enabled', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name')
    )
    op.create_index('ix_universities_domain', 'universities', ['domain'], unique=True)

    # Users
    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('email_verified', sa.Boolean(), nullable=False),
        sa.Column('university_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('first_name', sa.String(50), nullable=False),
        sa.Column('last_name', sa.String(50), nullable=False),
        sa.Column('phone_number', sa.String(20), nullable=True),
        sa.Column('profile_image_url', sa.Text(), nullable=True),
        sa.Column('bio', sa.String(500), nullable=True),
        sa.Column('reputation_score', sa.Float(), nullable=False),
        sa.Column('total_listings', sa.Integer(), nullable=False),
        sa.Column('total_sales', sa.Integer(), nullable=False),
        sa.Column('total_purchases', sa.Integer(), nullable=False),
        sa.Column('account_status', sa.String(20), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('last_login', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['university_id'], ['universities.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_university_id', 'users', ['university_id'], unique=False)
    op.create_index('ix_users_account_status', 'users', ['account_status'], unique=False)

    # Listings
    op.create_table(
        'listings',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('seller_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('university_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('category', sa.String(50), nullable=False),
        sa.Column('condition', sa.String(20), nullable=False),
        sa.Column('tags', sa.JSON(), nullable=True),
        sa.Column('location_pickup', sa.String(255), nullable=True),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('original_price', sa.Numeric(10, 2), nullable=True),
        sa.Column('is_negotiable', sa.Boolean(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('available_from', sa.DateTime(), nullable=False),
        sa.Column('available_until', sa.DateTime(), nullable=False),
        sa.Column('sold_at', sa.DateTime(), nullable=True),
        sa.Column('sold_to_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('expiry_notified_at', sa.DateTime(), nullable=True),
        sa.Column('views', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['seller_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['university_id'], ['universities.id']),
        sa.ForeignKeyConstraint(['sold_to_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_listings_seller_id', 'listings', ['seller_id'], unique=False)
    op.create_index('ix_listings_university_id', 'listings', ['university_id'], unique=False)
    op.create_index('ix_listings_category', 'listings', ['category'], unique=False)
    op.create_index('ix_listings_status', 'listings', ['status'], unique=False)
    op.create_index('ix_listings_created_at', 'listings', ['created_at'], unique=False)
    op.create_index(
        'idx_listings_university_status_created', 'listings', ['university_id', 'status', 'created_at'], unique=False
    )
    op.create_index('idx_listings_seller_status', 'listings', ['seller_id', 'status'], unique=False)
    op.create_index('idx_listings_category_status_price', 'listings', ['category', 'status', 'price'], unique=False)

    op.create_table(
        'listing_images',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('listing_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('url', sa.Text(), nullable=False),
        sa.Column('thumbnail_url', sa.Text(), nullable=True),
        sa.Column('display_order', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['listing_id'], ['listings.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_listing_images_listing_id', 'listing_images', ['listing_id'], unique=False)

    op.create_table(
        'listing_view_days',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('listing_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('day', sa.DateTime(), nullable=False),
        sa.Column('count', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['listing_id'], ['listings.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('listing_id', 'day', name='uq_listing_view_day')
    )
    op.create_index('idx_listing_view_days_listing', 'listing_view_days', ['listing_id', 'day'], unique=False)

    # Messages
    op.create_table(
        'messages',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('conversation_id', sa.String(120), nullable=False),
        sa.Column('sender_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('recipient_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('listing_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('message_text', sa.Text(), nullable=False),
        sa.Column('attachments', sa.JSON(), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False),
        sa.Column('read_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['sender_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['recipient_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['listing_id'], ['listings.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_messages_conversation_id', 'messages', ['conversation_id'], unique=False)
    op.create_index('idx_messages_conversation_created', 'messages', ['conversation_id', 'created_at'], unique=False)
    op.create_index('idx_messages_recipient_read', 'messages', ['recipient_id', 'is_read'], unique=False)
    op.create_index('idx_messages_sender_created', 'messages', ['sender_id', 'created_at'], unique=False)

    # Transactions
    op.create_table(
        'transactions',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('listing_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('buyer_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('seller_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('final_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('transaction_status', sa.String(30), nullable=False),
        sa.Column('payment_method', sa.String(20), nullable=False),
        sa.Column('meeting_location', sa.String(255), nullable=True),
        sa.Column('meeting_time', sa.DateTime(), nullable=True),
        sa.Column('meeting_notes', sa.Text(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('disputed_at', sa.DateTime(), nullable=True),
        sa.Column('dispute_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['listing_id'], ['listings.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['buyer_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['seller_id'], ['users.id'], ondelete='CASCADE'),
        sa.CheckConstraint('buyer_id <> seller_id', name='ck_transaction_distinct_parties'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_transactions_listing_id', 'transactions', ['listing_id'], unique=False)
    op.create_index('ix_transactions_created_at', 'transactions', ['created_at'], unique=False)
    op.create_index('idx_transactions_buyer_status', 'transactions', ['buyer_id', 'transaction_status'], unique=False)
    op.create_index('idx_transactions_seller_status', 'transactions', ['seller_id', 'transaction_status'], unique=False)
    # At most one non-cancelled transaction per listing
    op.create_index(
        'uq_transactions_listing_open',
        'transactions',
        ['listing_id'],
        unique=True,
        postgresql_where=sa.text("transaction_status <> 'cancelled'"),
        sqlite_where=sa.text("transaction_status <> 'cancelled'")
    )

    # Reviews
    op.create_table(
        'reviews',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('transaction_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('reviewer_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('reviewee_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('rating', sa.Integer(), nullable=False),
        sa.Column('review_text', sa.String(500), nullable=True),
        sa.Column('review_type', sa.String(20), nullable=False),
        sa.Column('communication_rating', sa.Integer(), nullable=True),
        sa.Column('accuracy_rating', sa.Integer(), nullable=True),
        sa.Column('reliability_rating', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['transaction_id'], ['transactions.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['reviewer_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['reviewee_id'], ['users.id'], ondelete='CASCADE'),
        sa.CheckConstraint('rating >= 1 AND rating <= 5', name='ck_review_rating_range'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('transaction_id', 'reviewer_id', name='uq_review_transaction_reviewer')
    )
    op.create_index('idx_reviews_reviewee_created', 'reviews', ['reviewee_id', 'created_at'], unique=False)

    # Notifications
    op.create_table(
        'notifications',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('title', sa.String(100), nullable=False),
        sa.Column('message', sa.String(500), nullable=False),
        sa.Column('related_listing_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('related_user_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('related_transaction_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('action_url', sa.Text(), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False),
        sa.Column('read_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['related_listing_id'], ['listings.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['related_user_id'], ['users.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['related_transaction_id'], ['transactions.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'], unique=False)
    op.create_index(
        'idx_notifications_user_read_created', 'notifications', ['user_id', 'is_read', 'created_at'], unique=False
    )
    op.create_index('idx_notifications_user_type', 'notifications', ['user_id', 'type'], unique=False)


def downgrade() -> None:
    op.drop_table('notifications')
    op.drop_table('reviews')
    op.drop_index('uq_transactions_listing_open', table_name='transactions')
    op.drop_table('transactions')
    op.drop_table('messages')
    op.drop_table('listing_view_days')
    op.drop_table('listing_images')
    op.drop_table('listings')
    op.drop_table('users')
    op.drop_table('universities')
