from alembic import op
import sqlalchemy as sa


revision = '0001_webflow_sync_tables'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # companies (Webflow sync state lives on the row)
    op.create_table(
        'companies',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('tenant_id', sa.String(64), index=True, nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('category', sa.String(128), nullable=True),
        sa.Column('plan', sa.String(16), nullable=False, server_default='discover'),
        sa.Column('status', sa.String(16), nullable=False, server_default='NEW'),
        sa.Column('website', sa.String(512), nullable=True),
        sa.Column('phone', sa.String(64), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('address', sa.String(255), nullable=True),
        sa.Column('city', sa.String(128), nullable=True),
        sa.Column('state', sa.String(32), nullable=True),
        sa.Column('zip', sa.String(16), nullable=True),
        sa.Column('tagline', sa.String(512), nullable=True),
        sa.Column('about', sa.Text(), nullable=True),
        sa.Column('ai_summary', sa.Text(), nullable=True),
        sa.Column('logo_url', sa.String(1024), nullable=True),
        sa.Column('facebook_url', sa.String(512), nullable=True),
        sa.Column('instagram_url', sa.String(512), nullable=True),
        sa.Column('youtube_url', sa.String(512), nullable=True),
        sa.Column('google_maps_url', sa.String(1024), nullable=True),
        sa.Column('yelp_url', sa.String(512), nullable=True),
        sa.Column('pricing_info', sa.Text(), nullable=True),
        sa.Column('spotlight', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('webflow_published', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('webflow_slug', sa.String(255), nullable=True),
        sa.Column('webflow_profile_id', sa.String(64), nullable=True),
        sa.Column('last_synced_at', sa.Integer, nullable=True),
        sa.Column('created_at', sa.Integer, nullable=False),
        sa.Column('updated_at', sa.Integer, nullable=True),
    )

    # intakes (AI profile document + flattened Webflow-aligned columns)
    op.create_table(
        'intakes',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('company_id', sa.String(36), sa.ForeignKey('companies.id'), index=True, nullable=False),
        sa.Column('tenant_id', sa.String(64), index=True, nullable=False),
        sa.Column('status', sa.String(16), nullable=False, server_default='pending'),
        sa.Column('roma_data', sa.JSON(), nullable=True),
        sa.Column('business_name', sa.String(255), nullable=True),
        sa.Column('display_name', sa.String(255), nullable=True),
        sa.Column('website', sa.String(512), nullable=True),
        sa.Column('phone', sa.String(64), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('address', sa.String(255), nullable=True),
        sa.Column('city', sa.String(128), nullable=True),
        sa.Column('state', sa.String(32), nullable=True),
        sa.Column('zip', sa.String(16), nullable=True),
        sa.Column('tagline', sa.String(512), nullable=True),
        sa.Column('about', sa.Text(), nullable=True),
        sa.Column('ai_summary', sa.Text(), nullable=True),
        sa.Column('logo_url', sa.String(1024), nullable=True),
        sa.Column('facebook_url', sa.String(512), nullable=True),
        sa.Column('instagram_url', sa.String(512), nullable=True),
        sa.Column('youtube_url', sa.String(512), nullable=True),
        sa.Column('google_maps_url', sa.String(1024), nullable=True),
        sa.Column('yelp_url', sa.String(512), nullable=True),
        sa.Column('pricing_info', sa.Text(), nullable=True),
        sa.Column('package_type', sa.String(16), nullable=True),
        sa.Column('spotlight', sa.Boolean(), nullable=True),
        sa.Column('social_handle', sa.String(128), nullable=True),
        sa.Column('tag1', sa.String(128), nullable=True),
        sa.Column('tag2', sa.String(128), nullable=True),
        sa.Column('tag3', sa.String(128), nullable=True),
        sa.Column('tag4', sa.String(128), nullable=True),
        sa.Column('webflow_slug', sa.String(255), nullable=True),
        sa.Column('created_at', sa.Integer, nullable=False),
        sa.Column('updated_at', sa.Integer, nullable=True),
    )

    # media_items (managed assets; priority ascending wins)
    op.create_table(
        'media_items',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('company_id', sa.String(36), sa.ForeignKey('companies.id'), index=True, nullable=False),
        sa.Column('tenant_id', sa.String(64), index=True, nullable=False),
        sa.Column('file_name', sa.String(255), nullable=False, server_default=''),
        sa.Column('file_url', sa.String(1024), nullable=False),
        sa.Column('file_type', sa.String(16), nullable=False, server_default='image'),
        sa.Column('mime_type', sa.String(64), nullable=True),
        sa.Column('category', sa.String(16), nullable=False, server_default='photo'),
        sa.Column('internal_tags', sa.JSON(), nullable=True),
        sa.Column('status', sa.String(16), nullable=False, server_default='active'),
        sa.Column('priority', sa.Integer, nullable=False, server_default='0'),
        sa.Column('uploaded_by_type', sa.String(16), nullable=True),
        sa.Column('uploaded_by_id', sa.String(64), nullable=True),
        sa.Column('created_at', sa.Integer, nullable=False),
    )
    op.create_index('ix_media_items_company_status_priority', 'media_items', ['company_id', 'status', 'priority'])

    # reviews
    op.create_table(
        'reviews',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('company_id', sa.String(36), sa.ForeignKey('companies.id'), index=True, nullable=False),
        sa.Column('tenant_id', sa.String(64), index=True, nullable=False),
        sa.Column('author', sa.String(255), nullable=False),
        sa.Column('rating', sa.Integer, nullable=False, server_default='5'),
        sa.Column('text', sa.Text(), nullable=False, server_default=''),
        sa.Column('date', sa.String(64), nullable=True),
        sa.Column('platform', sa.String(64), nullable=True),
        sa.Column('url', sa.String(1024), nullable=True),
        sa.Column('status', sa.String(16), nullable=False, server_default='active'),
        sa.Column('created_at', sa.Integer, nullable=False),
    )

    # blogs
    op.create_table(
        'blogs',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('company_id', sa.String(36), sa.ForeignKey('companies.id'), index=True, nullable=False),
        sa.Column('tenant_id', sa.String(64), index=True, nullable=False),
        sa.Column('h1', sa.String(512), nullable=False),
        sa.Column('h2', sa.String(512), nullable=True),
        sa.Column('content', sa.Text(), nullable=False, server_default=''),
        sa.Column('quick_answer', sa.Text(), nullable=True),
        sa.Column('category', sa.String(128), nullable=True),
        sa.Column('cover_image_url', sa.String(1024), nullable=True),
        sa.Column('meta_title', sa.String(512), nullable=True),
        sa.Column('meta_description', sa.Text(), nullable=True),
        sa.Column('keywords', sa.JSON(), nullable=True),
        sa.Column('author_name', sa.String(128), nullable=True),
        sa.Column('status', sa.String(16), nullable=False, server_default='draft'),
        sa.Column('webflow_item_id', sa.String(64), nullable=True),
        sa.Column('webflow_slug', sa.String(255), nullable=True),
        sa.Column('synced_at', sa.Integer, nullable=True),
        sa.Column('published_at', sa.Integer, nullable=True),
        sa.Column('created_at', sa.Integer, nullable=False),
        sa.Column('updated_at', sa.Integer, nullable=True),
    )
    op.create_index('ix_blogs_tenant_status', 'blogs', ['tenant_id', 'status'])

    # events_ledger (json payload)
    op.create_table(
        'events_ledger',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('ts', sa.Integer, nullable=False),
        sa.Column('tenant_id', sa.String(64), index=True, nullable=False),
        sa.Column('name', sa.String(64), nullable=False),
        sa.Column('payload', sa.Text(), nullable=True),
        sa.Column('created_at', sa.Integer, nullable=False),
    )


def downgrade():
    op.drop_table('events_ledger')
    op.drop_index('ix_blogs_tenant_status', table_name='blogs')
    op.drop_table('blogs')
    op.drop_table('reviews')
    op.drop_index('ix_media_items_company_status_priority', table_name='media_items')
    op.drop_table('media_items')
    op.drop_table('intakes')
    op.drop_table('companies')
