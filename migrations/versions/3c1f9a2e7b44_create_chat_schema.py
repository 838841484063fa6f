"""create chat schema

Revision ID: 3c1f9a2e7b44
Revises:
Create Date: 2026-10-19 09:12:41.204117

"""
from typing import Sequence, Union

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '3c1f9a2e7b44'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    # Step 1: Create the function (required before triggers)
    op.execute('''
        CREATE OR REPLACE FUNCTION update_updated_at_column()
        RETURNS TRIGGER AS $$
        BEGIN
            NEW.updated_at = NOW();
            RETURN NEW;
        END;
        $$ language 'plpgsql'
    ''')

    # Step 2: Create tables
    op.execute("""
        CREATE TABLE IF NOT EXISTS conversations (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            conversation_type VARCHAR(20) NOT NULL CHECK (conversation_type IN ('direct', 'group')),
            title VARCHAR(100),
            description VARCHAR(500),
            group_image_url VARCHAR(500),
            created_by_id UUID NOT NULL,
            is_active BOOLEAN NOT NULL DEFAULT TRUE,
            last_message_id UUID,
            last_message_at TIMESTAMP WITH TIME ZONE,
            last_sequence BIGINT NOT NULL DEFAULT 0,
            created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW(),
            CHECK (conversation_type = 'direct' OR title IS NOT NULL)
        )
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS direct_conversation_pairs (
            conversation_id UUID PRIMARY KEY REFERENCES conversations(id) ON DELETE CASCADE,
            user_low_id UUID NOT NULL,
            user_high_id UUID NOT NULL,
            CHECK (user_low_id < user_high_id),
            CONSTRAINT uq_direct_pair_users UNIQUE (user_low_id, user_high_id)
        )
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS participants (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            conversation_id UUID NOT NULL REFERENCES conversations(id) ON DELETE CASCADE,
            user_id UUID NOT NULL,
            role VARCHAR(10) NOT NULL DEFAULT 'member' CHECK (role IN ('owner', 'admin', 'member')),
            is_active BOOLEAN NOT NULL DEFAULT TRUE,
            joined_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW(),
            left_at TIMESTAMP WITH TIME ZONE,
            last_read_at TIMESTAMP WITH TIME ZONE,
            created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_participant_user UNIQUE (conversation_id, user_id)
        )
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS messages (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            conversation_id UUID NOT NULL REFERENCES conversations(id),
            sequence BIGINT NOT NULL,
            sender_id UUID NOT NULL,
            content TEXT,
            message_type VARCHAR(10) NOT NULL DEFAULT 'text' CHECK (message_type IN ('text', 'image', 'gif', 'video', 'audio', 'file')),
            media_url VARCHAR(500),
            media_type VARCHAR(50),
            reply_to_message_id UUID REFERENCES messages(id),
            is_edited BOOLEAN NOT NULL DEFAULT FALSE,
            edited_at TIMESTAMP WITH TIME ZONE,
            is_deleted BOOLEAN NOT NULL DEFAULT FALSE,
            deleted_at TIMESTAMP WITH TIME ZONE,
            created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW(),
            CHECK (content IS NOT NULL OR media_url IS NOT NULL),
            CONSTRAINT uq_messages_sequence UNIQUE (conversation_id, sequence)
        )
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS message_reactions (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            message_id UUID NOT NULL REFERENCES messages(id) ON DELETE CASCADE,
            user_id UUID NOT NULL,
            emoji VARCHAR(10) NOT NULL,
            created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_reaction UNIQUE (message_id, user_id, emoji)
        )
    """)

    # Step 3: Create indexes
    op.execute('CREATE INDEX IF NOT EXISTS ix_direct_pair_high ON direct_conversation_pairs(user_high_id)')
    op.execute('CREATE INDEX IF NOT EXISTS ix_participants_user_active ON participants(user_id, is_active)')
    op.execute('CREATE INDEX IF NOT EXISTS ix_messages_conversation_created ON messages(conversation_id, created_at)')
    op.execute('CREATE INDEX IF NOT EXISTS ix_messages_reply_to ON messages(reply_to_message_id)')
    op.execute('CREATE INDEX IF NOT EXISTS ix_conversations_activity ON conversations(COALESCE(last_message_at, created_at) DESC)')

    # Step 4: Create triggers (only after tables exist)
    for table in ('conversations', 'participants', 'messages'):
        op.execute(f'''
            CREATE TRIGGER update_{table}_updated_at
                BEFORE UPDATE ON {table}
                FOR EACH ROW EXECUTE FUNCTION update_updated_at_column()
        ''')


def downgrade() -> None:
    """Downgrade schema."""
    for table in ('conversations', 'participants', 'messages'):
        op.execute(f'DROP TRIGGER IF EXISTS update_{table}_updated_at ON {table}')
    op.execute('DROP TABLE IF EXISTS message_reactions')
    op.execute('DROP TABLE IF EXISTS messages')
    op.execute('DROP TABLE IF EXISTS participants')
    op.execute('DROP TABLE IF EXISTS direct_conversation_pairs')
    op.execute('DROP TABLE IF EXISTS conversations')
    op.execute('DROP FUNCTION IF EXISTS update_updated_at_column()')
