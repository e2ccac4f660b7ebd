# itasks/db/models/comment.py
"""Comments, mentions and attachments belonging to a task"""
from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime, Index, func
from sqlalchemy.orm import relationship

from itasks.db.models.base import Base, UUIDMixin


class Comment(Base, UUIDMixin):
    __tablename__ = "comments"

    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    author = relationship("User")
    mentions = relationship("CommentMention", back_populates="comment")

    def __repr__(self):
        return f"<Comment task_id={self.task_id} user_id={self.user_id}>"


class CommentMention(Base):
    __tablename__ = "comment_mentions"

    id = Column(Integer, primary_key=True, index=True)
    comment_id = Column(Integer, ForeignKey("comments.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    comment = relationship("Comment", back_populates="mentions")
    user = relationship("User")

    __table_args__ = (
        Index('idx_mention_comment_user', 'comment_id', 'user_id', unique=True),
    )


class Attachment(Base, UUIDMixin):
    __tablename__ = "attachments"

    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    uploader_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    filename = Column(String(255), nullable=False)
    file_path = Column(String(1024), nullable=False)
    mime_type = Column(String(255), nullable=False)
    size_bytes = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    uploader = relationship("User")

    def __repr__(self):
        return f"<Attachment filename={self.filename} task_id={self.task_id}>"
